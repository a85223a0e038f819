"""
Resource fetching, caching and extraction.

This package handles HTTP fetching behind the durable cache and
turning reader pages into XHTML chapters.
"""

from .cache import CacheIndex, CacheStore, cache_path
from .extractor import extract_content
from .fetcher import FetchCache, FetchResult, FetchStats, build_client, fetch_url

__all__ = [
    "CacheIndex",
    "CacheStore",
    "cache_path",
    "extract_content",
    "FetchCache",
    "FetchResult",
    "FetchStats",
    "build_client",
    "fetch_url",
]
