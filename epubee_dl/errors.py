"""
Exception hierarchy for the download pipeline.

Every fatal condition raised by the pipeline derives from EpubeeError so the
CLI can report it and exit non-zero. Transport timeouts never appear here:
they are retried inside the fetch cache.
"""

from __future__ import annotations


class EpubeeError(Exception):
    """Base class for all pipeline errors."""


class FetchError(EpubeeError):
    """A URL could not be fetched and the operator declined to retry.

    Attributes:
        url: The URL that failed
    """

    def __init__(self, url: str, reason: str):
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class MalformedManifestError(EpubeeError):
    """The package document is not well-formed XML or not UTF-8."""


class MalformedPageError(EpubeeError):
    """A fetched page is not UTF-8 or lacks an expected extraction marker."""


class StorageError(EpubeeError):
    """Reading or writing the cache store or the archive failed."""


class InvalidSourceError(EpubeeError):
    """The base URL does not follow the reader URL scheme."""
