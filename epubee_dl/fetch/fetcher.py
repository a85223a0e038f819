"""
HTTP fetching fronted by the durable cache.

Every remote access in the pipeline goes through FetchCache.get. A cached URL
is served from disk without touching the network; a miss is downloaded with
httpx, persisted, then returned.

Failure handling on a miss:
1. Timeouts are retried immediately with no backoff (unbounded by default)
2. Any other transport error or non-2xx status pauses for the operator, who
   either acknowledges (retry the same URL) or declines (FetchError)
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Callable

import httpx

from ..config import FetchConfig
from ..errors import FetchError
from ..logging_utils import log_event
from .cache import CacheStore


# Called with (url, error message); returns True to retry, False to give up.
Acknowledge = Callable[[str, str], bool]


@dataclass
class FetchResult:
    """Result of a single HTTP attempt.

    Either content will be populated (success) or error will be populated
    (failure), but never both. status_code may be None for network-level
    failures.

    Attributes:
        url: The URL that was fetched
        status_code: HTTP status code, or None if no response was received
        content: The raw response body, or None on error
        error: Error message if the attempt failed, None on success
        timed_out: True when the attempt exceeded its timeout
    """
    url: str
    status_code: int | None
    content: bytes | None
    error: str | None
    timed_out: bool = False


@dataclass
class FetchStats:
    """Counters collected by a FetchCache over one run.

    Attributes:
        cache_hits: Number of URLs served from the store
        downloaded: Number of URLs fetched from the network
        timeouts: Number of attempts that timed out and were retried
        failures: Number of non-timeout failed attempts
    """
    cache_hits: int = 0
    downloaded: int = 0
    timeouts: int = 0
    failures: int = 0


def build_client(cfg: FetchConfig) -> httpx.Client:
    """Create the HTTP client used for cache misses.

    The client follows redirects and applies cfg.timeout_seconds to every
    attempt. The caller owns it and must close it.
    """
    return httpx.Client(
        timeout=cfg.timeout_seconds,
        headers={"User-Agent": cfg.user_agent},
        follow_redirects=True,
        trust_env=cfg.trust_env,
    )


def fetch_url(client: httpx.Client, url: str) -> FetchResult:
    """Perform one GET attempt and classify the outcome."""
    try:
        resp = client.get(url)
    except httpx.TimeoutException as exc:
        return FetchResult(
            url=url,
            status_code=None,
            content=None,
            error=f"{type(exc).__name__}: {exc}",
            timed_out=True,
        )
    except httpx.HTTPError as exc:
        return FetchResult(url=url, status_code=None, content=None, error=f"{type(exc).__name__}: {exc}")

    if not resp.is_success:
        return FetchResult(
            url=url,
            status_code=resp.status_code,
            content=None,
            error=f"HTTP {resp.status_code} {resp.reason_phrase}".strip(),
        )
    return FetchResult(url=url, status_code=resp.status_code, content=resp.content, error=None)


class FetchCache:
    """Cache-first fetcher.

    Args:
        store: Durable store that receives every successful download
        client: HTTP client used on cache misses
        acknowledge: Operator hook consulted after a non-timeout failure.
            Without one, such a failure raises FetchError at once.
        timeout_retries: Maximum consecutive timeout retries per URL, or None
            to retry for as long as it takes
        logger: Logger receiving cache_hit/downloaded/fetch_* events
    """

    def __init__(
        self,
        store: CacheStore,
        client: httpx.Client,
        acknowledge: Acknowledge | None = None,
        timeout_retries: int | None = None,
        logger: logging.Logger | None = None,
    ):
        self.store = store
        self.client = client
        self.acknowledge = acknowledge
        self.timeout_retries = timeout_retries
        self.logger = logger
        self.stats = FetchStats()

    def get(self, url: str) -> bytes:
        """Return the body for url, downloading and persisting it on a miss.

        Raises:
            FetchError: The operator declined to retry a failed request, or
                the timeout retry bound was exhausted
            StorageError: The store could not be read or written
        """
        cached = self.store.get(url)
        if cached is not None:
            self.stats.cache_hits += 1
            log_event(self.logger, f"cache hit {url}", event="cache_hit", url=url)
            return cached

        result = self._download(url)
        content = result.content or b""
        self.store.put(url, content)
        self.stats.downloaded += 1
        log_event(
            self.logger,
            f"downloaded {url}",
            event="downloaded",
            url=url,
            status_code=result.status_code,
            size=len(content),
        )
        return content

    def _download(self, url: str) -> FetchResult:
        timeouts = 0
        while True:
            result = fetch_url(self.client, url)
            if result.error is None:
                return result

            if result.timed_out:
                timeouts += 1
                self.stats.timeouts += 1
                log_event(
                    self.logger,
                    f"timeout fetching {url}, retrying",
                    level=logging.DEBUG,
                    event="fetch_timeout",
                    url=url,
                    attempt=timeouts,
                )
                if self.timeout_retries is not None and timeouts > self.timeout_retries:
                    raise FetchError(url, f"gave up after {timeouts} timeouts")
                continue

            timeouts = 0
            self.stats.failures += 1
            log_event(
                self.logger,
                f"failed to fetch {url}: {result.error}",
                level=logging.WARNING,
                event="fetch_failed",
                url=url,
                status_code=result.status_code,
                error=result.error,
            )
            if self.acknowledge is None or not self.acknowledge(url, result.error):
                raise FetchError(url, result.error)
