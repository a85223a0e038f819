"""
Main pipeline orchestration.

This module coordinates one book download:
1. Validate the base URL
2. Fetch and parse the package document
3. Fetch every manifest resource in order, extracting chapter documents
4. Write the EPUB archive

All fetches go through a single FetchCache backed by the on-disk store, so a
second run against the same book makes no network requests.
"""

from __future__ import annotations

import logging
from pathlib import Path
import re
from urllib.parse import urljoin

import httpx
from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeRemainingColumn,
)

from .config import AppConfig
from .errors import InvalidSourceError, MalformedManifestError
from .fetch.cache import CacheStore
from .fetch.extractor import extract_content
from .fetch.fetcher import Acknowledge, FetchCache, FetchStats, build_client
from .logging_utils import log_event, setup_logging
from .output.archive import DEFAULT_ENTRIES, archive_filename, write_archive
from .parser import parse_manifest
from .types import ResourceDescriptor, ResourceItem


BASE_URL_RE = re.compile(
    r"^https?://reader\.epubee\.com/books/mobile/[0-9a-z]{2}/[0-9a-f]{32}/$",
    re.IGNORECASE,
)
EXAMPLE_BASE_URL = "http://reader.epubee.com/books/mobile/5f/5f80cfe69440056dc623f051c2f76246/"


def resolve_base_url(raw: str) -> str:
    """Normalize and validate a reader base URL.

    Surrounding whitespace is stripped and a missing trailing slash is added,
    so relative hrefs resolve inside the book directory.

    Raises:
        InvalidSourceError: The URL does not follow the reader URL scheme
    """
    url = raw.strip()
    if url and not url.endswith("/"):
        url += "/"
    if not BASE_URL_RE.match(url):
        raise InvalidSourceError(f"invalid url format: {raw.strip()!r}, expected e.g. {EXAMPLE_BASE_URL}")
    return url


def run_pipeline(
    base_url: str,
    cfg: AppConfig,
    show_progress: bool = True,
    console: Console | None = None,
    acknowledge: Acknowledge | None = None,
    client: httpx.Client | None = None,
) -> Path:
    """Download one book and write it as an EPUB archive.

    Args:
        base_url: Reader URL of the book directory
        cfg: Application configuration
        show_progress: Whether to display a progress bar over resources
        console: Rich console for output (creates default if None)
        acknowledge: Operator hook for non-timeout fetch failures
        client: HTTP client to use instead of one built from cfg.fetch

    Returns:
        Path to the written archive
    """
    console = console or Console()
    base_url = resolve_base_url(base_url)
    output_dir = Path(cfg.output.dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    logger = setup_logging(cfg.logging, output_dir, console=console)

    store = CacheStore(
        Path(cfg.cache.dir),
        index_filename=cfg.cache.index_filename,
    )
    owns_client = client is None
    if client is None:
        client = build_client(cfg.fetch)

    try:
        fetcher = FetchCache(
            store,
            client,
            acknowledge=acknowledge,
            timeout_retries=cfg.fetch.timeout_retries,
            logger=logger,
        )
        log_event(logger, "Pipeline start", level=logging.DEBUG, event="pipeline_start", url=base_url)
        archive_path = _download_book(base_url, cfg, fetcher, output_dir, logger, console, show_progress)
        _render_fetch_stats(fetcher.stats, console)
    finally:
        if owns_client:
            client.close()

    return archive_path


def _download_book(
    base_url: str,
    cfg: AppConfig,
    fetcher: FetchCache,
    output_dir: Path,
    logger: logging.Logger,
    console: Console,
    show_progress: bool,
) -> Path:
    manifest_document = fetcher.get(base_url + cfg.fetch.manifest_filename)
    try:
        manifest_text = manifest_document.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedManifestError(f"manifest is not valid UTF-8: {exc}") from exc

    metadata, descriptors = parse_manifest(manifest_text)
    log_event(
        logger,
        f"manifest parsed: {metadata.title!r} by {metadata.author!r}, {len(descriptors)} resources",
        event="manifest_parsed",
        title=metadata.title,
        author=metadata.author,
        resources=len(descriptors),
    )

    if show_progress:
        progress = Progress(
            SpinnerColumn(),
            TextColumn("{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeRemainingColumn(),
            console=console,
        )
        # The operator prompt cannot share the terminal with a live bar.
        operator_hook = fetcher.acknowledge
        if operator_hook is not None:
            def paused_acknowledge(url: str, error: str) -> bool:
                progress.stop()
                try:
                    return operator_hook(url, error)
                finally:
                    progress.start()

            fetcher.acknowledge = paused_acknowledge
        with progress:
            task = progress.add_task("Fetch resources", total=len(descriptors))
            resources = _fetch_resources(
                base_url, descriptors, fetcher, logger, on_item=lambda: progress.advance(task, 1)
            )
        fetcher.acknowledge = operator_hook
    else:
        resources = _fetch_resources(base_url, descriptors, fetcher, logger)

    archive_path = output_dir / archive_filename(metadata)
    write_archive(archive_path, manifest_document, DEFAULT_ENTRIES, resources)
    log_event(
        logger,
        "Archive written",
        level=logging.DEBUG,
        event="archive_written",
        path=str(archive_path),
        entries=1 + len(DEFAULT_ENTRIES) + len(resources),
    )
    return archive_path


def _fetch_resources(
    base_url: str,
    descriptors: list[ResourceDescriptor],
    fetcher: FetchCache,
    logger: logging.Logger,
    on_item=None,
) -> list[ResourceItem]:
    """Fetch manifest resources one at a time, in manifest order."""
    resources: list[ResourceItem] = []
    for descriptor in descriptors:
        if not descriptor.href:
            log_event(
                logger,
                "skipping manifest item without href",
                level=logging.WARNING,
                event="resource_skipped",
            )
        else:
            content = fetcher.get(urljoin(base_url, descriptor.href))
            if descriptor.is_document:
                content = extract_content(content)
            resources.append(ResourceItem(path=descriptor.href, content=content))
        if on_item is not None:
            on_item()
    return resources


def _render_fetch_stats(stats: FetchStats, console: Console) -> None:
    """Display fetch statistics to the console."""
    console.print(
        "[bold]Fetch summary[/bold]: "
        f"cache_hits={stats.cache_hits}, downloaded={stats.downloaded}, "
        f"timeouts={stats.timeouts}, failures={stats.failures}"
    )
