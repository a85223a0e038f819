"""
Durable URL-keyed storage for fetched response bodies.

Each body lives in its own file named after the SHA-256 of its URL. A JSONL
index records every write in order, so the store doubles as an append-only
log of exactly what was fetched. Entries are never expired or rewritten.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

from ..errors import StorageError


def cache_path(cache_dir: Path, url: str, suffix: str = "bin") -> Path:
    """Generate a cache file path for a URL using SHA256 hashing.

    The URL is hashed to create a unique filename that's safe for all
    filesystems.

    Args:
        cache_dir: The directory where cache files are stored
        url: The URL being cached
        suffix: File extension for the cache file

    Returns:
        Path object for the cache file
    """
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()
    return cache_dir / f"{digest}.{suffix}"


class CacheIndex:
    """Tracks cache writes in a JSONL index file.

    Each write is logged as a JSON line with timestamp, URL, hash, file
    name and size. Lines appear in write order. The index is the only place
    the store keeps URLs, so it is always written.

    Attributes:
        cache_dir: Directory where cache files and index are stored
        path: Full path to the index file
    """

    def __init__(self, cache_dir: Path, filename: str = "index.jsonl"):
        self.cache_dir = cache_dir
        self.path = cache_dir / filename

    def append(self, payload: dict[str, Any]) -> None:
        """Append an entry to the cache index.

        Adds a timestamp if not present and writes the entry as a JSON line.
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        payload = dict(payload)
        payload.setdefault("timestamp", datetime.now(timezone.utc).isoformat())
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=True))
            handle.write("\n")

    def urls(self) -> Iterator[str]:
        """Yield indexed URLs in write order, skipping unreadable lines."""
        if not self.path.exists():
            return
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                lines = handle.readlines()
        except OSError as exc:
            raise StorageError(f"cannot read cache index {self.path}: {exc}") from exc
        for line in lines:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            url = entry.get("url")
            if isinstance(url, str):
                yield url


class CacheStore:
    """Write-once on-disk map from request URL to response bytes.

    The store is an explicitly owned handle: open one per run and pass it to
    whatever needs cached content.
    """

    def __init__(self, cache_dir: Path, index_filename: str = "index.jsonl"):
        self.cache_dir = Path(cache_dir)
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageError(f"cannot create cache directory {self.cache_dir}: {exc}") from exc
        self.index = CacheIndex(self.cache_dir, filename=index_filename)

    def path_for(self, url: str) -> Path:
        return cache_path(self.cache_dir, url)

    def __contains__(self, url: str) -> bool:
        return self.path_for(url).is_file()

    def get(self, url: str) -> bytes | None:
        """Return the stored bytes for url, or None when it was never stored."""
        path = self.path_for(url)
        if not path.is_file():
            return None
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"cannot read cache entry for {url}: {exc}") from exc

    def put(self, url: str, content: bytes) -> bool:
        """Persist content under url.

        The body is written to a temporary file in the cache directory, the
        URL is appended to the index, and only then is the body renamed into
        place. A failure before the rename leaves the key absent, so a later
        put stores it again. Keys are immutable: storing an existing key is a
        no-op.

        Returns:
            True if a new entry was written, False if the key already existed
        """
        path = self.path_for(url)
        if path.is_file():
            return False
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".tmp-")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(content)
                self.index.append(
                    {
                        "url": url,
                        "hash": path.stem,
                        "path": path.name,
                        "size": len(content),
                    }
                )
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise StorageError(f"cannot write cache entry for {url}: {exc}") from exc
        return True

    def keys(self) -> Iterator[str]:
        """Yield stored URLs in the order they were first written."""
        seen: set[str] = set()
        for url in self.index.urls():
            if url in seen or url not in self:
                continue
            seen.add(url)
            yield url

    def __len__(self) -> int:
        return sum(1 for _ in self.keys())
