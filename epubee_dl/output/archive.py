"""
EPUB archive writing.

An archive holds the package document, the fixed container entries and one
entry per fetched resource, all deflated, in that order.
"""

from __future__ import annotations

from pathlib import Path
import re
from typing import Iterable
import zipfile

from ..errors import StorageError
from ..types import BookMetadata, ResourceItem


MANIFEST_ENTRY = "content.opf"
ARCHIVE_EXTENSION = "epub"

CONTAINER_XML = f"""<?xml version="1.0"?>
<container version="1.0" xmlns="urn:oasis:names:tc:opendocument:xmlns:container">
   <rootfiles>
      <rootfile full-path="{MANIFEST_ENTRY}" media-type="application/oebps-package+xml"/>
   </rootfiles>
</container>
"""

DEFAULT_ENTRIES: tuple[ResourceItem, ...] = (
    ResourceItem(path="mimetype", content=b"application/epub+zip"),
    ResourceItem(path="META-INF/container.xml", content=CONTAINER_XML.encode("utf-8")),
)

_UNSAFE_CHARS_RE = re.compile(r'[:/\\*"<>|]')


def sanitize_filename(name: str) -> str:
    """Replace each of ``: / \\ * " < > |`` with a single space.

    Examples:
        >>> sanitize_filename('A: B/C')
        'A  B C'
    """
    return _UNSAFE_CHARS_RE.sub(" ", name)


def archive_filename(metadata: BookMetadata) -> str:
    """Build the archive file name ``"{title} - {author}.epub"``."""
    return f"{sanitize_filename(f'{metadata.title} - {metadata.author}')}.{ARCHIVE_EXTENSION}"


def write_archive(
    path: Path,
    manifest_document: bytes,
    fixed_entries: Iterable[ResourceItem],
    resources: Iterable[ResourceItem],
) -> Path:
    """Write the archive at path, replacing any existing file.

    Args:
        path: Destination file
        manifest_document: Raw package document, stored as content.opf
        fixed_entries: Boilerplate entries, written after the manifest
        resources: Fetched resources, written last in the given order

    Returns:
        The path written

    Raises:
        StorageError: The archive could not be written
    """
    try:
        with zipfile.ZipFile(path, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(MANIFEST_ENTRY, manifest_document)
            for item in fixed_entries:
                zf.writestr(item.path, item.content)
            for item in resources:
                zf.writestr(item.path, item.content)
    except OSError as exc:
        raise StorageError(f"cannot write archive {path}: {exc}") from exc
    return path
