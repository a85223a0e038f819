"""
Core data types for the e-book download pipeline.

This module defines the structures passed between pipeline stages:
- BookMetadata: Title and author read from the package document
- ResourceDescriptor: One manifest item to fetch
- ResourceItem: One entry to write into the final archive
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class BookMetadata:
    """Book metadata extracted from the package document.

    Attributes:
        title: Text of the first dc:title element, or "" if absent
        author: Text of the first dc:creator element, or "" if absent
    """
    title: str = ""
    author: str = ""


@dataclass(frozen=True)
class ResourceDescriptor:
    """A resource declared by a manifest item.

    Attributes:
        href: The item's href attribute, verbatim and relative to the base URL
        is_document: True when the item's media-type is application/xhtml+xml
    """
    href: str
    is_document: bool = False


@dataclass
class ResourceItem:
    """A single archive entry.

    Attributes:
        path: Entry name inside the archive
        content: Entry body
    """
    path: str
    content: bytes
