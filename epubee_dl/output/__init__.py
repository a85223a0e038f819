"""Archive output."""

from .archive import DEFAULT_ENTRIES, archive_filename, sanitize_filename, write_archive

__all__ = ["DEFAULT_ENTRIES", "archive_filename", "sanitize_filename", "write_archive"]
