"""
epubee-dl - download a book from the epubee web reader as an EPUB.

This package fetches a book's package document and pages from the reader
service, strips the site chrome from every chapter and writes the result
as an EPUB archive. Every fetch is cached on disk, so re-running a
download is free.

Main entry point is the CLI via `epubee-dl run` command.

Example:
    $ epubee-dl run http://reader.epubee.com/books/mobile/5f/5f80cfe69440056dc623f051c2f76246/
"""

__all__ = ["__version__", "parse_manifest", "extract_content", "run_pipeline"]
__version__ = "0.1.0"

from .fetch.extractor import extract_content
from .parser import parse_manifest
from .runner import run_pipeline
