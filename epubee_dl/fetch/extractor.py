"""
Reader page to XHTML chapter extraction.

Reader pages wrap each chapter in site chrome. The readable parts sit between
fixed literal markers in the page source, so extraction is plain substring
windowing rather than HTML parsing:

- head: from just after the first ``<head>`` to just before the first ``<script``
- body: from just after the content wrapper opening to just before the last
  triple closing div

Any marker mismatch means the site layout changed, and the page is rejected
rather than turned into a wrong chapter. A page with no ``<script`` at all is
taken to be final content already and passed through untouched.
"""

from __future__ import annotations

from ..errors import MalformedPageError


HEAD_START_MARKER = "<head>"
HEAD_END_MARKER = "<script"
CONTENT_START_MARKER = '<div class="readercontent"><div class="readercontent-inner">'
CONTENT_END_MARKER = "</div></div></div>"

XHTML_TEMPLATE = """<?xml version='1.0' encoding='utf-8'?>
<html xmlns="http://www.w3.org/1999/xhtml">
  <head>
    {head}
  </head>
  <body class="calibre">
    {body}
  </body>
</html>"""


def extract_content(html: bytes) -> bytes:
    """Carve the chapter out of a reader page and re-wrap it as XHTML.

    Args:
        html: Raw page bytes as fetched

    Returns:
        UTF-8 encoded XHTML document, or html itself when the page has no
        ``<script`` marker

    Raises:
        MalformedPageError: The page is not UTF-8, or a required marker is
            missing
    """
    try:
        text = html.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise MalformedPageError(f"page is not valid UTF-8: {exc}") from exc

    script_at = text.find(HEAD_END_MARKER)
    if script_at == -1:
        return html

    head = _window(text, _find_after(text, HEAD_START_MARKER), script_at - 1, "head")

    content_start = _find_after(text, CONTENT_START_MARKER)
    content_end = text.rfind(CONTENT_END_MARKER)
    if content_end == -1:
        raise MalformedPageError(f"marker not found: {CONTENT_END_MARKER!r}")
    body = _window(text, content_start, content_end - 1, "body")

    return XHTML_TEMPLATE.format(head=head, body=body).encode("utf-8")


def _find_after(text: str, marker: str) -> int:
    """Return the index just past the first occurrence of marker."""
    at = text.find(marker)
    if at == -1:
        raise MalformedPageError(f"marker not found: {marker!r}")
    return at + len(marker)


def _window(text: str, start: int, end: int, name: str) -> str:
    if end < start:
        raise MalformedPageError(f"{name} markers are out of order")
    return text[start:end]
