"""
Streaming parser for the OPF package document.

The package document is scanned once, front to back, as a stream of SAX
events. Element names are matched in their raw prefixed form (``dc:title``,
``dc:creator``, ``manifest``, ``item``), exactly as the reader service
writes them; namespace processing is off.

Scan state is a small flag set. Title and creator flags are armed by their
start tags and cleared by the first text that follows, so only the first
text node counts. The manifest flag spans ``<manifest>`` to ``</manifest>``
and gates which ``item`` elements become resource descriptors. Every ``item``
start tag inside it counts, whether written ``<item/>`` or ``<item></item>``;
SAX reports both forms as the same start and end events. Combinations
that well-formed documents never produce (e.g. TITLE and MANIFEST together)
are representable and simply handled flag by flag.
"""

from __future__ import annotations

import enum
import io
import xml.sax
from xml.sax.handler import ContentHandler, feature_external_ges, feature_namespaces

from .errors import MalformedManifestError
from .types import BookMetadata, ResourceDescriptor


DOCUMENT_MEDIA_TYPE = "application/xhtml+xml"


class ScanState(enum.Flag):
    NONE = 0
    TITLE = enum.auto()
    AUTHOR = enum.auto()
    MANIFEST = enum.auto()


class _ManifestHandler(ContentHandler):
    def __init__(self):
        super().__init__()
        self.state = ScanState.NONE
        self.metadata = BookMetadata()
        self.resources: list[ResourceDescriptor] = []
        self._text: list[str] = []

    def startElement(self, name, attrs):
        self._flush_text()
        if name == "dc:title":
            self.state |= ScanState.TITLE
        elif name == "dc:creator":
            self.state |= ScanState.AUTHOR
        elif name == "manifest":
            self.state |= ScanState.MANIFEST
        elif name == "item" and ScanState.MANIFEST in self.state:
            self.resources.append(
                ResourceDescriptor(
                    href=attrs.get("href", ""),
                    is_document=attrs.get("media-type") == DOCUMENT_MEDIA_TYPE,
                )
            )

    def endElement(self, name):
        self._flush_text()
        # An element closed without any text leaves its field empty.
        if name == "dc:title":
            self.state &= ~ScanState.TITLE
        elif name == "dc:creator":
            self.state &= ~ScanState.AUTHOR
        elif name == "manifest":
            self.state &= ~ScanState.MANIFEST

    def characters(self, content):
        self._text.append(content)

    def endDocument(self):
        self._flush_text()

    def _flush_text(self) -> None:
        # SAX may split one text node over several characters() calls.
        if not self._text:
            return
        text = "".join(self._text)
        self._text = []
        if not text:
            return
        if ScanState.TITLE in self.state:
            self.metadata.title = text
            self.state &= ~ScanState.TITLE
        if ScanState.AUTHOR in self.state:
            self.metadata.author = text
            self.state &= ~ScanState.AUTHOR


def parse_manifest(document: str | bytes) -> tuple[BookMetadata, list[ResourceDescriptor]]:
    """Extract metadata and the ordered resource list from a package document.

    Args:
        document: The OPF XML, as text or UTF-8 bytes

    Returns:
        (metadata, descriptors) with descriptors in manifest declaration order

    Raises:
        MalformedManifestError: The document is not well-formed XML
    """
    if isinstance(document, str):
        document = document.encode("utf-8")

    handler = _ManifestHandler()
    reader = xml.sax.make_parser()
    reader.setFeature(feature_namespaces, False)
    reader.setFeature(feature_external_ges, False)
    reader.setContentHandler(handler)
    try:
        reader.parse(io.BytesIO(document))
    except xml.sax.SAXParseException as exc:
        raise MalformedManifestError(f"manifest is not well-formed XML: {exc}") from exc
    return handler.metadata, handler.resources
