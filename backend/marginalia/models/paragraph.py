"""
Paragraph Type Models

Paragraphs are owned by the document store; this engine only reads them.
"""

from pydantic import BaseModel

from .annotation_types import Segment


class Paragraph(BaseModel):
    """
    One addressable unit of a document.

    ``id`` is stable across a session. ``text`` is the only field anchors
    index into; ``speaker`` and ``timestamp`` are rendered as decoration.
    """

    id: int
    position: int
    text: str
    speaker: str | None = None
    timestamp: str | None = None


class RenderedParagraph(BaseModel):
    """Segments for one paragraph, plus the markup built from them"""

    paragraph_id: int
    segments: list[Segment]
    html: str
