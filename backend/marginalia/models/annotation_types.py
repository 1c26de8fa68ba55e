"""
Annotation Type Models

Pydantic models for paragraph-anchored annotations. A highlight is stored as
a W3C-style RangeSelector refined by three redundant strategies:

- TextQuoteSelector: exact text plus surrounding context
- TextPositionSelector: absolute offsets in the rendered document
- ParagraphAnchor: offsets scoped to one paragraph's text (one per paragraph)

Only ParagraphAnchor is consumed when rendering; the other two are persisted
so a later re-anchoring pass has something to work from.
"""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# Characters of context captured on each side of a quote
SELECTOR_CONTEXT_LENGTH = 32


class TextQuoteSelector(BaseModel):
    """Selected text with up to SELECTOR_CONTEXT_LENGTH chars of context"""

    type: Literal["TextQuoteSelector"] = "TextQuoteSelector"
    exact: str
    prefix: str = ""
    suffix: str = ""


class TextPositionSelector(BaseModel):
    """Character offsets from the start of the whole rendered document"""

    type: Literal["TextPositionSelector"] = "TextPositionSelector"
    start: int
    end: int


class ParagraphAnchor(BaseModel):
    """Offsets within a single paragraph's text, keyed by paragraph id"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["ParagraphAnchor"] = "ParagraphAnchor"
    paragraph_id: int = Field(alias="paragraphId")
    start_offset: int = Field(alias="startOffset")
    end_offset: int = Field(alias="endOffset")


SelectorRefinement = Annotated[
    Union[TextQuoteSelector, TextPositionSelector, ParagraphAnchor],
    Field(discriminator="type"),
]


class RangeSelector(BaseModel):
    """Envelope holding every selector strategy computed for a highlight"""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["RangeSelector"] = "RangeSelector"
    refined_by: list[SelectorRefinement] = Field(
        default_factory=list, alias="refinedBy"
    )

    def quote(self) -> TextQuoteSelector | None:
        for refinement in self.refined_by:
            if isinstance(refinement, TextQuoteSelector):
                return refinement
        return None

    def position(self) -> TextPositionSelector | None:
        for refinement in self.refined_by:
            if isinstance(refinement, TextPositionSelector):
                return refinement
        return None

    def paragraph_anchors(self) -> list[ParagraphAnchor]:
        return [r for r in self.refined_by if isinstance(r, ParagraphAnchor)]

    def anchor_for(self, paragraph_id: int) -> ParagraphAnchor | None:
        """Return the first anchor targeting ``paragraph_id``, if any."""
        for anchor in self.paragraph_anchors():
            if anchor.paragraph_id == paragraph_id:
                return anchor
        return None


class CategorySummary(BaseModel):
    """Category fields joined onto an annotation for display"""

    id: int
    name: str
    color: str


class Annotation(BaseModel):
    """An annotation as stored in the database"""

    id: int
    document_id: str
    category_id: int | None = None
    selector: RangeSelector
    highlighted_text: str
    start_paragraph_id: int
    end_paragraph_id: int
    created_at: str  # SQLite timestamp string
    updated_at: str


class AnnotationWithCategory(Annotation):
    """Annotation with its category joined (None when untagged)"""

    category: CategorySummary | None = None


class AnnotationCreate(BaseModel):
    """Request model for creating an annotation"""

    document_id: str
    category_id: int | None = None
    selector: RangeSelector
    highlighted_text: str
    start_paragraph_id: int
    end_paragraph_id: int


class ParagraphHighlight(BaseModel):
    """
    Render-time projection of one annotation onto one paragraph.

    Never persisted. ``color`` is None for untagged annotations.
    """

    id: int
    start_offset: int
    end_offset: int
    color: str | None = None
    category_id: int | None = None


class SegmentHighlight(BaseModel):
    id: int
    color: str | None = None


class Segment(BaseModel):
    """A run of paragraph text, highlighted or plain"""

    text: str
    highlight: SegmentHighlight | None = None
