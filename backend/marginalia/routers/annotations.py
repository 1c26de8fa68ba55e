import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Query, Response
from pydantic import BaseModel, Field

from ..models.annotation_types import (
    Annotation,
    AnnotationCreate,
    AnnotationWithCategory,
)
from ..models.paragraph import Paragraph, RenderedParagraph
from ..services.anchoring.document_tree import TextSpan, parse_document
from ..services.anchoring.errors import (
    ParagraphNotFoundError,
    SelectionExceedsLimitError,
)
from ..services.anchoring.highlight_resolver import render_paragraph
from ..services.anchoring.paragraph_locator import (
    find_document_container,
    point_at_paragraph_offset,
)
from ..services.anchoring.selection_normalizer import normalize_selection
from ..services.anchoring.selector_builder import build_selector
from ..services.database_service import db_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/annotations", tags=["annotations"])


class SelectionPoint(BaseModel):
    paragraph_id: int
    offset: int = Field(ge=0)


class CaptureRequest(BaseModel):
    """A raw selection over a rendered document, in paragraph coordinates."""

    document_id: str
    html: str
    start: SelectionPoint
    end: SelectionPoint
    category_id: int | None = None


class UpdateCategoryRequest(BaseModel):
    category_id: int | None = None


class RenderRequest(BaseModel):
    document_id: str
    paragraphs: list[Paragraph]


@router.post("/capture", response_model=AnnotationWithCategory)
async def capture_annotation(payload: CaptureRequest):
    """
    Snap, anchor and persist a selection made on rendered markup.

    Blank selections are ignored (204). Selections over the paragraph limit
    are rejected with 422 so the client can show its transient warning.
    """
    root = parse_document(payload.html)
    container = find_document_container(root)

    try:
        start = point_at_paragraph_offset(
            root, payload.start.paragraph_id, payload.start.offset
        )
        end = point_at_paragraph_offset(
            root, payload.end.paragraph_id, payload.end.offset, prefer_end=True
        )
    except ParagraphNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        normalized = normalize_selection(TextSpan(start, end))
    except SelectionExceedsLimitError as e:
        raise HTTPException(
            status_code=422,
            detail={
                "code": "exceeds_limit",
                "message": str(e),
                "paragraph_count": e.paragraph_count,
                "max_paragraphs": e.max_paragraphs,
            },
        )

    if normalized is None:
        return Response(status_code=204)

    result = build_selector(normalized.span, container)
    if not result.is_anchored:
        logger.warning(
            "Unanchored selection in document %s: %s-%s",
            payload.document_id,
            result.start_paragraph_id,
            result.end_paragraph_id,
        )
        raise HTTPException(
            status_code=400, detail="Selection is not inside a paragraph"
        )

    annotation = db_service.annotations.create(
        AnnotationCreate(
            document_id=payload.document_id,
            category_id=payload.category_id,
            selector=result.selector,
            highlighted_text=normalized.text,
            start_paragraph_id=result.start_paragraph_id,
            end_paragraph_id=result.end_paragraph_id,
        )
    )
    if annotation is None:
        raise HTTPException(status_code=500, detail="Failed to create annotation")
    return annotation


@router.post("/", response_model=AnnotationWithCategory)
async def create_annotation(payload: AnnotationCreate):
    """Persist an annotation whose selector was built client-side."""
    if payload.start_paragraph_id == 0 or payload.end_paragraph_id == 0:
        raise HTTPException(
            status_code=400, detail="Annotation is not anchored to a paragraph"
        )

    annotation = db_service.annotations.create(payload)
    if annotation is None:
        raise HTTPException(status_code=500, detail="Failed to create annotation")
    return annotation


@router.get("/counts")
async def get_annotation_counts() -> dict[str, int]:
    """Number of annotations per document."""
    return db_service.annotations.count_by_document()


@router.get(
    "/document/{document_id}", response_model=list[AnnotationWithCategory]
)
async def get_document_annotations(
    document_id: str, paragraph_ids: list[int] | None = Query(default=None)
):
    """
    All annotations for a document, or only those starting or ending in
    ``paragraph_ids`` when given.
    """
    if paragraph_ids:
        return db_service.annotations.list_for_paragraphs(document_id, paragraph_ids)
    return db_service.annotations.list_by_document(document_id)


@router.post("/render", response_model=list[RenderedParagraph])
async def render_paragraphs(payload: RenderRequest) -> list[RenderedParagraph]:
    """Resolve every stored highlight onto the given paragraphs."""
    annotations = db_service.annotations.list_by_document(payload.document_id)
    categories = db_service.categories.lookup_table()
    return [
        render_paragraph(paragraph, annotations, categories)
        for paragraph in payload.paragraphs
    ]


@router.get("/{annotation_id:int}", response_model=AnnotationWithCategory)
async def get_annotation(annotation_id: int):
    annotation = db_service.annotations.get_by_id(annotation_id)
    if not annotation:
        raise HTTPException(status_code=404, detail="Annotation not found")
    return annotation


@router.put("/{annotation_id:int}/category", response_model=Annotation)
async def update_annotation_category(
    annotation_id: int, data: UpdateCategoryRequest
):
    if data.category_id is not None and not db_service.categories.get_by_id(
        data.category_id
    ):
        raise HTTPException(status_code=404, detail="Category not found")

    annotation = db_service.annotations.update_category(annotation_id, data.category_id)
    if annotation is None:
        raise HTTPException(
            status_code=404, detail="Annotation not found or update failed"
        )
    return annotation


@router.delete("/{annotation_id:int}")
async def delete_annotation(annotation_id: int) -> dict[str, Any]:
    success = db_service.annotations.delete(annotation_id)
    if not success:
        raise HTTPException(status_code=404, detail="Annotation not found")
    return {"message": "Annotation deleted successfully"}
