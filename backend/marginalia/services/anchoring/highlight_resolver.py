"""
Highlight Resolver Module

Projects stored ParagraphAnchors back onto a paragraph's text as an ordered
list of plain and highlighted segments. The segments always cover the text
exactly once, whatever offsets the anchors carry: out-of-range offsets are
clamped and overlapping highlights are trimmed to the uncovered part.
"""

import html
from collections.abc import Iterable, Mapping, Sequence

from ...models.annotation_types import (
    Annotation,
    ParagraphHighlight,
    Segment,
    SegmentHighlight,
)
from ...models.category import Category
from ...models.paragraph import Paragraph, RenderedParagraph
from .selector_builder import FULL_PARAGRAPH_SENTINEL

# Background for annotations without a category
UNTAGGED_COLOR = "#e5e7eb"

# Opacity applied to category colors so text stays readable
HIGHLIGHT_ALPHA = 0.35

CategoryTable = Mapping[int, Category]


def split_into_segments(
    text: str, highlights: Sequence[ParagraphHighlight]
) -> list[Segment]:
    """
    Split ``text`` into plain and highlighted segments.

    Highlights are walked in start order (stable, so ties keep their input
    order). Overlaps are not merged or stacked; the later highlight only
    covers what the earlier ones left.
    """
    if not highlights:
        return [Segment(text=text)]

    ordered = sorted(highlights, key=lambda h: h.start_offset)
    length = len(text)
    segments: list[Segment] = []
    cursor = 0

    for highlight in ordered:
        start = max(0, min(highlight.start_offset, length))
        end = max(start, min(highlight.end_offset, length))

        if start > cursor:
            segments.append(Segment(text=text[cursor:start]))

        visible_start = max(start, cursor)
        if end > visible_start:
            segments.append(
                Segment(
                    text=text[visible_start:end],
                    highlight=SegmentHighlight(id=highlight.id, color=highlight.color),
                )
            )

        cursor = max(cursor, end)

    if cursor < length:
        segments.append(Segment(text=text[cursor:]))

    return segments


def resolve_category_color(
    category_id: int | None, categories: CategoryTable
) -> str | None:
    """Color of ``category_id`` in ``categories``; None when untagged or unknown."""
    if category_id is None:
        return None
    category = categories.get(category_id)
    return category.color if category is not None else None


def highlight_for_paragraph(
    annotation: Annotation, paragraph_id: int, categories: CategoryTable
) -> ParagraphHighlight | None:
    """
    Extract the highlight an annotation places on one paragraph.

    Uses the explicit ParagraphAnchor when there is one. Older multi-paragraph
    annotations stored no anchors for interior paragraphs; those are
    highlighted in full when ``paragraph_id`` lies strictly between the
    annotation's start and end paragraph ids.
    """
    color = resolve_category_color(annotation.category_id, categories)

    anchor = annotation.selector.anchor_for(paragraph_id)
    if anchor is not None:
        return ParagraphHighlight(
            id=annotation.id,
            start_offset=anchor.start_offset,
            end_offset=anchor.end_offset,
            color=color,
            category_id=annotation.category_id,
        )

    is_middle = (
        annotation.start_paragraph_id != annotation.end_paragraph_id
        and annotation.start_paragraph_id < paragraph_id < annotation.end_paragraph_id
    )
    if is_middle:
        return ParagraphHighlight(
            id=annotation.id,
            start_offset=0,
            end_offset=FULL_PARAGRAPH_SENTINEL,
            color=color,
            category_id=annotation.category_id,
        )

    return None


def highlights_for_paragraph(
    annotations: Iterable[Annotation], paragraph_id: int, categories: CategoryTable
) -> list[ParagraphHighlight]:
    highlights = []
    for annotation in annotations:
        highlight = highlight_for_paragraph(annotation, paragraph_id, categories)
        if highlight is not None:
            highlights.append(highlight)
    return highlights


def resolve_paragraph(
    paragraph: Paragraph, annotations: Iterable[Annotation], categories: CategoryTable
) -> list[Segment]:
    highlights = highlights_for_paragraph(annotations, paragraph.id, categories)
    return split_into_segments(paragraph.text, highlights)


def highlight_style(color: str | None) -> str:
    """CSS background for a highlight: neutral gray, or the color at 35% opacity."""
    if not color:
        return f"background-color: {UNTAGGED_COLOR}"
    hex_value = color.lstrip("#")
    r = int(hex_value[0:2], 16)
    g = int(hex_value[2:4], 16)
    b = int(hex_value[4:6], 16)
    return f"background-color: rgba({r}, {g}, {b}, {HIGHLIGHT_ALPHA})"


def render_segments_html(segments: Iterable[Segment]) -> str:
    parts = []
    for segment in segments:
        text = html.escape(segment.text)
        if segment.highlight is None:
            parts.append(f"<span>{text}</span>")
            continue
        style = highlight_style(segment.highlight.color)
        parts.append(
            f'<mark data-annotation-id="{segment.highlight.id}" style="{style}">'
            f"{text}</mark>"
        )
    return "".join(parts)


def render_paragraph(
    paragraph: Paragraph, annotations: Iterable[Annotation], categories: CategoryTable
) -> RenderedParagraph:
    segments = resolve_paragraph(paragraph, annotations, categories)
    return RenderedParagraph(
        paragraph_id=paragraph.id,
        segments=segments,
        html=render_segments_html(segments),
    )
