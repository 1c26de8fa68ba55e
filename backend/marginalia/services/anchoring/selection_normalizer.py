"""
Selection Normalizer Module

Turns a raw selection into one that can be persisted:

1. Snap both endpoints outward to whole words
2. Drop spans with no text inside any paragraph's text scope
3. Count the paragraphs the snapped span touches
4. Reject spans touching more than MAX_HIGHLIGHT_PARAGRAPHS paragraphs

Blank selections, including ones over timestamp or speaker decoration only,
are not an error; they normalize to None and the caller simply goes back to
idle.
"""

import logging
from dataclasses import dataclass

from bs4.element import PageElement

from .document_tree import (
    TextIndex,
    TextPoint,
    TextSpan,
    document_root,
    is_text_node,
    text_content,
)
from .errors import SelectionExceedsLimitError
from .paragraph_locator import iter_paragraph_elements, text_scope
from .text_metrics import expand_to_word_end, expand_to_word_start, is_blank

logger = logging.getLogger(__name__)

# Maximum number of paragraphs a single highlight may span
MAX_HIGHLIGHT_PARAGRAPHS = 15

# How long the "too many paragraphs" warning stays up
EXCEEDS_LIMIT_DISMISS_SECONDS = 3.0


@dataclass(frozen=True)
class NormalizedSelection:
    """A word-aligned selection that passed the span-size policy."""

    span: TextSpan
    text: str
    paragraph_count: int


def snap_to_word_boundaries(span: TextSpan) -> TextSpan:
    """
    Expand the span so it never starts or ends mid-word.

    Only endpoints inside text nodes move; endpoints on elements pass
    through untouched. The result always contains the original span.
    """
    start, end = span.start, span.end
    if is_text_node(start.node):
        start = TextPoint(
            start.node, expand_to_word_start(str(start.node), start.offset)
        )
    if is_text_node(end.node):
        end = TextPoint(end.node, expand_to_word_end(str(end.node), end.offset))
    return TextSpan(start, end)


def count_paragraphs_in_span(
    span: TextSpan, root: PageElement | None = None, index: TextIndex | None = None
) -> int:
    """Count paragraph elements intersecting ``span``; never less than 1."""
    if root is None:
        root = document_root(span.start.node)
    if index is None:
        index = TextIndex(root)
    count = sum(
        1 for element in iter_paragraph_elements(root) if index.intersects(span, element)
    )
    return max(1, count)


def scoped_span_text(span: TextSpan, root: PageElement, index: TextIndex) -> str | None:
    """
    The part of ``span`` that falls inside paragraph text scopes.

    Timestamp and speaker decoration is left out. Returns None when the span
    touches no paragraph at all.
    """
    start, end = index.span_offsets(span)
    pieces: list[str] = []
    touched = False
    for element in iter_paragraph_elements(root):
        if not index.intersects(span, element):
            continue
        touched = True
        scope = text_scope(element)
        scope_start = index.char_offset(TextPoint(scope, 0))
        scope_end = scope_start + len(text_content(scope))
        low, high = max(start, scope_start), min(end, scope_end)
        if high > low:
            pieces.append(index.text[low:high])
    return "".join(pieces) if touched else None


def normalize_selection(
    span: TextSpan, *, max_paragraphs: int = MAX_HIGHLIGHT_PARAGRAPHS
) -> NormalizedSelection | None:
    """
    Snap and validate a raw selection.

    Returns:
        NormalizedSelection, or None when the selection is collapsed or
        contains only whitespace.

    Raises:
        SelectionExceedsLimitError: the snapped span touches more than
            ``max_paragraphs`` paragraphs.
    """
    if span.is_collapsed:
        return None

    root = document_root(span.start.node)
    index = TextIndex(root)
    if is_blank(index.span_text(span)):
        return None

    snapped = snap_to_word_boundaries(span)
    text = index.span_text(snapped)
    if is_blank(text):
        return None

    # A span over decoration only has nothing to anchor to
    scoped = scoped_span_text(snapped, root, index)
    if scoped is not None and is_blank(scoped):
        return None

    paragraph_count = count_paragraphs_in_span(snapped, root, index)
    if paragraph_count > max_paragraphs:
        logger.info(
            "Rejected selection spanning %s paragraphs (max %s)",
            paragraph_count,
            max_paragraphs,
        )
        raise SelectionExceedsLimitError(paragraph_count, max_paragraphs)

    return NormalizedSelection(span=snapped, text=text, paragraph_count=paragraph_count)
