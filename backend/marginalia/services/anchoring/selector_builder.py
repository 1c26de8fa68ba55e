"""
Selector Builder Module

Converts a normalized selection into the RangeSelector persisted with an
annotation. Every selector carries all three strategies:

- TextQuoteSelector: exact text with up to 32 characters of context
- TextPositionSelector: offsets in the container's flattened text
- ParagraphAnchor: one per paragraph the selection touches

For a multi-paragraph selection the first paragraph is anchored from the
selection start to its end, every paragraph in between is anchored in
full, and the last paragraph from 0 to the selection end.
"""

import logging
from collections.abc import Iterator
from dataclasses import dataclass

from bs4 import Tag
from bs4.element import PageElement

from ...models.annotation_types import (
    SELECTOR_CONTEXT_LENGTH,
    ParagraphAnchor,
    RangeSelector,
    TextPositionSelector,
    TextQuoteSelector,
)
from .document_tree import (
    TextIndex,
    TextPoint,
    TextSpan,
    contains,
    document_root,
    is_text_node,
    text_content,
)
from .paragraph_locator import (
    NOT_FOUND_PARAGRAPH_ID,
    find_paragraph_element,
    offset_in_scope,
    paragraph_id_of,
    paragraphs_between,
    text_scope,
)
from .text_metrics import find_unique, take_first, take_last

logger = logging.getLogger(__name__)

# Stands in for "to the end of the paragraph"; the resolver clamps it
FULL_PARAGRAPH_SENTINEL = 999999


@dataclass(frozen=True)
class SelectorBuildResult:
    selector: RangeSelector
    start_paragraph_id: int
    end_paragraph_id: int

    @property
    def is_anchored(self) -> bool:
        """False when either endpoint had no paragraph ancestor."""
        return (
            self.start_paragraph_id != NOT_FOUND_PARAGRAPH_ID
            and self.end_paragraph_id != NOT_FOUND_PARAGRAPH_ID
        )


def _preceding_texts(point: TextPoint) -> Iterator[str]:
    """Yield chunks of text before ``point``, nearest first."""
    node = point.node
    if is_text_node(node):
        yield str(node)[: point.offset]
    elif isinstance(node, Tag):
        for child in reversed(node.contents[: point.offset]):
            yield text_content(child)

    current: PageElement = node
    while True:
        previous = current.previous_sibling
        while previous is None and current.parent is not None:
            current = current.parent
            previous = current.previous_sibling
        if previous is None:
            return
        current = previous
        yield text_content(previous)


def _following_texts(point: TextPoint) -> Iterator[str]:
    """Yield chunks of text after ``point``, nearest first."""
    node = point.node
    if is_text_node(node):
        yield str(node)[point.offset :]
    elif isinstance(node, Tag):
        for child in node.contents[point.offset :]:
            yield text_content(child)

    current: PageElement = node
    while True:
        following = current.next_sibling
        while following is None and current.parent is not None:
            current = current.parent
            following = current.next_sibling
        if following is None:
            return
        current = following
        yield text_content(following)


def text_before(point: TextPoint, length: int = SELECTOR_CONTEXT_LENGTH) -> str:
    pieces: list[str] = []
    remaining = length
    for chunk in _preceding_texts(point):
        if remaining <= 0:
            break
        piece = take_last(chunk, remaining)
        pieces.append(piece)
        remaining -= len(piece)
    return "".join(reversed(pieces))


def text_after(point: TextPoint, length: int = SELECTOR_CONTEXT_LENGTH) -> str:
    pieces: list[str] = []
    remaining = length
    for chunk in _following_texts(point):
        if remaining <= 0:
            break
        piece = take_first(chunk, remaining)
        pieces.append(piece)
        remaining -= len(piece)
    return "".join(pieces)


def build_quote_selector(span: TextSpan, index: TextIndex) -> TextQuoteSelector:
    return TextQuoteSelector(
        exact=index.span_text(span),
        prefix=text_before(span.start),
        suffix=text_after(span.end),
    )


def build_position_selector(span: TextSpan, container: Tag) -> TextPositionSelector:
    index = TextIndex(container)
    start, end = index.span_offsets(span)
    return TextPositionSelector(start=start, end=end)


def _single_paragraph_anchor(
    span: TextSpan, exact: str, paragraph: Tag, index: TextIndex
) -> ParagraphAnchor:
    scope = text_scope(paragraph)
    paragraph_text = text_content(scope)

    # The quote only stands for scope text when both endpoints are inside it
    in_scope = contains(scope, span.start.node) and contains(scope, span.end.node)
    found = find_unique(paragraph_text, exact) if in_scope else None
    if found is not None:
        start, end = found, found + len(exact)
    else:
        # Repeated or interrupted by inline decoration: walk the text nodes
        start = offset_in_scope(span.start, scope, index)
        end = max(start, offset_in_scope(span.end, scope, index, backward=True))

    return ParagraphAnchor(
        paragraph_id=paragraph_id_of(paragraph), start_offset=start, end_offset=end
    )


def _multi_paragraph_anchors(
    span: TextSpan, start_para: Tag, end_para: Tag, root: Tag, index: TextIndex
) -> list[ParagraphAnchor]:
    start_scope = text_scope(start_para)
    end_scope = text_scope(end_para)

    anchors = [
        ParagraphAnchor(
            paragraph_id=paragraph_id_of(start_para),
            start_offset=offset_in_scope(span.start, start_scope, index),
            end_offset=len(text_content(start_scope)),
        )
    ]
    for middle in paragraphs_between(root, start_para, end_para):
        anchors.append(
            ParagraphAnchor(
                paragraph_id=paragraph_id_of(middle),
                start_offset=0,
                end_offset=len(text_content(text_scope(middle))),
            )
        )
    anchors.append(
        ParagraphAnchor(
            paragraph_id=paragraph_id_of(end_para),
            start_offset=0,
            end_offset=offset_in_scope(span.end, end_scope, index, backward=True),
        )
    )
    return anchors


def build_paragraph_anchors(
    span: TextSpan,
    exact: str,
    start_para: Tag | None,
    end_para: Tag | None,
    root: Tag,
    index: TextIndex,
) -> list[ParagraphAnchor]:
    if start_para is None:
        return []
    if end_para is start_para:
        return [_single_paragraph_anchor(span, exact, start_para, index)]
    if end_para is None:
        # Only the start is anchorable; the result is unanchored anyway
        start_scope = text_scope(start_para)
        return [
            ParagraphAnchor(
                paragraph_id=paragraph_id_of(start_para),
                start_offset=offset_in_scope(span.start, start_scope, index),
                end_offset=len(text_content(start_scope)),
            )
        ]
    return _multi_paragraph_anchors(span, start_para, end_para, root, index)


def build_selector(span: TextSpan, container: Tag) -> SelectorBuildResult:
    """
    Build the persisted selector for a normalized selection.

    Args:
        span: The word-aligned selection
        container: Root of the rendered document; TextPositionSelector
            offsets are relative to its text

    Returns:
        SelectorBuildResult. Paragraph ids default to 0 when an endpoint has
        no paragraph ancestor; check ``is_anchored`` before persisting.
    """
    root = document_root(container)
    index = TextIndex(root)

    quote = build_quote_selector(span, index)
    position = build_position_selector(span, container)

    start_para = find_paragraph_element(span.start.node)
    end_para = find_paragraph_element(span.end.node)
    anchors = build_paragraph_anchors(
        span, quote.exact, start_para, end_para, root, index
    )

    result = SelectorBuildResult(
        selector=RangeSelector(refined_by=[quote, position, *anchors]),
        start_paragraph_id=paragraph_id_of(start_para),
        end_paragraph_id=paragraph_id_of(end_para),
    )
    logger.debug(
        "Built selector %s-%s with %s paragraph anchors",
        result.start_paragraph_id,
        result.end_paragraph_id,
        len(anchors),
    )
    return result
