"""
Paragraph Locator Module

Maps points in the rendered document to the paragraph that owns them and
scopes offset arithmetic to that paragraph's natural-language text.

Rendered paragraphs look like::

    <div data-paragraph-id="42" data-paragraph-position="7">
      <span class="timestamp">0:05:30</span>
      <div class="speaker">Speaker</div>
      <p data-paragraph-text>The text anchors index into.</p>
    </div>

The timestamp and speaker siblings are decoration. Offsets are always
counted inside the text-bearing child only, so a stored anchor means the
same thing however the paragraph is decorated.
"""

import logging
from collections.abc import Iterator

from bs4 import Tag
from bs4.element import PageElement

from .document_tree import (
    TextIndex,
    TextPoint,
    iter_text_nodes,
    text_content,
)
from .errors import ParagraphNotFoundError
from .text_metrics import clamp

logger = logging.getLogger(__name__)

PARAGRAPH_ID_ATTR = "data-paragraph-id"
PARAGRAPH_POSITION_ATTR = "data-paragraph-position"
PARAGRAPH_TEXT_ATTR = "data-paragraph-text"
DOCUMENT_CONTAINER_ATTR = "data-document-container"

# Paragraph id reported when a point has no paragraph ancestor
NOT_FOUND_PARAGRAPH_ID = 0


def is_paragraph_element(node: PageElement | None) -> bool:
    return isinstance(node, Tag) and node.has_attr(PARAGRAPH_ID_ATTR)


def find_paragraph_element(node: PageElement | None) -> Tag | None:
    """Walk up from ``node`` to the nearest element carrying a paragraph id."""
    current = node
    while current is not None:
        if is_paragraph_element(current):
            return current
        current = current.parent
    return None


def paragraph_id_of(element: Tag | None) -> int:
    if element is None:
        return NOT_FOUND_PARAGRAPH_ID
    try:
        return int(element.get(PARAGRAPH_ID_ATTR, NOT_FOUND_PARAGRAPH_ID))
    except (TypeError, ValueError):
        logger.warning(
            "Unparsable paragraph id %r", element.get(PARAGRAPH_ID_ATTR)
        )
        return NOT_FOUND_PARAGRAPH_ID


def text_scope(element: Tag) -> Tag:
    """
    Return the text-bearing child of a paragraph element.

    Prefers an explicit ``data-paragraph-text`` marker, then the first <p>,
    and finally the paragraph element itself.
    """
    marked = element.find(attrs={PARAGRAPH_TEXT_ATTR: True})
    if marked is not None:
        return marked
    paragraph = element.find("p")
    if paragraph is not None:
        return paragraph
    return element


def scoped_text(element: Tag) -> str:
    return text_content(text_scope(element))


def find_document_container(root: Tag) -> Tag:
    container = root.find(attrs={DOCUMENT_CONTAINER_ATTR: True})
    return container if container is not None else root


def iter_paragraph_elements(root: Tag) -> Iterator[Tag]:
    yield from root.find_all(attrs={PARAGRAPH_ID_ATTR: True})


def find_paragraph_by_id(root: Tag, paragraph_id: int) -> Tag | None:
    for element in iter_paragraph_elements(root):
        if paragraph_id_of(element) == paragraph_id:
            return element
    return None


def paragraphs_between(root: Tag, start: Tag, end: Tag) -> list[Tag]:
    """Paragraph elements strictly between ``start`` and ``end`` in document order."""
    between: list[Tag] = []
    in_range = False
    for element in iter_paragraph_elements(root):
        if element is start:
            in_range = True
            continue
        if element is end:
            break
        if in_range:
            between.append(element)
    return between


def offset_in_scope(
    point: TextPoint,
    scope: Tag,
    index: TextIndex,
    *,
    backward: bool = False,
) -> int:
    """
    Character offset of ``point`` within ``scope``'s text.

    Points before the scope resolve to 0 and points after it to the scope's
    length, so an endpoint sitting in a decoration sibling still lands on a
    valid offset.
    """
    scope_start = index.char_offset(TextPoint(scope, 0))
    scope_length = len(text_content(scope))
    position = index.char_offset(point, backward=backward)
    return clamp(position - scope_start, scope_length)


def point_at_paragraph_offset(
    root: Tag, paragraph_id: int, offset: int, *, prefer_end: bool = False
) -> TextPoint:
    """
    Translate ``(paragraph_id, offset)`` into a point inside the tree.

    When ``offset`` falls exactly between two text nodes the point goes to
    the start of the later one, or with ``prefer_end`` to the end of the
    earlier one.
    """
    element = find_paragraph_by_id(root, paragraph_id)
    if element is None:
        raise ParagraphNotFoundError(paragraph_id)

    scope = text_scope(element)
    nodes = list(iter_text_nodes(scope))
    if not nodes:
        return TextPoint(scope, 0)

    remaining = max(0, offset)
    last_index = len(nodes) - 1
    for i, node in enumerate(nodes):
        length = len(node)
        if remaining < length:
            return TextPoint(node, remaining)
        if remaining == length and (prefer_end or i == last_index):
            return TextPoint(node, remaining)
        remaining -= length

    last = nodes[-1]
    return TextPoint(last, len(last))
