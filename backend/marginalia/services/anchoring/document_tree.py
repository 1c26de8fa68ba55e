"""
Document Tree Module

Selections are expressed as a TextSpan: an ordered pair of TextPoints over a
BeautifulSoup tree of the rendered document. A TextPoint follows DOM boundary
point rules:

- on a text node, ``offset`` is a character index into that string
- on a tag, ``offset`` is a child index (the point sits before that child)

TextIndex flattens every text node below a root into one string so points
can be turned into absolute character offsets with a single forward walk.
Comments, doctypes and other non-text strings contribute nothing, the same
as ``textContent`` in a browser.
"""

from collections.abc import Iterator
from dataclasses import dataclass

from bs4 import BeautifulSoup, NavigableString, Tag
from bs4.element import PageElement, PreformattedString

from .text_metrics import clamp

# A position in the flattened text: (text node index, offset within it).
# Index -1 sits before every text node, len(nodes) after all of them.
Position = tuple[int, int]


def parse_document(html: str) -> BeautifulSoup:
    """Parse rendered markup into a tree the anchoring engine can walk."""
    return BeautifulSoup(html, "html.parser")


def is_text_node(node: PageElement | None) -> bool:
    return isinstance(node, NavigableString) and not isinstance(
        node, PreformattedString
    )


def iter_text_nodes(root: PageElement) -> Iterator[NavigableString]:
    """Yield the text nodes under ``root`` in document order."""
    if is_text_node(root):
        yield root
        return
    if not isinstance(root, Tag):
        return
    for node in root.descendants:
        if is_text_node(node):
            yield node


def text_content(node: PageElement | None) -> str:
    if node is None:
        return ""
    if is_text_node(node):
        return str(node)
    return "".join(str(text) for text in iter_text_nodes(node))


def document_root(node: PageElement) -> PageElement:
    current = node
    while current.parent is not None:
        current = current.parent
    return current


def contains(ancestor: PageElement, node: PageElement | None) -> bool:
    """True when ``node`` is ``ancestor`` or one of its descendants."""
    if node is None:
        return False
    if node is ancestor:
        return True
    return any(parent is ancestor for parent in node.parents)


@dataclass(frozen=True, eq=False)
class TextPoint:
    """A boundary point: a node and an offset inside it."""

    node: PageElement
    offset: int

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TextPoint):
            return NotImplemented
        # bs4 strings compare by value, so node identity must be explicit
        return self.node is other.node and self.offset == other.offset

    def __hash__(self) -> int:
        return hash((id(self.node), self.offset))


@dataclass(frozen=True)
class TextSpan:
    """A selection between two boundary points, start first."""

    start: TextPoint
    end: TextPoint

    @property
    def is_collapsed(self) -> bool:
        return self.start == self.end


def _after_subtree(node: PageElement) -> PageElement | None:
    """First node in document order that is not inside ``node``."""
    current = node
    while current is not None:
        if current.next_sibling is not None:
            return current.next_sibling
        current = current.parent
    return None


def _last_descendant(node: PageElement) -> PageElement:
    current = node
    while isinstance(current, Tag) and current.contents:
        current = current.contents[-1]
    return current


class TextIndex:
    """Flattened view of the text under a root node."""

    def __init__(self, root: PageElement):
        self.root = root
        self.nodes: list[NavigableString] = list(iter_text_nodes(root))
        self._indexes = {id(node): i for i, node in enumerate(self.nodes)}
        self._starts: list[int] = []
        total = 0
        for node in self.nodes:
            self._starts.append(total)
            total += len(node)
        self.length = total
        self.text = "".join(str(node) for node in self.nodes)

    def index_of(self, node: PageElement) -> int | None:
        return self._indexes.get(id(node))

    def locate(self, point: TextPoint, *, backward: bool = False) -> Position:
        """
        Resolve a boundary point to a position in the flattened text.

        Points on text nodes map directly. Points on tags snap forward to the
        start of the next text node, or with ``backward=True`` to the end of
        the previous one. Both land on the same character offset; the
        direction only matters when ordering boundaries that touch.
        """
        index = self.index_of(point.node)
        if index is not None:
            return index, clamp(point.offset, len(self.nodes[index]))
        if backward:
            return self._scan_backward(self._node_before(point))
        return self._scan_forward(self._node_at_or_after(point))

    def char_offset(self, point: TextPoint, *, backward: bool = False) -> int:
        return self.offset_of(self.locate(point, backward=backward))

    def offset_of(self, position: Position) -> int:
        index, offset = position
        if index < 0:
            return 0
        if index >= len(self.nodes):
            return self.length
        return self._starts[index] + offset

    def span_offsets(self, span: TextSpan) -> tuple[int, int]:
        start = self.char_offset(span.start)
        end = self.char_offset(span.end, backward=True)
        return start, max(start, end)

    def span_text(self, span: TextSpan) -> str:
        start, end = self.span_offsets(span)
        return self.text[start:end]

    def element_bounds(self, element: Tag) -> tuple[Position, Position]:
        """Positions of the first and last character inside ``element``."""
        start = self.locate(TextPoint(element, 0))
        end = self.locate(TextPoint(element, len(element.contents)), backward=True)
        return start, end

    def intersects(self, span: TextSpan, element: Tag) -> bool:
        span_start = self.locate(span.start)
        span_end = self.locate(span.end, backward=True)
        element_start, element_end = self.element_bounds(element)
        return span_start <= element_end and span_end >= element_start

    def _node_at_or_after(self, point: TextPoint) -> PageElement | None:
        node = point.node
        if isinstance(node, Tag) and point.offset < len(node.contents):
            return node.contents[max(point.offset, 0)]
        return _after_subtree(node)

    def _node_before(self, point: TextPoint) -> PageElement | None:
        node = point.node
        if isinstance(node, Tag) and point.offset > 0 and node.contents:
            child = node.contents[min(point.offset, len(node.contents)) - 1]
            return _last_descendant(child)
        return node.previous_element

    def _scan_forward(self, node: PageElement | None) -> Position:
        while node is not None:
            index = self.index_of(node)
            if index is not None:
                return index, 0
            node = node.next_element
        return len(self.nodes), 0

    def _scan_backward(self, node: PageElement | None) -> Position:
        while node is not None:
            index = self.index_of(node)
            if index is not None:
                return index, len(self.nodes[index])
            node = node.previous_element
        return -1, 0
