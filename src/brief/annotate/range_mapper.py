"""Map a selection range onto the text nodes it covers.

Pure functions over a BeautifulSoup tree. A ``TextRange`` uses DOM
boundary-point semantics: when a boundary container is a text node its
offset counts characters, when it is an element its offset counts child
nodes. Nothing in this module mutates the tree.
"""

# Pattern: Functional Core

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from bs4 import NavigableString, PageElement, Tag
from bs4.element import PreformattedString, Script, Stylesheet

if TYPE_CHECKING:
    from collections.abc import Iterator

# Strings that are part of the tree but never rendered as text
_NON_TEXT_STRINGS = (PreformattedString, Script, Stylesheet)

# Boundary key: (document-order index, character offset). Offset -1 means
# "immediately before the node at that index".
type _Key = tuple[int, int]


@dataclass(frozen=True)
class TextRange:
    """A live selection range over a rendered tree."""

    start_container: PageElement
    start_offset: int
    end_container: PageElement
    end_offset: int

    @property
    def collapsed(self) -> bool:
        return (
            self.start_container is self.end_container
            and self.start_offset == self.end_offset
        )


@dataclass(frozen=True)
class TextSlice:
    """The ``[start, end)`` part of one text node covered by a range."""

    node: NavigableString
    start: int
    end: int

    @property
    def text(self) -> str:
        return str(self.node)[self.start : self.end]


def is_text_node(node: PageElement) -> bool:
    """True for strings a browser would render as a text node."""
    return isinstance(node, NavigableString) and not isinstance(
        node, _NON_TEXT_STRINGS
    )


def iter_text_nodes(root: Tag) -> Iterator[NavigableString]:
    """Yield the rendered text nodes under *root* in document order."""
    for node in root.descendants:
        if is_text_node(node):
            yield node  # type: ignore[misc]


def document_text(root: Tag) -> str:
    """Concatenate every text node under *root* (the element's textContent)."""
    return "".join(str(node) for node in iter_text_nodes(root))


def _ancestors_inclusive(node: PageElement) -> list[PageElement]:
    chain: list[PageElement] = [node]
    parent = node.parent
    while parent is not None:
        chain.append(parent)
        parent = parent.parent
    return chain


def common_ancestor(a: PageElement, b: PageElement) -> PageElement | None:
    """Deepest node containing both *a* and *b* (either may be the answer)."""
    seen = {id(n) for n in _ancestors_inclusive(a)}
    for candidate in _ancestors_inclusive(b):
        if id(candidate) in seen:
            return candidate
    return None


def _document_order(root: PageElement) -> tuple[dict[int, int], dict[int, int]]:
    """Index every node under *root* and record the index just past each subtree."""
    order: dict[int, int] = {}
    subtree_end: dict[int, int] = {}
    stack: list[tuple[PageElement, bool]] = [(root, False)]
    counter = 0
    while stack:
        node, closing = stack.pop()
        if closing:
            subtree_end[id(node)] = counter
            continue
        order[id(node)] = counter
        counter += 1
        stack.append((node, True))
        if isinstance(node, Tag):
            stack.extend((child, False) for child in reversed(node.contents))
    return order, subtree_end


def _boundary_key(
    container: PageElement,
    offset: int,
    order: dict[int, int],
    subtree_end: dict[int, int],
) -> _Key:
    if isinstance(container, Tag):
        children = container.contents
        if offset < len(children):
            return (order[id(children[offset])], -1)
        return (subtree_end[id(container)], -1)
    return (order[id(container)], offset)


def text_slices(text_range: TextRange) -> list[TextSlice]:
    """Return the text-node slices covering exactly the selected characters.

    Slices come back in document order and skip non-text nodes. A collapsed
    range yields no slices. Once a run of intersecting text nodes has
    started, enumeration stops at the first node that does not intersect,
    so trailing text picked up through ancestor siblings is never included.
    """
    if text_range.collapsed:
        return []

    start, end = text_range.start_container, text_range.end_container
    if start is end and is_text_node(start):
        lo = max(0, text_range.start_offset)
        hi = min(len(start), text_range.end_offset)
        return [TextSlice(start, lo, hi)] if lo < hi else []  # type: ignore[arg-type]

    ancestor = common_ancestor(start, end)
    if ancestor is None:
        return []
    root = ancestor if isinstance(ancestor, Tag) else ancestor.parent
    if root is None:
        return []

    order, subtree_end = _document_order(root)
    range_start = _boundary_key(start, text_range.start_offset, order, subtree_end)
    range_end = _boundary_key(end, text_range.end_offset, order, subtree_end)
    if range_start >= range_end:
        return []

    result: list[TextSlice] = []
    for node in iter_text_nodes(root):
        index = order[id(node)]
        intersects = (index, len(node)) > range_start and (index, 0) < range_end
        if not intersects:
            if result:
                break
            continue
        lo = range_start[1] if range_start[0] == index else 0
        hi = range_end[1] if range_end[0] == index else len(node)
        lo, hi = max(lo, 0), min(hi, len(node))
        if lo < hi:
            result.append(TextSlice(node, lo, hi))
    return result


def range_from_offsets(root: Tag, start: int, end: int) -> TextRange | None:
    """Build a range from character offsets into ``document_text(root)``.

    The start boundary sits in the text node holding character *start*, the
    end boundary in the node holding character ``end - 1``, so the range
    never begins or ends on an empty tail of a neighbouring node.

    Returns:
        The range, or None when the offsets are empty or out of bounds.
    """
    if start < 0 or end <= start:
        return None

    start_point: tuple[NavigableString, int] | None = None
    position = 0
    for node in iter_text_nodes(root):
        node_end = position + len(node)
        if start_point is None and start < node_end:
            start_point = (node, start - position)
        if start_point is not None and end <= node_end:
            return TextRange(start_point[0], start_point[1], node, end - position)
        position = node_end
    return None
