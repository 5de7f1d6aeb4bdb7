"""Wrap text slices in annotation markers and unwrap them again.

Markers are ``<span class="ann-<kind>" data-ann-id="N">`` elements. One
annotation owns one marker per slice, so a selection crossing a paragraph
or inline-formatting boundary yields several markers sharing an id.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup, NavigableString, Tag

from brief.annotate.models import AnnotationKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from brief.annotate.range_mapper import TextSlice

logger = logging.getLogger(__name__)

MARKER_ID_ATTR = "data-ann-id"
MARKER_CLASS_PREFIX = "ann-"


def marker_class(kind: AnnotationKind) -> str:
    """CSS class for markers of *kind* (``ann-strikethrough``/``ann-comment``)."""
    return f"{MARKER_CLASS_PREFIX}{kind.value}"


def _owning_soup(node: NavigableString | Tag) -> BeautifulSoup:
    parent = node.parent
    while parent is not None:
        if isinstance(parent, BeautifulSoup):
            return parent
        parent = parent.parent
    # Detached fragment: any soup can mint tags
    return BeautifulSoup("", "html.parser")


def _isolate(node: NavigableString, start: int, end: int) -> NavigableString:
    """Split *node* so ``node[start:end]`` becomes a text node of its own."""
    text = str(node)
    if start == 0 and end >= len(text):
        return node
    target = NavigableString(text[start:end])
    parts: list[NavigableString] = []
    if start > 0:
        parts.append(NavigableString(text[:start]))
    parts.append(target)
    if end < len(text):
        parts.append(NavigableString(text[end:]))
    node.replace_with(*parts)
    return target


def mark(
    slices: Iterable[TextSlice],
    kind: AnnotationKind,
    annotation_id: int,
    comment: str | None = None,
) -> list[Tag]:
    """Wrap every slice in a marker tagged with *annotation_id*.

    The visible text is unchanged: each slice is split out of its text node
    and moved, untouched, inside the new marker.

    Args:
        slices: Output of ``text_slices`` for a live tree.
        kind: Annotation kind, selects the marker class.
        annotation_id: Identity shared by every marker of this annotation.
        comment: Tooltip text for comment markers.

    Returns:
        The created marker elements in document order.
    """
    markers: list[Tag] = []
    for text_slice in slices:
        if text_slice.start >= text_slice.end or text_slice.node.parent is None:
            continue
        target = _isolate(text_slice.node, text_slice.start, text_slice.end)
        attrs = {"class": marker_class(kind), MARKER_ID_ATTR: str(annotation_id)}
        if comment:
            attrs["title"] = comment
        marker = _owning_soup(target).new_tag("span", attrs=attrs)
        target.wrap(marker)
        markers.append(marker)
    return markers


def find_markers(root: Tag, annotation_id: int) -> list[Tag]:
    """All markers of one annotation under *root*, in document order."""
    return root.find_all(attrs={MARKER_ID_ATTR: str(annotation_id)})


def _unwrap(marker: Tag) -> None:
    parent = marker.parent
    marker.unwrap()
    if parent is not None:
        # Re-join the text nodes that mark() split apart
        parent.smooth()


def unmark(root: Tag, annotation_id: int) -> int:
    """Unwrap every marker of *annotation_id*, returning how many were removed.

    Safe to call when no marker exists.
    """
    markers = find_markers(root, annotation_id)
    for marker in markers:
        _unwrap(marker)
    return len(markers)


def unmark_all(root: Tag) -> int:
    """Unwrap every annotation marker under *root*."""
    markers = root.find_all(attrs={MARKER_ID_ATTR: True})
    # Innermost first so nested markers unwrap cleanly
    for marker in reversed(markers):
        _unwrap(marker)
    if markers:
        logger.debug("Removed %d markers", len(markers))
    return len(markers)


def set_comment(root: Tag, annotation_id: int, comment: str) -> None:
    """Rewrite the tooltip on every marker of an edited comment."""
    for marker in find_markers(root, annotation_id):
        marker["title"] = comment
