"""Re-apply persisted annotations onto a freshly rendered tree.

Rendered content has no stable node identity across loads, so each
annotation is re-located by searching for its quoted text. The search for
each annotation starts where the previous successful match ended, so N
annotations quoting the same phrase land on N distinct occurrences in
document order. When nothing is found ahead, the search restarts at the top
of the document and skips occurrences already held by an annotation with
the same quoted text.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from brief.annotate.dom_marker import mark, unmark_all
from brief.annotate.range_mapper import document_text, range_from_offsets, text_slices

if TYPE_CHECKING:
    from bs4 import Tag

    from brief.annotate.models import Annotation
    from brief.annotate.store import AnnotationStore

logger = logging.getLogger(__name__)


@dataclass
class AnchorResult:
    """Outcome of one anchoring pass.

    Attributes:
        anchored: Annotations whose markers were re-applied, in order.
        dropped: Annotations whose quoted text could not be found.
        spans: Character span ``(start, end)`` matched for each anchored id.
    """

    anchored: list[Annotation] = field(default_factory=list)
    dropped: list[Annotation] = field(default_factory=list)
    spans: dict[int, tuple[int, int]] = field(default_factory=dict)


def _find_free(text: str, quoted: str, start: int, taken: set[int]) -> int:
    """First occurrence of *quoted* at or after *start* not in *taken*."""
    position = text.find(quoted, start)
    while position >= 0 and position in taken:
        position = text.find(quoted, position + 1)
    return position


def anchor(root: Tag, store: AnnotationStore) -> AnchorResult:
    """Mark every locatable annotation of *store* inside *root*.

    Any markers already present under *root* are removed first, so running
    the pass twice leaves the same tree. Annotations that cannot be located
    are removed from *store* and reported in ``dropped``; content drift is
    expected and is logged, not raised.

    Args:
        root: The rendered content element.
        store: Persisted annotations for this document, in creation order.

    Returns:
        AnchorResult describing what was anchored and what was dropped.
    """
    unmark_all(root)
    result = AnchorResult()

    # Offsets stay valid while marking: markers add elements, never characters
    text = document_text(root)
    cursor = 0
    # Start offsets already claimed, per quoted text
    taken: dict[str, set[int]] = {}

    for annotation in store:
        claimed = taken.setdefault(annotation.text, set())
        start = _find_free(text, annotation.text, cursor, claimed)
        if start < 0:
            start = _find_free(text, annotation.text, 0, claimed)
        if start < 0:
            result.dropped.append(annotation)
            continue
        end = start + len(annotation.text)
        text_range = range_from_offsets(root, start, end)
        slices = text_slices(text_range) if text_range is not None else []
        if not slices:
            result.dropped.append(annotation)
            continue
        mark(slices, annotation.kind, annotation.id, annotation.comment)
        result.anchored.append(annotation)
        result.spans[annotation.id] = (start, end)
        claimed.add(start)
        cursor = end

    if result.dropped:
        store.retain({a.id for a in result.anchored})
        for annotation in result.dropped:
            logger.info(
                "Dropped annotation %d: quoted text %r no longer in document",
                annotation.id,
                annotation.text[:60],
            )
    return result
