"""Ordered, per-document annotation store."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from brief.annotate.models import ANNOTATION_LIST, Annotation, AnnotationKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

logger = logging.getLogger(__name__)


class AnnotationStore:
    """Annotations for one logical document, in creation order.

    Ids increase monotonically for the lifetime of the store and are never
    reused after removal. The store holds no reference into any rendered
    tree; anchoring is the only bridge between the two.
    """

    def __init__(self, annotations: Iterable[Annotation] = ()) -> None:
        self._annotations: list[Annotation] = list(annotations)
        self._counter = max((a.id for a in self._annotations), default=0)

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> AnnotationStore:
        """Rebuild a store from persisted JSON records.

        Raises:
            pydantic.ValidationError: If a record is malformed.
        """
        return cls(ANNOTATION_LIST.validate_python(list(records)))

    def to_records(self) -> list[dict[str, Any]]:
        """Serialise every annotation, in order, to its persisted shape."""
        return [a.to_record() for a in self._annotations]

    def create(
        self, kind: AnnotationKind, text: str, comment: str | None = None
    ) -> Annotation:
        """Append a new annotation and return it.

        Raises:
            pydantic.ValidationError: If *comment* does not match *kind*.
        """
        annotation = Annotation(
            id=self._counter + 1, kind=kind, text=text, comment=comment
        )
        self._counter = annotation.id
        self._annotations.append(annotation)
        return annotation

    def get(self, annotation_id: int) -> Annotation | None:
        for annotation in self._annotations:
            if annotation.id == annotation_id:
                return annotation
        return None

    def update(self, annotation_id: int, comment: str) -> bool:
        """Replace the comment of a comment annotation.

        Returns:
            False (nothing changed) when the id is unknown, the annotation is
            a strike, or the new comment is blank.
        """
        for index, annotation in enumerate(self._annotations):
            if annotation.id != annotation_id:
                continue
            if annotation.kind is not AnnotationKind.COMMENT or not comment.strip():
                return False
            self._annotations[index] = annotation.model_copy(
                update={"comment": comment}
            )
            return True
        logger.debug("update: annotation %s not found", annotation_id)
        return False

    def remove(self, annotation_id: int) -> bool:
        """Remove an annotation. Returns False if the id is unknown."""
        for index, annotation in enumerate(self._annotations):
            if annotation.id == annotation_id:
                del self._annotations[index]
                return True
        return False

    def retain(self, keep_ids: set[int]) -> list[Annotation]:
        """Drop every annotation whose id is not in *keep_ids*.

        Returns:
            The dropped annotations, in their original order.
        """
        dropped = [a for a in self._annotations if a.id not in keep_ids]
        self._annotations = [a for a in self._annotations if a.id in keep_ids]
        return dropped

    def clear(self) -> None:
        self._annotations.clear()

    def list(self) -> list[Annotation]:
        return list(self._annotations)

    def is_empty(self) -> bool:
        return not self._annotations

    def __len__(self) -> int:
        return len(self._annotations)

    def __iter__(self) -> Iterator[Annotation]:
        return iter(list(self._annotations))
