"""Annotation records shared by the store, persistence and export layers."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, model_validator


class AnnotationKind(StrEnum):
    """The two kinds of mark a reader can make.

    Values double as the persisted ``type`` field and the marker CSS class
    suffix (``ann-strikethrough`` / ``ann-comment``).
    """

    STRIKE = "strikethrough"
    COMMENT = "comment"


class Annotation(BaseModel):
    """One reader mark bound to the exact text it was made on.

    ``text`` is immutable once created; edits only ever replace ``comment``.
    List position in the owning store is the creation order.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: int = Field(ge=1)
    kind: AnnotationKind = Field(alias="type")
    text: str = Field(min_length=1)
    comment: str | None = None

    @model_validator(mode="after")
    def comment_matches_kind(self) -> Annotation:
        if self.kind is AnnotationKind.COMMENT:
            if self.comment is None or not self.comment.strip():
                msg = "comment annotations require a non-empty comment"
                raise ValueError(msg)
        elif self.comment is not None:
            msg = "strikethrough annotations cannot carry a comment"
            raise ValueError(msg)
        return self

    def to_record(self) -> dict[str, Any]:
        """Serialise to the persisted JSON shape."""
        return self.model_dump(mode="json", by_alias=True)


ANNOTATION_LIST = TypeAdapter(list[Annotation])
