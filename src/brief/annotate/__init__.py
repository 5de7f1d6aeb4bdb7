"""Annotation engine: selection mapping, markers, stores, anchoring, export."""

from brief.annotate.anchoring import AnchorResult, anchor
from brief.annotate.dom_marker import mark, set_comment, unmark, unmark_all
from brief.annotate.export import format_folder, format_single_file
from brief.annotate.models import Annotation, AnnotationKind
from brief.annotate.persistence import (
    FolderIndex,
    Mode,
    PersistenceLayer,
    RestoredState,
    get_persistence_layer,
)
from brief.annotate.range_mapper import (
    TextRange,
    TextSlice,
    document_text,
    range_from_offsets,
    text_slices,
)
from brief.annotate.session import AnnotationSession
from brief.annotate.store import AnnotationStore

__all__ = [
    "AnchorResult",
    "Annotation",
    "AnnotationKind",
    "AnnotationSession",
    "AnnotationStore",
    "FolderIndex",
    "Mode",
    "PersistenceLayer",
    "RestoredState",
    "TextRange",
    "TextSlice",
    "anchor",
    "document_text",
    "format_folder",
    "format_single_file",
    "get_persistence_layer",
    "mark",
    "range_from_offsets",
    "set_comment",
    "text_slices",
    "unmark",
    "unmark_all",
]
