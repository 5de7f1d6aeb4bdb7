"""Render annotation stores as the plain-text change request.

Single file::

    <source>
    Document Title
    report.md
    </source>

    <annotations>
    1. [DELETE] "some text"
    2. [COMMENT on "Second paragraph"] Needs more detail.
    </annotations>

    Please apply these annotations to the source document.

Folder mode names the folder in ``<source>`` and groups annotations under a
``## <path>`` header per file, numbering continuously across files.
"""

# Pattern: Functional Core

from __future__ import annotations

from typing import TYPE_CHECKING

from brief.annotate.models import AnnotationKind

if TYPE_CHECKING:
    from collections.abc import Iterable

    from brief.annotate.models import Annotation
    from brief.annotate.store import AnnotationStore

DEFAULT_INSTRUCTION = "Please apply these annotations to the source document."
DEFAULT_FOLDER_INSTRUCTION = "Please apply these annotations to the source documents."


def format_annotation(number: int, annotation: Annotation) -> str:
    """One numbered export line."""
    if annotation.kind is AnnotationKind.STRIKE:
        return f'{number}. [DELETE] "{annotation.text}"'
    return f'{number}. [COMMENT on "{annotation.text}"] {annotation.comment}'


def format_single_file(
    title: str,
    filename: str,
    store: AnnotationStore,
    instruction: str = DEFAULT_INSTRUCTION,
) -> str:
    """Export one document's annotations as a flat list numbered from 1."""
    lines = ["<source>", title, filename, "</source>", "", "<annotations>"]
    lines.extend(
        format_annotation(number, annotation)
        for number, annotation in enumerate(store, start=1)
    )
    lines.extend(["</annotations>", "", instruction])
    return "\n".join(lines)


def format_folder(
    source: str,
    stores: Iterable[tuple[str, AnnotationStore]],
    instruction: str = DEFAULT_FOLDER_INSTRUCTION,
) -> str:
    """Export several documents under one folder header.

    Args:
        source: Folder or project name for the ``<source>`` block.
        stores: ``(path, store)`` pairs in folder-index order. Empty stores
            are skipped entirely, header included.
        instruction: Closing line for the downstream agent.

    Returns:
        Export text with one ``## <path>`` group per non-empty store and
        numbering that continues across groups.
    """
    lines = ["<source>", source, "</source>", "", "<annotations>"]
    number = 0
    first_group = True
    for path, store in stores:
        if store.is_empty():
            continue
        if not first_group:
            lines.append("")
        first_group = False
        lines.append(f"## {path}")
        for annotation in store:
            number += 1
            lines.append(format_annotation(number, annotation))
    lines.extend(["</annotations>", "", instruction])
    return "\n".join(lines)
