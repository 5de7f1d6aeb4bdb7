"""Reusable dialog components for the reader page."""

from __future__ import annotations

from typing import Literal

from nicegui import ui

from brief.annotate.models import Annotation, AnnotationKind

type DetailAction = Literal["edit", "remove"]


async def show_comment_dialog(initial: str = "") -> str | None:
    """Show awaitable modal for writing or editing a comment.

    Cmd/Ctrl+Enter saves, Escape cancels. A blank note does not submit.

    Args:
        initial: Existing comment when editing.

    Returns:
        The stripped comment text, or None if cancelled.
    """
    with ui.dialog() as dialog, ui.card().classes("w-80"):
        textarea = (
            ui.textarea(placeholder="Add your note…", value=initial)
            .props('autofocus outlined autogrow data-testid="comment-text"')
            .classes("w-full")
        )

        def save() -> None:
            note = (textarea.value or "").strip()
            if note:
                dialog.submit(note)

        textarea.on("keydown.ctrl.enter", save)
        textarea.on("keydown.meta.enter", save)

        with ui.row().classes("w-full justify-end gap-2"):
            ui.button("Cancel", on_click=lambda: dialog.submit(None)).props("flat")
            ui.button("Save", on_click=save).props(
                'color=primary data-testid="comment-save"'
            )

    dialog.open()
    result = await dialog
    dialog.clear()
    return result


async def show_detail_dialog(annotation: Annotation) -> DetailAction | None:
    """Show the quoted text and note of a marker with Remove / Edit actions.

    Edit is only offered for comment annotations.

    Returns:
        "edit", "remove", or None if dismissed.
    """
    with ui.dialog() as dialog, ui.card().classes("w-72"):
        ui.label(f"“{annotation.text}”").classes(
            "text-sm italic text-gray-500 truncate w-full"
        )
        if annotation.comment:
            ui.label(annotation.comment).classes("text-sm").props(
                'data-testid="detail-comment"'
            )
        with ui.row().classes("w-full justify-end gap-2"):
            ui.button("Remove", on_click=lambda: dialog.submit("remove")).props(
                "flat"
            )
            if annotation.kind is AnnotationKind.COMMENT:
                ui.button("Edit", on_click=lambda: dialog.submit("edit")).props(
                    "color=primary"
                )

    dialog.open()
    result = await dialog
    dialog.clear()
    return result
