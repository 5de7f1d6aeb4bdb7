"""Reader page: rendered document, selection toolbar, export and clear.

Route: /

The browser only reports selections (as character offsets into the content
container) and marker clicks. Everything else, including the markers
themselves, is computed server-side by the annotation engine and pushed
back as HTML.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from nicegui import ui

from brief.annotate.models import AnnotationKind
from brief.annotate.persistence import Mode, get_persistence_layer
from brief.annotate.selection import (
    Rect,
    SelectionController,
    SelectionReport,
    Size,
    ToolbarState,
)
from brief.annotate.session import AnnotationSession
from brief.config import get_settings
from brief.pages.dialogs import show_comment_dialog, show_detail_dialog
from brief.sources import load_source

if TYPE_CHECKING:
    from pathlib import Path

    from nicegui.events import GenericEventArguments

logger = logging.getLogger(__name__)

_CSS = """
.brief-content { max-width: 46rem; margin: 0 auto; line-height: 1.7; }
.ann-strikethrough {
  text-decoration: line-through;
  text-decoration-color: rgba(220,50,30,0.7);
  text-decoration-thickness: 2px;
  background: rgba(220,50,30,0.06);
  cursor: pointer;
}
.ann-comment {
  background: rgba(255,180,0,0.2);
  border-bottom: 2px solid rgba(220,160,0,0.5);
  cursor: pointer;
}
.brief-toolbar { position: fixed; z-index: 2000; }
"""

# Set by ``brief PATH``; consumed by the first page load
_startup: dict[str, Path | None] = {"path": None}


def set_startup_source(path: Path) -> None:
    """Open *path* on the next page load instead of restoring the last state."""
    _startup["path"] = path


def _take_startup_source() -> Path | None:
    path = _startup["path"]
    _startup["path"] = None
    return path


def _parse_rect(raw: Any) -> Rect | None:
    if not isinstance(raw, dict):
        return None
    try:
        return Rect(
            top=float(raw["top"]),
            left=float(raw["left"]),
            width=float(raw["width"]),
            height=float(raw["height"]),
        )
    except (KeyError, TypeError, ValueError):
        return None


def parse_selection_event(args: Any) -> SelectionReport | None:
    """Validate a ``brief_selection`` payload from the browser.

    Expected args:
        start (int): Start offset within the content container
        end (int): End offset within the content container
        rect (dict): Selection bounding box (top, left, width, height)

    Returns:
        The report, or None for collapsed or malformed selections.
    """
    if not isinstance(args, dict):
        return None
    start, end = args.get("start"), args.get("end")
    if not isinstance(start, int) or not isinstance(end, int):
        return None
    if start < 0 or end <= start:
        return None
    return SelectionReport(start=start, end=end, rect=_parse_rect(args.get("rect")))


@dataclass
class ReaderState:
    """Per-client page state."""

    session: AnnotationSession
    controller: SelectionController | None = None
    content: Any = None
    toolbar: Any = None
    controls: Any = None
    count_label: Any = None
    file_list: Any = None
    title_label: Any = None


def _refresh(state: ReaderState) -> None:
    """Push the engine's HTML and control visibility to the browser."""
    session = state.session
    state.content.set_content(session.html())
    state.controls.set_visibility(session.has_annotations())
    state.count_label.set_text(str(session.annotation_count() or ""))
    document = session.document
    state.title_label.set_text(document.title if document else "Brief")
    _refresh_file_list(state)


def _refresh_file_list(state: ReaderState) -> None:
    session = state.session
    index = session.persistence.folder_index
    state.file_list.clear()
    state.file_list.set_visibility(session.mode is Mode.FOLDER and index is not None)
    if session.mode is not Mode.FOLDER or index is None:
        return
    with state.file_list:
        ui.label(index.source).classes("text-subtitle2 q-mb-sm")
        for path in index.files:
            marker = " •" if path in index.annotated else ""

            async def go(target: str = path) -> None:
                await _navigate(state, target)

            button = ui.button(f"{path}{marker}", on_click=go).props(
                "flat dense no-caps align=left"
            )
            if path == session.path:
                button.props("color=primary")
            else:
                button.props("color=grey-8")


async def _navigate(state: ReaderState, path: str) -> None:
    if path == state.session.path:
        return
    _hide_toolbar(state)
    await state.session.navigate(path)
    _refresh(state)


def _hide_toolbar(state: ReaderState) -> None:
    if state.controller is not None:
        state.controller.hide()
    state.toolbar.set_visibility(False)


async def _apply_toolbar(state: ReaderState, toolbar: ToolbarState) -> None:
    state.toolbar.set_visibility(toolbar.visible)
    if toolbar.visible and toolbar.position is not None:
        state.toolbar.style(
            f"top: {toolbar.position.top}px; left: {toolbar.position.left}px"
        )


def _clear_browser_selection() -> None:
    ui.run_javascript("window.getSelection().removeAllRanges();")


async def _strike(state: ReaderState) -> None:
    controller = state.controller
    if controller is None or controller.state.text_range is None:
        return
    annotation = state.session.create(
        AnnotationKind.STRIKE, controller.state.text_range
    )
    _hide_toolbar(state)
    _clear_browser_selection()
    if annotation is not None:
        _refresh(state)


async def _comment(state: ReaderState) -> None:
    controller = state.controller
    if controller is None or controller.state.text_range is None:
        return
    text_range = controller.state.text_range
    state.toolbar.set_visibility(False)
    controller.popover_open = True
    try:
        note = await show_comment_dialog()
    finally:
        controller.popover_open = False
    _hide_toolbar(state)
    if note is None:
        return
    annotation = state.session.create(AnnotationKind.COMMENT, text_range, note)
    _clear_browser_selection()
    if annotation is not None:
        _refresh(state)


async def _open_marker(state: ReaderState, e: GenericEventArguments) -> None:
    raw_id = e.args.get("id") if isinstance(e.args, dict) else None
    if not isinstance(raw_id, int):
        return
    annotation = state.session.annotation(raw_id)
    if annotation is None:
        return
    _hide_toolbar(state)
    action = await show_detail_dialog(annotation)
    if action == "remove":
        state.session.remove(raw_id)
    elif action == "edit":
        note = await show_comment_dialog(annotation.comment or "")
        if note is None:
            return
        state.session.edit(raw_id, note)
    else:
        return
    _refresh(state)


async def _copy_to_clipboard(text: str) -> bool:
    """Write *text* to the browser clipboard; True once the write resolved."""
    js = (
        f"navigator.clipboard.writeText({json.dumps(text)})"
        ".then(() => true, () => false)"
    )
    try:
        return bool(await ui.run_javascript(js, timeout=3.0))
    except (TimeoutError, OSError) as exc:
        logger.warning("Clipboard write failed (%s)", type(exc).__name__)
        return False


async def _export(state: ReaderState) -> None:
    if not state.session.has_annotations():
        return
    text = await state.session.export_text()
    if not await _copy_to_clipboard(text):
        ui.notify("Could not copy annotations to the clipboard", type="negative")
        return
    toast_ms = int(get_settings().annotate.toast_seconds * 1000)
    ui.notify("Annotations copied", timeout=toast_ms)


def _clear(state: ReaderState) -> None:
    _hide_toolbar(state)
    state.session.clear_all()
    _refresh(state)


async def _open_initial(session: AnnotationSession) -> None:
    """Open the CLI-provided source, or restore the last viewed state."""
    path = _take_startup_source()
    if path is None:
        await session.restore()
        return
    try:
        source = load_source(path)
    except (FileNotFoundError, ValueError) as exc:
        logger.warning("Cannot open %s: %s", path, exc)
        ui.notify(f"Cannot open {path}: {exc}", type="negative")
        await session.restore()
        return
    if source.is_folder:
        await session.open_folder(source.name, source.files)
    else:
        content = source.files[source.name]
        await session.open_single_file(source.name, content)


def _selection_js(container_id: int) -> str:
    return f"""
        const container = getHtmlElement({container_id});

        function offsetsOf(range) {{
            const pre = document.createRange();
            pre.selectNodeContents(container);
            pre.setEnd(range.startContainer, range.startOffset);
            const start = pre.toString().length;
            return {{start: start, end: start + range.toString().length}};
        }}

        function reportSelection() {{
            const sel = window.getSelection();
            if (!sel || sel.isCollapsed || !sel.rangeCount) {{
                emitEvent('brief_selection', {{}});
                return;
            }}
            const range = sel.getRangeAt(0);
            if (!container.contains(range.commonAncestorContainer)) return;
            const r = range.getBoundingClientRect();
            const offsets = offsetsOf(range);
            emitEvent('brief_selection', {{
                start: offsets.start,
                end: offsets.end,
                rect: {{top: r.top, left: r.left, width: r.width, height: r.height}},
                viewport: {{width: window.innerWidth, height: window.innerHeight}},
            }});
        }}

        container.addEventListener('mouseup', reportSelection);
        container.addEventListener('touchend', reportSelection);
        container.addEventListener('click', function(e) {{
            const marker = e.target.closest('[data-ann-id]');
            if (!marker) return;
            e.stopPropagation();
            emitEvent('brief_marker', {{id: Number(marker.dataset.annId)}});
        }});
        container.setAttribute('data-handlers-ready', 'true');
    """


@ui.page("/")
async def reader_page() -> None:
    """Reader: annotate the open document and export the change request."""
    settings = get_settings()
    session = AnnotationSession(
        get_persistence_layer(),
        instruction=settings.export.instruction,
        folder_instruction=settings.export.folder_instruction,
    )
    state = ReaderState(session=session)

    ui.add_css(_CSS)

    with ui.header().classes("items-center justify-between bg-grey-10"):
        state.title_label = ui.label("Brief").classes("text-h6")
        with ui.row().classes("gap-2") as controls:
            with ui.button(on_click=lambda: _export(state)).props(
                'no-caps data-testid="btn-export"'
            ):
                ui.label("Export")
                state.count_label = ui.badge("").props("color=grey-7")
            ui.button("Clear", on_click=lambda: _clear(state)).props(
                'flat no-caps color=grey-4 data-testid="btn-clear"'
            )
        state.controls = controls

    with ui.row().classes("w-full no-wrap"):
        state.file_list = ui.column().classes("w-56 shrink-0 gap-0")
        state.content = (
            ui.html("", sanitize=False)
            .classes("brief-content grow")
            .props('data-testid="content"')
        )

    with ui.card().classes("brief-toolbar row q-pa-xs bg-grey-10") as toolbar:
        ui.button("Strike", on_click=lambda: _strike(state)).props(
            "flat no-caps color=white"
        )
        ui.button("Comment", on_click=lambda: _comment(state)).props(
            "flat no-caps color=white"
        )
    state.toolbar = toolbar
    toolbar.set_visibility(False)

    def resolve(report: SelectionReport) -> Any:
        return session.slices_for_offsets(report.start, report.end)

    state.controller = SelectionController(
        resolve,
        lambda toolbar_state: _apply_toolbar(state, toolbar_state),
        debounce_seconds=settings.annotate.selection_debounce_ms / 1000,
        toolbar_size=Size(width=190, height=40),
    )

    def handle_selection(e: GenericEventArguments) -> None:
        """Forward a browser selection report to the debouncing controller."""
        controller = state.controller
        assert controller is not None
        viewport = e.args.get("viewport") if isinstance(e.args, dict) else None
        if isinstance(viewport, dict):
            try:
                controller.viewport = Size(
                    width=float(viewport["width"]), height=float(viewport["height"])
                )
            except (KeyError, TypeError, ValueError):
                pass
        controller.report(parse_selection_event(e.args))

    async def handle_marker(e: GenericEventArguments) -> None:
        await _open_marker(state, e)

    ui.on("brief_selection", handle_selection)
    ui.on("brief_marker", handle_marker)

    await _open_initial(session)
    _refresh(state)

    # Wait for WebSocket connection before running JavaScript
    await ui.context.client.connected()
    await ui.run_javascript(_selection_js(state.content.id))
