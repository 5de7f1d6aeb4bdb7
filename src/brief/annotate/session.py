"""The annotation engine as seen by UI chrome.

An ``AnnotationSession`` owns the rendered tree of the open document, that
document's AnnotationStore and the PersistenceLayer. Marker changes happen
synchronously on the tree; persistence is scheduled in the background and
never rolls back an in-memory change.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from bs4 import BeautifulSoup
from pydantic import ValidationError

from brief.annotate import dom_marker
from brief.annotate.anchoring import AnchorResult, anchor
from brief.annotate.export import (
    DEFAULT_FOLDER_INSTRUCTION,
    DEFAULT_INSTRUCTION,
    format_folder,
    format_single_file,
)
from brief.annotate.models import AnnotationKind
from brief.annotate.persistence import Mode
from brief.annotate.range_mapper import range_from_offsets, text_slices
from brief.annotate.store import AnnotationStore
from brief.render import RenderedDocument, render_markdown

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from bs4 import Tag

    from brief.annotate.models import Annotation
    from brief.annotate.persistence import PersistenceLayer
    from brief.annotate.range_mapper import TextRange, TextSlice

logger = logging.getLogger(__name__)

CONTENT_ID = "content"

type Renderer = Callable[[str, str], RenderedDocument]


class AnnotationSession:
    """Annotate one open document at a time, in single-file or folder mode.

    Attributes:
        persistence: Storage of stores, folder index and last-viewed pointer.
        document: Rendered form of the open document, if any.
        path: Folder-relative path of the open file (None in single-file mode).
        store: Annotations of the open document.
        root: Live ``<div id="content">`` element holding the rendered HTML.
    """

    def __init__(
        self,
        persistence: PersistenceLayer,
        renderer: Renderer = render_markdown,
        instruction: str = DEFAULT_INSTRUCTION,
        folder_instruction: str = DEFAULT_FOLDER_INSTRUCTION,
    ) -> None:
        self.persistence = persistence
        self.renderer = renderer
        self.instruction = instruction
        self.folder_instruction = folder_instruction
        self.document: RenderedDocument | None = None
        self.path: str | None = None
        self.store = AnnotationStore()
        self._soup: BeautifulSoup | None = None
        self.root: Tag | None = None

    # --- Rendering ---

    @property
    def mode(self) -> Mode | None:
        return self.persistence.mode

    def _render(self, content: str, filename: str) -> None:
        self.document = self.renderer(content, filename)
        self._soup = BeautifulSoup(
            f'<div id="{CONTENT_ID}">{self.document.html}</div>', "html.parser"
        )
        self.root = self._soup.find("div", id=CONTENT_ID)

    def html(self) -> str:
        """Inner HTML of the content root, markers included."""
        if self.root is None:
            return ""
        return self.root.decode_contents()

    # --- Opening documents ---

    async def open_single_file(self, filename: str, content: str) -> AnchorResult:
        """Open a lone file, leaving folder mode if it was active."""
        self.on_document_will_unload()
        self.persistence.switch_to_single_file(filename, content)
        self.path = None
        self._render(content, filename)
        return await self.on_document_loaded(None)

    async def open_folder(
        self, name: str, files: Mapping[str, str], start: str | None = None
    ) -> AnchorResult:
        """Open a folder of files (path -> content) at *start* or its first file.

        Raises:
            ValueError: If *files* is empty or *start* is not one of them.
        """
        if not files:
            msg = "A folder needs at least one file"
            raise ValueError(msg)
        start = start if start is not None else next(iter(files))
        if start not in files:
            msg = f"{start!r} is not in the folder"
            raise ValueError(msg)
        self.on_document_will_unload()
        await self.persistence.switch_to_folder(name, files)
        return await self._show_folder_file(start)

    async def navigate(self, path: str, content: str | None = None) -> AnchorResult:
        """Move to another file of the open folder.

        Unloads the outgoing document, swaps the rendered content and then
        anchors the incoming annotations, strictly in that order.

        Raises:
            RuntimeError: If no folder is open.
            KeyError: If *path* is unknown and no *content* is given.
        """
        if self.mode is not Mode.FOLDER:
            msg = "navigate() needs folder mode"
            raise RuntimeError(msg)
        if content is not None:
            self.persistence.register_folder_file(path, content)
        elif self.persistence.folder_content(path) is None:
            raise KeyError(path)
        self.on_document_will_unload()
        return await self._show_folder_file(path)

    async def _show_folder_file(self, path: str) -> AnchorResult:
        content = self.persistence.folder_content(path)
        if content is None:
            raise KeyError(path)
        self.persistence.set_current_folder_file(path)
        self.path = path
        self._render(content, path)
        return await self.on_document_loaded(path)

    async def restore(self) -> AnchorResult | None:
        """Reopen whatever the persisted pointer or folder index names."""
        state = await self.persistence.restore()
        if state is None:
            return None
        if state.mode is Mode.SINGLE_FILE:
            assert state.filename is not None and state.content is not None
            self.path = None
            self._render(state.content, state.filename)
            return await self.on_document_loaded(None)
        current = state.current if state.current in state.files else None
        if current is None and state.files:
            current = next(iter(state.files))
        if current is None:
            logger.warning("Folder %s restored without any file content", state.source)
            return None
        return await self._show_folder_file(current)

    # --- Navigation hooks ---

    def on_document_will_unload(self) -> None:
        """Strip live markers and persist the outgoing document's store."""
        if self.root is not None:
            dom_marker.unmark_all(self.root)
        if self.document is not None and self._has_slot():
            self.persistence.save_document(self.path, self.store)
        self.store = AnnotationStore()

    async def on_document_loaded(self, path: str | None) -> AnchorResult:
        """Load the stored annotations of *path* and anchor them in the tree."""
        self.store = await self.persistence.load_document(path)
        if self.root is None:
            return AnchorResult()
        result = anchor(self.root, self.store)
        if result.dropped:
            # Persist without the annotations that no longer match
            self._persist()
        return result

    def _has_slot(self) -> bool:
        if self.path is not None:
            return self.mode is Mode.FOLDER
        return self.mode is Mode.SINGLE_FILE

    def _persist(self, was_empty: bool | None = None) -> None:
        self.persistence.save_document(self.path, self.store)
        if self.mode is not Mode.FOLDER or self.path is None:
            return
        is_empty = self.store.is_empty()
        if was_empty is None or was_empty != is_empty:
            if is_empty:
                self.persistence.unmark_folder_file_annotated(self.path)
            else:
                self.persistence.mark_folder_file_annotated(self.path)

    # --- Annotation actions ---

    def slices_for_offsets(
        self, start: int, end: int
    ) -> tuple[TextRange, list[TextSlice]] | None:
        """Resolve character offsets from the browser into a range and slices."""
        if self.root is None:
            return None
        text_range = range_from_offsets(self.root, start, end)
        if text_range is None:
            return None
        return text_range, text_slices(text_range)

    def create(
        self,
        kind: AnnotationKind,
        text_range: TextRange,
        comment: str | None = None,
    ) -> Annotation | None:
        """Annotate the selected range.

        Returns:
            The new annotation, or None when the range covers no text, no
            document is open, or a comment is blank.
        """
        if self.root is None:
            return None
        slices = text_slices(text_range)
        if not slices:
            return None
        if kind is AnnotationKind.COMMENT:
            comment = (comment or "").strip()
            if not comment:
                return None
        else:
            comment = None
        quoted = "".join(s.text for s in slices)
        was_empty = self.store.is_empty()
        try:
            annotation = self.store.create(kind, quoted, comment)
        except ValidationError:
            logger.warning("Rejected %s annotation on %r", kind.value, quoted[:60])
            return None
        dom_marker.mark(slices, kind, annotation.id, comment)
        self._persist(was_empty)
        return annotation

    def create_from_offsets(
        self,
        kind: AnnotationKind,
        start: int,
        end: int,
        comment: str | None = None,
    ) -> Annotation | None:
        """``create`` for a selection given as character offsets."""
        resolved = self.slices_for_offsets(start, end)
        if resolved is None:
            return None
        return self.create(kind, resolved[0], comment)

    def edit(self, annotation_id: int, comment: str) -> bool:
        """Replace a comment's text. False for unknown ids and strikes."""
        comment = comment.strip()
        if not self.store.update(annotation_id, comment):
            return False
        if self.root is not None:
            dom_marker.set_comment(self.root, annotation_id, comment)
        self._persist(was_empty=False)
        return True

    def remove(self, annotation_id: int) -> bool:
        """Delete an annotation and every one of its markers."""
        if not self.store.remove(annotation_id):
            return False
        if self.root is not None:
            dom_marker.unmark(self.root, annotation_id)
        self._persist(was_empty=False)
        return True

    def clear_all(self) -> None:
        """Remove every annotation of the open document.

        In folder mode the other annotated files are emptied as well, since
        they keep the export/clear controls visible.
        """
        if self.root is not None:
            dom_marker.unmark_all(self.root)
        was_empty = self.store.is_empty()
        self.store.clear()
        if self.document is not None:
            self._persist(was_empty)
        index = self.persistence.folder_index
        if self.mode is not Mode.FOLDER or index is None:
            return
        for path in list(index.annotated):
            if path == self.path:
                continue
            self.persistence.save_document(path, AnnotationStore())
            self.persistence.unmark_folder_file_annotated(path)

    def annotation(self, annotation_id: int) -> Annotation | None:
        return self.store.get(annotation_id)

    # --- Export ---

    def has_annotations(self) -> bool:
        """Whether export/clear controls should be shown.

        In folder mode any annotated file counts, not only the open one.
        """
        if not self.store.is_empty():
            return True
        index = self.persistence.folder_index
        return self.mode is Mode.FOLDER and index is not None and bool(index.annotated)

    def annotation_count(self) -> int:
        return len(self.store)

    async def export_text(self) -> str:
        """Render the change request for the open document or folder.

        Raises:
            RuntimeError: If there is nothing to export.
        """
        if not self.has_annotations() or self.document is None:
            msg = "Nothing to export"
            raise RuntimeError(msg)
        index = self.persistence.folder_index
        if self.mode is Mode.FOLDER and index is not None:
            stores: list[tuple[str, AnnotationStore]] = []
            for path in index.files:
                if path == self.path:
                    stores.append((path, self.store))
                elif path in index.annotated:
                    stores.append((path, await self.persistence.load_document(path)))
            return format_folder(index.source, stores, self.folder_instruction)
        return format_single_file(
            self.document.title, self.document.filename, self.store, self.instruction
        )
