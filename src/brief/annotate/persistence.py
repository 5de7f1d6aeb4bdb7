"""Persistence of annotation stores, the folder index and the last-viewed pointer.

Two mutually exclusive modes are persisted:

- single file: ``brief-last`` names the document to reopen and
  ``brief-ann-<hash>`` holds its annotations;
- folder: ``brief-folder-index`` records the folder, its file order, the
  annotated subset and the open file, and ``brief-folder-file-<hash>``
  holds each file's content and annotations.

Every mode transition goes through ``switch_to_folder`` or
``switch_to_single_file``, which erase the other mode's keys. Writes are
fire-and-forget asyncio tasks; the in-memory mirror kept here is the
authority for the running session.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError

from brief.annotate.store import AnnotationStore

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping

    from brief.storage import KeyValueStorage

logger = logging.getLogger(__name__)

LAST_DOC_KEY = "brief-last"
FOLDER_INDEX_KEY = "brief-folder-index"
SINGLE_FILE_PREFIX = "brief-ann-"
FOLDER_FILE_PREFIX = "brief-folder-file-"


class Mode(StrEnum):
    """Which kind of source the reader currently has open."""

    SINGLE_FILE = "single"
    FOLDER = "folder"


def hash_key(value: str) -> str:
    """Short, stable digest used to build per-document storage keys."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()[:16]


class FolderIndex(BaseModel):
    """Persisted description of an open folder.

    Attributes:
        source: Human-readable folder or project name.
        files: Paths in serialisation order (order first registered).
        annotated: Paths currently holding at least one annotation.
        current: Path of the open file.
    """

    source: str
    files: list[str] = Field(default_factory=list)
    annotated: list[str] = Field(default_factory=list)
    current: str | None = None

    def register(self, path: str) -> None:
        if path not in self.files:
            self.files.append(path)

    def mark_annotated(self, path: str) -> None:
        self.register(path)
        if path not in self.annotated:
            self.annotated.append(path)

    def unmark_annotated(self, path: str) -> None:
        if path in self.annotated:
            self.annotated.remove(path)

    def annotated_in_order(self) -> list[str]:
        """Annotated paths, sorted by file order."""
        return [p for p in self.files if p in self.annotated]


class LastDocument(BaseModel):
    """Single-file "last viewed" pointer."""

    filename: str
    content: str


class FolderFile(BaseModel):
    """Persisted slot for one folder file."""

    path: str
    content: str | None = None
    annotations: list[dict[str, Any]] = Field(default_factory=list)


@dataclass
class RestoredState:
    """What the reader should reopen after a reload.

    Single-file mode fills ``filename``/``content``; folder mode fills
    ``source``, ``files`` (path -> content, in index order) and ``current``.
    """

    mode: Mode
    filename: str | None = None
    content: str | None = None
    source: str | None = None
    files: dict[str, str] = field(default_factory=dict)
    current: str | None = None


def _single_file_key(content: str) -> str:
    return f"{SINGLE_FILE_PREFIX}{hash_key(content)}"


def _is_replaced(previous: LastDocument, current: LastDocument) -> bool:
    """Whether *current* is a new version of the same file as *previous*."""
    return previous.filename == current.filename and previous.content != current.content


class PersistenceLayer:
    """Keyed storage of per-document annotation stores.

    Attributes:
        mode: Current mode, or None before the first transition.
        folder_index: In-memory folder index (folder mode only).
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self.storage = storage
        self.mode: Mode | None = None
        self.folder_index: FolderIndex | None = None
        self._single: LastDocument | None = None
        self._folder_contents: dict[str, str] = {}
        self._pending: dict[str, asyncio.Task[None]] = {}

    # --- Keys ---

    def document_key(self, path: str | None) -> str:
        """Storage key for a document's annotations.

        Raises:
            RuntimeError: If no document of the requested kind is open.
        """
        if path is not None:
            return f"{FOLDER_FILE_PREFIX}{hash_key(path)}"
        if self._single is None:
            msg = "No single-file document is open"
            raise RuntimeError(msg)
        return _single_file_key(self._single.content)

    # --- Write scheduling ---

    def _schedule(self, key: str, operation: Callable[[], Awaitable[None]]) -> None:
        """Run *operation* in the background, superseding any pending write."""
        previous = self._pending.pop(key, None)
        if previous is not None and not previous.done():
            previous.cancel()

        async def run() -> None:
            try:
                await operation()
            except asyncio.CancelledError:
                raise
            except Exception:
                # In-memory state stays authoritative; storage catches up next write
                logger.exception("Failed to persist %s", key)
            finally:
                if self._pending.get(key) is task:
                    del self._pending[key]

        task = asyncio.get_running_loop().create_task(run())
        self._pending[key] = task

    def _write_json(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        self._schedule(key, lambda: self.storage.set(key, payload))

    def _delete(self, key: str) -> None:
        self._schedule(key, lambda: self.storage.delete(key))

    async def _settled(self, key: str) -> None:
        """Wait for a pending write to *key* so a read sees it."""
        task = self._pending.get(key)
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def flush(self) -> None:
        """Wait for every pending write to finish (shutdown, tests)."""
        while self._pending:
            await asyncio.gather(*self._pending.values(), return_exceptions=True)
            for key, task in list(self._pending.items()):
                if task.done():
                    del self._pending[key]

    async def _read_json(self, key: str) -> Any:
        await self._settled(key)
        raw = await self.storage.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring corrupt JSON under %s", key)
            return None

    # --- Documents ---

    def save_document(self, path: str | None, store: AnnotationStore) -> None:
        """Persist a document's annotations (fire-and-forget)."""
        key = self.document_key(path)
        records = store.to_records()
        if path is None:
            self._write_json(key, records)
            return
        slot = FolderFile(
            path=path, content=self._folder_contents.get(path), annotations=records
        )
        self._write_json(key, slot.model_dump())

    async def load_document(self, path: str | None) -> AnnotationStore:
        """Load a document's annotations, or an empty store."""
        key = self.document_key(path)
        data = await self._read_json(key)
        if data is None:
            return AnnotationStore()
        try:
            if path is None:
                return AnnotationStore.from_records(data)
            slot = FolderFile.model_validate(data)
            if slot.content is not None:
                self._folder_contents.setdefault(path, slot.content)
            return AnnotationStore.from_records(slot.annotations)
        except ValidationError:
            logger.warning("Ignoring malformed annotations under %s", key)
            return AnnotationStore()

    # --- Mode transitions ---

    async def switch_to_folder(self, name: str, files: Mapping[str, str]) -> None:
        """Enter folder mode for *files* (path -> content, in display order).

        Clears the single-file pointer. Files that already carry persisted
        annotations are listed as annotated again.
        """
        self.mode = Mode.FOLDER
        self._single = None
        self._delete(LAST_DOC_KEY)

        self._folder_contents = dict(files)
        index = FolderIndex(source=name, files=list(files))
        self.folder_index = index
        for path, content in files.items():
            store = await self.load_document(path)
            if not store.is_empty():
                index.mark_annotated(path)
            slot = FolderFile(
                path=path, content=content, annotations=store.to_records()
            )
            self._write_json(self.document_key(path), slot.model_dump())
        self._write_index()
        logger.info("Folder mode: %s (%d files)", name, len(files))

    def switch_to_single_file(self, filename: str, content: str) -> None:
        """Enter single-file mode, erasing the folder index."""
        self.mode = Mode.SINGLE_FILE
        self.folder_index = None
        self._folder_contents = {}
        self._delete(FOLDER_INDEX_KEY)

        previous = self._single
        current = LastDocument(filename=filename, content=content)
        self._single = current
        if previous is None:
            payload = current.model_dump_json()
            self._schedule(
                LAST_DOC_KEY, lambda: self._replace_last_pointer(current, payload)
            )
        else:
            if _is_replaced(previous, current):
                logger.info("Discarding annotations of the old %s", filename)
                self._delete(_single_file_key(previous.content))
            self._write_json(LAST_DOC_KEY, current.model_dump())
        logger.info("Single-file mode: %s", filename)

    async def _replace_last_pointer(self, current: LastDocument, payload: str) -> None:
        """Write the pointer, dropping the stored annotations it replaces."""
        raw = await self.storage.get(LAST_DOC_KEY)
        if raw is not None:
            try:
                previous = LastDocument.model_validate_json(raw)
            except ValidationError:
                previous = None
            if previous is not None and _is_replaced(previous, current):
                logger.info("Discarding annotations of the old %s", current.filename)
                await self.storage.delete(_single_file_key(previous.content))
        await self.storage.set(LAST_DOC_KEY, payload)

    # --- Folder index ---

    def _require_index(self) -> FolderIndex:
        if self.folder_index is None:
            msg = "Folder index is only available in folder mode"
            raise RuntimeError(msg)
        return self.folder_index

    def _write_index(self) -> None:
        self._write_json(FOLDER_INDEX_KEY, self._require_index().model_dump())

    def register_folder_file(self, path: str, content: str) -> None:
        """Add a newly discovered file to the end of the folder order."""
        index = self._require_index()
        self._folder_contents[path] = content
        if path not in index.files:
            index.register(path)
            self._write_index()

    def folder_content(self, path: str) -> str | None:
        return self._folder_contents.get(path)

    def set_current_folder_file(self, path: str) -> None:
        """Record the open folder file without changing the index order."""
        index = self._require_index()
        index.current = path
        self._write_index()

    def mark_folder_file_annotated(self, path: str) -> None:
        index = self._require_index()
        if path not in index.annotated:
            index.mark_annotated(path)
            self._write_index()

    def unmark_folder_file_annotated(self, path: str) -> None:
        index = self._require_index()
        if path in index.annotated:
            index.unmark_annotated(path)
            self._write_index()

    # --- Restore / reset ---

    async def restore(self) -> RestoredState | None:
        """Read the persisted pointer or index and re-enter that mode.

        Returns:
            The state to reopen, or None when nothing was persisted.
        """
        index_data = await self._read_json(FOLDER_INDEX_KEY)
        last_data = await self._read_json(LAST_DOC_KEY)

        if index_data is not None:
            try:
                index = FolderIndex.model_validate(index_data)
            except ValidationError:
                logger.warning("Ignoring malformed folder index")
                index = None
            if index is not None:
                if last_data is not None:
                    logger.warning("Both folder index and last document stored")
                    self._delete(LAST_DOC_KEY)
                return await self._restore_folder(index)

        if last_data is not None:
            try:
                last = LastDocument.model_validate(last_data)
            except ValidationError:
                logger.warning("Ignoring malformed last-document pointer")
                return None
            self.mode = Mode.SINGLE_FILE
            self._single = last
            return RestoredState(
                mode=Mode.SINGLE_FILE, filename=last.filename, content=last.content
            )
        return None

    async def _restore_folder(self, index: FolderIndex) -> RestoredState:
        self.mode = Mode.FOLDER
        self._single = None
        self.folder_index = index
        self._folder_contents = {}
        for path in index.files:
            data = await self._read_json(self.document_key(path))
            if data is None:
                continue
            try:
                slot = FolderFile.model_validate(data)
            except ValidationError:
                logger.warning("Ignoring malformed folder file slot for %s", path)
                continue
            if slot.content is not None:
                self._folder_contents[path] = slot.content
        return RestoredState(
            mode=Mode.FOLDER,
            source=index.source,
            files=dict(self._folder_contents),
            current=index.current,
        )

    async def clear_all_state(self) -> int:
        """Delete every persisted key. Returns the number of keys removed."""
        await self.flush()
        keys = await self.storage.keys("brief-")
        for key in keys:
            await self.storage.delete(key)
        self.mode = None
        self.folder_index = None
        self._single = None
        self._folder_contents = {}
        return len(keys)


# Global singleton instance
_persistence_layer: PersistenceLayer | None = None


def get_persistence_layer() -> PersistenceLayer:
    """Get the process-wide persistence layer on the configured storage."""
    global _persistence_layer
    if _persistence_layer is None:
        from brief.storage import get_storage

        _persistence_layer = PersistenceLayer(get_storage())
    return _persistence_layer


async def close_persistence_layer() -> None:
    """Flush pending writes and close the database engine."""
    global _persistence_layer
    if _persistence_layer is not None:
        await _persistence_layer.flush()
        _persistence_layer = None

    from brief.db.engine import close_db

    await close_db()
