"""Key-value storage backends for persisted reader state.

Every value is a JSON string. Backends are async so the reader never blocks
on a write; the persistence layer schedules writes as background tasks.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from collections.abc import Awaitable

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A storage backend failed to read or write a key."""


class StorageQuotaExceededError(StorageError):
    """A write would exceed the backend's size quota."""


class KeyValueStorage(Protocol):
    """Minimal async key-value interface (the localStorage shape)."""

    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, prefix: str = "") -> list[str]: ...


class MemoryStorage:
    """Dict-backed storage, optionally bounded by a byte quota.

    The quota counts UTF-8 bytes of keys plus values, mirroring the way a
    browser rejects ``localStorage.setItem`` once its origin quota is full.
    """

    def __init__(self, quota_bytes: int | None = None) -> None:
        self._data: dict[str, str] = {}
        self.quota_bytes = quota_bytes

    def _size_with(self, key: str, value: str) -> int:
        size = sum(
            len(k.encode()) + len(v.encode())
            for k, v in self._data.items()
            if k != key
        )
        return size + len(key.encode()) + len(value.encode())

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None and self._size_with(key, value) > (
            self.quota_bytes
        ):
            msg = f"Writing {key!r} exceeds the {self.quota_bytes}-byte quota"
            raise StorageQuotaExceededError(msg)
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class DatabaseStorage:
    """Storage on the ``kv_entry`` table through the async SQLModel engine."""

    async def get(self, key: str) -> str | None:
        from brief.db.kv import get_value

        return await _guard(get_value(key), key)

    async def set(self, key: str, value: str) -> None:
        from brief.db.kv import set_value

        await _guard(set_value(key, value), key)

    async def delete(self, key: str) -> None:
        from brief.db.kv import delete_value

        await _guard(delete_value(key), key)

    async def keys(self, prefix: str = "") -> list[str]:
        from brief.db.kv import list_keys

        return await _guard(list_keys(prefix), prefix)


async def _guard[T](operation: Awaitable[T], key: str) -> T:
    """Await a database operation, wrapping driver errors in StorageError."""
    from sqlalchemy.exc import SQLAlchemyError

    try:
        return await operation
    except SQLAlchemyError as exc:
        msg = f"Database storage failed for {key!r}"
        raise StorageError(msg) from exc


def get_storage() -> KeyValueStorage:
    """Build the backend selected by ``STORAGE__BACKEND``."""
    from brief.config import get_settings

    backend = get_settings().storage.backend
    logger.info("Using %s storage backend", backend)
    if backend == "memory":
        return MemoryStorage()
    return DatabaseStorage()
