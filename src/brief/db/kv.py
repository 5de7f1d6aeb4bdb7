"""Repository for KeyValueEntry CRUD operations."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlmodel import col, select

from brief.db.engine import get_session
from brief.db.models import KeyValueEntry


async def get_value(key: str) -> str | None:
    """Load the value stored under *key*, or None if absent."""
    async with get_session() as session:
        entry = await session.get(KeyValueEntry, key)
        return entry.value if entry else None


async def set_value(key: str, value: str) -> None:
    """Save or update the value under *key* (upsert)."""
    async with get_session() as session:
        entry = await session.get(KeyValueEntry, key)
        if entry:
            entry.value = value
            entry.updated_at = datetime.now(UTC)
        else:
            session.add(KeyValueEntry(key=key, value=value))
        await session.flush()


async def delete_value(key: str) -> bool:
    """Delete *key*. Returns True if a row was removed."""
    async with get_session() as session:
        entry = await session.get(KeyValueEntry, key)
        if entry is None:
            return False
        await session.delete(entry)
        return True


async def list_keys(prefix: str = "") -> list[str]:
    """All stored keys starting with *prefix*, sorted."""
    async with get_session() as session:
        statement = select(KeyValueEntry.key).order_by(col(KeyValueEntry.key))
        if prefix:
            statement = statement.where(col(KeyValueEntry.key).startswith(prefix))
        result = await session.exec(statement)
        return list(result.all())
