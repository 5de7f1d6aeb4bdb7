"""SQLModel database models for Brief.

A single key-value table holds all persisted reader state.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import Column, DateTime, String, Text
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _timestamptz_column() -> Any:
    """Create a timezone-aware timestamp column."""
    return Column(DateTime(timezone=True), nullable=False)


class KeyValueEntry(SQLModel, table=True):
    """One persisted key and its JSON value.

    String primary key: the storage key is the identity.
    """

    __tablename__ = "kv_entry"

    key: str = Field(
        sa_column=Column(String(255), primary_key=True, nullable=False),
    )
    value: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(
        default_factory=_utcnow, sa_column=_timestamptz_column()
    )
