"""Database module for Brief.

Provides async SQLModel operations for the key-value state table.
"""

from __future__ import annotations

from brief.db.engine import close_db, get_engine, get_session, init_db
from brief.db.kv import delete_value, get_value, list_keys, set_value
from brief.db.models import KeyValueEntry

__all__ = [
    "KeyValueEntry",
    "close_db",
    "delete_value",
    "get_engine",
    "get_session",
    "get_value",
    "init_db",
    "list_keys",
    "set_value",
]
