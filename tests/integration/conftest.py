"""Integration test configuration.

Points the database engine at a throwaway SQLite file per test.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import pytest_asyncio

from brief.config import get_settings
from brief.db.engine import close_db, get_engine, init_db

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path


@pytest_asyncio.fixture
async def sqlite_db(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> AsyncIterator[Path]:
    """Initialise the engine on a fresh SQLite database file."""
    db_path = tmp_path / "brief.db"
    monkeypatch.setenv("STORAGE__DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("STORAGE__BACKEND", "database")
    get_settings.cache_clear()

    await init_db()
    assert get_engine() is not None, "Engine should be initialized after init_db()"

    yield db_path

    await close_db()
    get_settings.cache_clear()
