"""Shared pytest fixtures for Brief tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from brief.annotate.persistence import PersistenceLayer
from brief.config import get_settings
from brief.storage import MemoryStorage

if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def _fresh_settings() -> Generator[None]:
    """Drop cached Settings so env overrides in one test never leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def storage() -> MemoryStorage:
    """Unbounded in-memory key-value storage."""
    return MemoryStorage()


@pytest.fixture
def persistence(storage: MemoryStorage) -> PersistenceLayer:
    """Persistence layer over the in-memory storage fixture."""
    return PersistenceLayer(storage)
