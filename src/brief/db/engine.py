"""Async database engine and session management.

Provides async SQLite (or any SQLAlchemy async URL) connections via
SQLModel. Includes connection pool instrumentation for diagnostics.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from brief.config import get_settings
from brief.db import models as _models  # noqa: F401 - registers tables

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from sqlalchemy.ext.asyncio import AsyncEngine
    from sqlalchemy.pool import _ConnectionRecord

logger = logging.getLogger(__name__)
_pool_logger = logging.getLogger(f"{__name__}.pool")


def _install_pool_listeners(engine: AsyncEngine) -> None:
    """Attach event listeners to the connection pool for diagnostics."""
    pool = engine.sync_engine.pool

    @event.listens_for(pool, "connect")
    def _on_connect(_dbapi_conn: object, _rec: _ConnectionRecord) -> None:
        _pool_logger.info("NEW_CONN %s", pool.status())

    @event.listens_for(pool, "checkout")
    def _on_checkout(
        _dbapi_conn: object, _rec: _ConnectionRecord, _proxy: object
    ) -> None:
        _pool_logger.debug("CHECKOUT %s", pool.status())

    @event.listens_for(pool, "invalidate")
    def _on_invalidate(
        _dbapi_conn: object,
        _rec: _ConnectionRecord,
        exception: BaseException | None,
    ) -> None:
        _pool_logger.warning(
            "INVALIDATE exception=%s %s",
            type(exception).__name__ if exception else None,
            pool.status(),
        )


@dataclass
class _DatabaseState:
    """Internal state holder for database engine and session factory."""

    engine: AsyncEngine | None = field(default=None)
    session_factory: async_sessionmaker[AsyncSession] | None = field(default=None)


# Module-level state (initialized on first use)
_state = _DatabaseState()


def get_database_url() -> str:
    """Get database URL from Settings.

    Raises:
        ValueError: If STORAGE__DATABASE_URL is empty.
    """
    url = get_settings().storage.database_url
    if not url:
        msg = (
            "STORAGE__DATABASE_URL is not configured. "
            "Set it in your .env file or as an environment variable."
        )
        raise ValueError(msg)
    return url


def get_engine() -> AsyncEngine | None:
    """Get the database engine for direct access (test fixtures)."""
    return _state.engine


async def init_db() -> None:
    """Create the engine and session factory, then ensure tables exist."""
    _state.engine = create_async_engine(
        get_database_url(),
        echo=get_settings().storage.echo,
        pool_pre_ping=True,
    )
    _install_pool_listeners(_state.engine)

    async with _state.engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    _state.session_factory = async_sessionmaker(
        _state.engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Database ready: %s", _state.engine.url.render_as_string())


async def close_db() -> None:
    """Dispose of the engine and clear module state."""
    if _state.engine:
        await _state.engine.dispose()
        _state.engine = None
        _state.session_factory = None


@asynccontextmanager
async def get_session() -> AsyncIterator[AsyncSession]:
    """Get an async database session.

    Yields a session that auto-commits on success and rolls back on error.
    Exceptions are logged before re-raising. Lazily initializes the engine
    on first use so it is created in the current event loop.

    Usage:
        async with get_session() as session:
            entry = await session.get(KeyValueEntry, key)
    """
    if _state.session_factory is None:
        await init_db()

    session_factory = _state.session_factory
    assert session_factory is not None  # For type narrowing

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            logger.exception("Database session error, rolling back transaction")
            await session.rollback()
            raise
