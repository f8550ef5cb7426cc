"""Engine construction, schema bootstrap and unit-of-work sessions.

The platform runs against PostgreSQL through asyncpg in production and
against a SQLite file through aiosqlite for the CLI and the test suite.
Callers pick the backend purely by URL; everything above this module
(repositories, services, routers) is backend-agnostic.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

if TYPE_CHECKING:
    from robot_core.config import Settings

logger = logging.getLogger(__name__)

# Sync requests must never hang on a stuck row lock held by an admin
# transaction; both limits are in milliseconds.
_STATEMENT_TIMEOUT_MS = 30_000
_LOCK_TIMEOUT_MS = 10_000


def get_engine(
    database_url: str,
    pool_size: int = 10,
    max_overflow: int = 20,
) -> AsyncEngine:
    """Create an async engine for *database_url*.

    ``sqlite+aiosqlite`` URLs are handed to
    :func:`robot_core.state.sqlite_adapter.get_local_engine`; anything else
    gets a pooled asyncpg engine with server-side statement and lock
    timeouts.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        from robot_core.state.sqlite_adapter import get_local_engine

        return get_local_engine(url.database or ":memory:")

    engine = create_async_engine(
        url,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        connect_args={
            "server_settings": {
                "application_name": "whizrobot-platform",
                "statement_timeout": str(_STATEMENT_TIMEOUT_MS),
                "lock_timeout": str(_LOCK_TIMEOUT_MS),
            }
        },
    )
    logger.info(
        "PostgreSQL engine ready host=%s db=%s pool_size=%d max_overflow=%d",
        url.host,
        url.database,
        pool_size,
        max_overflow,
    )
    return engine


def engine_from_settings(settings: Settings) -> AsyncEngine:
    """Build the engine described by the ``PLATFORM_DATABASE_*`` settings."""
    return get_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create every platform table that is missing.

    Used by the CLI, the tests and the API in dev mode; deployed databases
    are migrated with Alembic instead.
    """
    from robot_core.state.tables import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ensured on %s", engine.dialect.name)


@asynccontextmanager
async def get_session(engine: AsyncEngine, *, commit: bool = True) -> AsyncGenerator[AsyncSession, None]:
    """Yield one unit of work on *engine*.

    With *commit* set, a clean exit commits; otherwise the work is rolled
    back, which is how read-only previews run the write paths safely.  An
    exception always rolls back and propagates.
    """
    session = async_sessionmaker(engine, expire_on_commit=False)()
    try:
        yield session
        if commit:
            await session.commit()
        else:
            await session.rollback()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()
