"""FastAPI dependency injection for database sessions, settings, and the clock."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from api.config import APISettings, load_api_settings
from api.middleware.rbac import get_caller
from robot_core.clock import Clock, utcnow
from robot_core.models.identity import CallerIdentity
from robot_core.state.database import get_engine, get_session

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None


def get_settings() -> APISettings:
    """Settings are read from the environment once per process."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]

# ---------------------------------------------------------------------------
# Database session
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None


def init_engine(settings: APISettings) -> AsyncEngine:
    """Open the process-wide engine described by *settings*."""
    global _engine  # noqa: PLW0603
    _engine = get_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
    )
    return _engine


async def dispose_engine() -> None:
    """Close the engine opened by :func:`init_engine`, if any."""
    global _engine  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None


def get_engine_or_fail() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("State store is not open; init_engine() runs in the application lifespan.")
    return _engine


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Yield a request-scoped session.

    One request is one unit of work: it commits when the handler returns
    and rolls back when the handler raises.
    """
    async with get_session(get_engine_or_fail()) as session:
        yield session


SessionDep = Annotated[AsyncSession, Depends(get_db_session)]

# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


def get_clock() -> Clock:
    """Source of "now" for status derivation; overridden in tests."""
    return utcnow


ClockDep = Annotated[Clock, Depends(get_clock)]

# ---------------------------------------------------------------------------
# Caller identity (populated by AuthenticationMiddleware)
# ---------------------------------------------------------------------------

CallerDep = Annotated[CallerIdentity, Depends(get_caller)]
