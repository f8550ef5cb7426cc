"""Shared fixtures for WhizRobot API tests.

Every test gets a fresh SQLite database file, a frozen clock, a FastAPI app
whose session/clock/settings dependencies are overridden, and helpers that
sign ROBOT and USER tokens with the test secret.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Set the JWT secret BEFORE importing application modules so the
# module-level app in api.main signs with the same key as the tests.
_TEST_JWT_SECRET = "test-secret-key-for-whizrobot-tests"
os.environ.setdefault("API_JWT_SECRET", _TEST_JWT_SECRET)

from api.config import APISettings
from api.dependencies import get_clock, get_db_session, get_settings
from api.main import create_app
from api.middleware.rbac import Permission
from api.security import TokenManager
from robot_core.clock import FrozenClock
from robot_core.models.identity import TokenType
from robot_core.state.repository import (
    CourseRepository,
    LicenseRepository,
    OrganizationRepository,
    RobotRepository,
)
from robot_core.state.database import create_all_tables
from robot_core.state.sqlite_adapter import get_local_engine

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

ALL_PERMISSIONS: list[str] = [p.value for p in Permission]

_TOKENS = TokenManager(_TEST_JWT_SECRET)


# ---------------------------------------------------------------------------
# Token helpers
# ---------------------------------------------------------------------------


def _robot_headers(robot_id: int, org_id: int | None) -> dict[str, str]:
    """Authorization headers for a robot token."""
    token = _TOKENS.generate_token(sub=robot_id, token_type=TokenType.ROBOT, org_id=org_id)
    return {"Authorization": f"Bearer {token}"}


def _user_headers(
    org_id: int | None,
    permissions: list[str] | None = None,
    *,
    sub: int = 100,
    is_superadmin: bool = False,
) -> dict[str, str]:
    """Authorization headers for a user token; defaults to every permission."""
    token = _TOKENS.generate_token(
        sub=sub,
        token_type=TokenType.USER,
        org_id=org_id,
        permissions=ALL_PERMISSIONS if permissions is None else permissions,
        is_superadmin=is_superadmin,
    )
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Application fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings() -> APISettings:
    """Return a settings object suitable for testing."""
    return APISettings(
        database_url="sqlite+aiosqlite:///:memory:",
        platform_env="dev",
        cors_origins=["http://localhost:3000"],
        jwt_secret=_TEST_JWT_SECRET,
    )


@pytest_asyncio.fixture()
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    db_engine = get_local_engine(tmp_path / "api.db")
    await create_all_tables(db_engine)
    yield db_engine
    await db_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture()
def app(
    test_settings: APISettings,
    session_factory: async_sessionmaker[AsyncSession],
    clock: FrozenClock,
):
    """Create a FastAPI app with dependency overrides for testing.

    Sessions come from the per-test SQLite file and commit on success like
    the production dependency does.
    """
    application = create_app(test_settings)

    async def _override_session():
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    application.dependency_overrides[get_db_session] = _override_session
    application.dependency_overrides[get_clock] = lambda: clock
    application.dependency_overrides[get_settings] = lambda: test_settings

    return application


@pytest_asyncio.fixture()
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an async httpx client bound to the test app.

    No default headers: each test picks the robot or user token it needs.
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Seed data
# ---------------------------------------------------------------------------


@dataclass
class Seed:
    org_id: int
    other_org_id: int
    robot_id: int
    other_robot_id: int
    license_id: int
    course_id: int
    public_course_id: int
    lesson_id: int


@pytest_asyncio.fixture()
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> Seed:
    """Two schools with one robot each; the first robot holds a year license.

    The catalog has a private two-level course (one public and one private
    lesson per level) and a public preview course.  No course is granted yet.
    """
    async with session_factory() as session:
        orgs = OrganizationRepository(session)
        org = await orgs.create("Lakeside Primary", "IN-KA", "SCHOOL")
        other = await orgs.create("Hillview Academy", "IN-MH", "SCHOOL")

        robots = RobotRepository(session)
        robot = await robots.create(org.id, "WR-0001")
        other_robot = await robots.create(other.id, "WR-0002")

        license_row = await LicenseRepository(session).create(
            org_id=org.id,
            robot_id=robot.id,
            license_key="api-test-key",
            valid_from=NOW - timedelta(days=1),
            valid_until=NOW + timedelta(days=365),
        )

        courses = CourseRepository(session)
        course = await courses.create_course("ROBO-101", "Robotics Basics")
        first_lesson_id = 0
        for seq in (1, 2):
            level = await courses.add_level(course.id, seq, f"Level {seq}")
            pub = await courses.add_lesson(
                level.id, f"L{seq} intro", "VIDEO", f"https://cdn/l{seq}.mp4", is_public=True
            )
            await courses.add_lesson(level.id, f"L{seq} lab", "TEXT", f"https://cdn/l{seq}.md")
            first_lesson_id = first_lesson_id or pub.id

        preview = await courses.create_course("PREVIEW-1", "Meet Your Robot", is_public=True)
        preview_level = await courses.add_level(preview.id, 1, "Getting started")
        await courses.add_lesson(preview_level.id, "Say hello", "IMAGE", "https://cdn/hello.png", is_public=True)

        await session.commit()

        return Seed(
            org_id=org.id,
            other_org_id=other.id,
            robot_id=robot.id,
            other_robot_id=other_robot.id,
            license_id=license_row.id,
            course_id=course.id,
            public_course_id=preview.id,
            lesson_id=first_lesson_id,
        )


@pytest.fixture()
def robot_headers():
    """Factory for robot-token headers: ``robot_headers(robot_id, org_id)``."""
    return _robot_headers


@pytest.fixture()
def user_headers():
    """Factory for user-token headers: ``user_headers(org_id, permissions=None, ...)``."""
    return _user_headers
