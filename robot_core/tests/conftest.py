"""Shared fixtures for robot_core tests.

Every test runs against a fresh in-memory SQLite database through aiosqlite
with foreign keys enabled, and a frozen clock pinned to :data:`NOW`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from robot_core.clock import FrozenClock
from robot_core.state.repository import (
    CourseRepository,
    LicenseRepository,
    OrganizationRepository,
    RobotRepository,
)
from robot_core.state.database import create_all_tables
from robot_core.state.sqlite_adapter import get_local_engine
from robot_core.state.tables import LicenseTable

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@dataclass
class Fleet:
    org_id: int
    robot_id: int
    other_org_id: int


@dataclass
class Catalog:
    """Ids of the seeded course tree."""

    course_id: int
    public_course_id: int
    level_ids: dict[int, int] = field(default_factory=dict)
    lesson_ids: dict[str, int] = field(default_factory=dict)


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest_asyncio.fixture
async def async_session():
    """Provide an async session backed by an in-memory SQLite database."""
    engine = get_local_engine(":memory:")
    await create_all_tables(engine)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def fleet(async_session: AsyncSession) -> Fleet:
    """One organization with one robot, plus an unrelated organization."""
    orgs = OrganizationRepository(async_session)
    org = await orgs.create("Lakeside Primary", "IN-KA", "SCHOOL")
    other = await orgs.create("Hillview Academy", "IN-MH", "SCHOOL")
    robot = await RobotRepository(async_session).create(org.id, "WR-0001")
    return Fleet(org_id=org.id, robot_id=robot.id, other_org_id=other.id)


@pytest.fixture
def make_license(
    async_session: AsyncSession,
    fleet: Fleet,
) -> Callable[..., Awaitable[LicenseTable]]:
    """Factory issuing a license for the fleet robot relative to :data:`NOW`."""
    counter = {"n": 0}

    async def _make(
        starts: timedelta = timedelta(days=-1),
        ends: timedelta = timedelta(days=365),
        *,
        is_active: bool = True,
    ) -> LicenseTable:
        counter["n"] += 1
        repo = LicenseRepository(async_session)
        row = await repo.create(
            org_id=fleet.org_id,
            robot_id=fleet.robot_id,
            license_key=f"test-key-{counter['n']}",
            valid_from=NOW + starts,
            valid_until=NOW + ends,
        )
        if not is_active:
            await repo.deactivate(row.id)
            await async_session.refresh(row)
        return row

    return _make


@pytest_asyncio.fixture
async def catalog(async_session: AsyncSession) -> Catalog:
    """A private three-level course and a public one-level course.

    Each level holds one public and one private lesson.
    """
    repo = CourseRepository(async_session)
    course = await repo.create_course("ROBO-101", "Robotics Basics")
    public = await repo.create_course("PREVIEW-1", "Meet Your Robot", is_public=True)

    seeded = Catalog(course_id=course.id, public_course_id=public.id)
    for seq in (1, 2, 3):
        level = await repo.add_level(course.id, seq, f"Level {seq}")
        seeded.level_ids[seq] = level.id
        pub = await repo.add_lesson(level.id, f"L{seq} intro", "VIDEO", f"https://cdn/l{seq}.mp4", is_public=True)
        priv = await repo.add_lesson(level.id, f"L{seq} lab", "TEXT", f"https://cdn/l{seq}.md")
        seeded.lesson_ids[f"l{seq}-public"] = pub.id
        seeded.lesson_ids[f"l{seq}-private"] = priv.id

    level = await repo.add_level(public.id, 1, "Getting started")
    pub = await repo.add_lesson(level.id, "Say hello", "IMAGE", "https://cdn/hello.png", is_public=True)
    priv = await repo.add_lesson(level.id, "Hidden extra", "VIDEO", "https://cdn/extra.mp4")
    seeded.level_ids[0] = level.id
    seeded.lesson_ids["preview-public"] = pub.id
    seeded.lesson_ids["preview-private"] = priv.id
    return seeded
