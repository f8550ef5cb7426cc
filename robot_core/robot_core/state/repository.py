"""Repository classes providing CRUD access to the licensing state store.

Each repository takes an ``AsyncSession`` at construction time and operates
within the caller's transaction boundary.  All writes call ``session.flush()``
so that generated defaults are populated; the caller is responsible for calling
``session.commit()`` (or relying on the ``get_session`` context manager).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.state.tables import (
    CourseLevelTable,
    CourseTable,
    LessonTable,
    LicenseNotificationTable,
    LicenseTable,
    OrganizationCourseAccessTable,
    OrganizationTable,
    RobotTable,
    RobotUsageLogTable,
)

logger = logging.getLogger(__name__)


async def _dialect_upsert(
    session: AsyncSession,
    table: Any,
    values: dict[str, Any],
    index_elements: list[str],
    update_columns: list[str],
) -> Any:
    """Dialect-aware upsert: PostgreSQL ``ON CONFLICT DO UPDATE`` or SQLite equivalent.

    Parameters
    ----------
    session:
        The active async session.
    table:
        The SQLAlchemy table class to upsert into.
    values:
        Column-value mapping for the row to insert.
    index_elements:
        Column names forming the unique constraint for conflict detection.
    update_columns:
        Column names to update when a conflict occurs.
    """
    bind = session.get_bind()
    dialect_name = getattr(getattr(bind, "dialect", None), "name", "")

    stmt: Any
    if "postgresql" in str(dialect_name):
        from sqlalchemy.dialects.postgresql import insert as _pg_insert

        stmt = _pg_insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={col: getattr(stmt.excluded, col) for col in update_columns},
        )
    else:
        from sqlalchemy.dialects.sqlite import insert as _sqlite_insert

        stmt = _sqlite_insert(table).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={col: values[col] for col in update_columns},
        )
    return await session.execute(stmt)


async def _dialect_insert_nothing(
    session: AsyncSession,
    table: Any,
    values: dict[str, Any],
    index_elements: list[str],
) -> Any:
    """Dialect-aware insert with ``ON CONFLICT DO NOTHING``."""
    bind = session.get_bind()
    dialect_name = getattr(getattr(bind, "dialect", None), "name", "")

    stmt: Any
    if "postgresql" in str(dialect_name):
        from sqlalchemy.dialects.postgresql import insert as _pg_insert

        stmt = _pg_insert(table).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    else:
        from sqlalchemy.dialects.sqlite import insert as _sqlite_insert

        stmt = _sqlite_insert(table).values(**values).on_conflict_do_nothing(index_elements=index_elements)
    return await session.execute(stmt)


# ---------------------------------------------------------------------------
# OrganizationRepository
# ---------------------------------------------------------------------------


class OrganizationRepository:
    """CRUD operations for the ``organizations`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, name: str, region: str, org_type: str) -> OrganizationTable:
        row = OrganizationTable(name=name, region=region, type=org_type)
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, org_id: int) -> OrganizationTable | None:
        return await self._session.get(OrganizationTable, org_id)

    async def list_all(self) -> list[OrganizationTable]:
        result = await self._session.execute(select(OrganizationTable).order_by(OrganizationTable.id))
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# RobotRepository
# ---------------------------------------------------------------------------


class RobotRepository:
    """CRUD operations for the ``robots`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, org_id: int, robot_code: str) -> RobotTable:
        row = RobotTable(org_id=org_id, robot_code=robot_code, is_active=True, refresh_required=False)
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, robot_id: int) -> RobotTable | None:
        return await self._session.get(RobotTable, robot_id)

    async def get_by_code(self, robot_code: str) -> RobotTable | None:
        result = await self._session.execute(select(RobotTable).where(RobotTable.robot_code == robot_code))
        return result.scalar_one_or_none()

    async def list_robots(self, org_id: int | None = None) -> list[RobotTable]:
        """Return robots ordered by id, optionally restricted to one organization."""
        stmt = select(RobotTable)
        if org_id is not None:
            stmt = stmt.where(RobotTable.org_id == org_id)
        result = await self._session.execute(stmt.order_by(RobotTable.id))
        return list(result.scalars().all())

    async def set_refresh_required(self, robot_id: int, value: bool) -> None:
        stmt = update(RobotTable).where(RobotTable.id == robot_id).values(refresh_required=value)
        await self._session.execute(stmt)
        await self._session.flush()

    async def touch_last_sync(self, robot_id: int, at: datetime) -> None:
        stmt = update(RobotTable).where(RobotTable.id == robot_id).values(last_sync_at=at)
        await self._session.execute(stmt)
        await self._session.flush()


# ---------------------------------------------------------------------------
# LicenseRepository
# ---------------------------------------------------------------------------


class LicenseRepository:
    """CRUD operations for the ``licenses`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(
        self,
        org_id: int,
        robot_id: int,
        license_key: str,
        valid_from: datetime,
        valid_until: datetime,
    ) -> LicenseTable:
        row = LicenseTable(
            org_id=org_id,
            robot_id=robot_id,
            license_key=license_key,
            valid_from=valid_from,
            valid_until=valid_until,
            is_active=True,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, license_id: int) -> LicenseTable | None:
        return await self._session.get(LicenseTable, license_id)

    async def most_recent_license_for_robot(self, robot_id: int) -> LicenseTable | None:
        """Return the authoritative license for *robot_id*.

        The license with the greatest ``valid_until`` wins, regardless of
        whether it is active; ties go to the most recently issued row.
        """
        stmt = (
            select(LicenseTable)
            .where(LicenseTable.robot_id == robot_id)
            .order_by(LicenseTable.valid_until.desc(), LicenseTable.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def most_recent_active_license_for_robot(self, robot_id: int) -> LicenseTable | None:
        stmt = (
            select(LicenseTable)
            .where(LicenseTable.robot_id == robot_id, LicenseTable.is_active.is_(True))
            .order_by(LicenseTable.valid_until.desc(), LicenseTable.id.desc())
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def deactivate(self, license_id: int) -> None:
        """Flip ``is_active`` to ``False``; the row itself is kept forever."""
        stmt = update(LicenseTable).where(LicenseTable.id == license_id).values(is_active=False)
        await self._session.execute(stmt)
        await self._session.flush()


# ---------------------------------------------------------------------------
# NotificationRepository
# ---------------------------------------------------------------------------


class NotificationRepository:
    """Operations on ``license_notifications``.

    At most one row exists per ``(license_id, type)``; the unique constraint
    backs the application-level check so concurrent status checks cannot
    create duplicates.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(self, license_id: int, notification_type: str) -> bool:
        stmt = select(LicenseNotificationTable.id).where(
            LicenseNotificationTable.license_id == license_id,
            LicenseNotificationTable.type == notification_type,
        )
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def create_once(
        self,
        license_id: int,
        org_id: int,
        robot_id: int,
        notification_type: str,
        message: str,
        created_at: datetime,
    ) -> bool:
        """Insert the notification unless one of this type already exists.

        Returns ``True`` when a row was written.  A conflicting row created by
        a concurrent request counts as "already notified".
        """
        if await self.exists(license_id, notification_type):
            return False

        result = await _dialect_insert_nothing(
            self._session,
            LicenseNotificationTable,
            {
                "license_id": license_id,
                "org_id": org_id,
                "robot_id": robot_id,
                "type": notification_type,
                "message": message,
                "created_at": created_at,
                "acknowledged": False,
            },
            index_elements=["license_id", "type"],
        )
        await self._session.flush()
        return bool(result.rowcount)

    async def list_for_license(self, license_id: int) -> list[LicenseNotificationTable]:
        """Return the notification history for a license, newest first."""
        stmt = (
            select(LicenseNotificationTable)
            .where(LicenseNotificationTable.license_id == license_id)
            .order_by(LicenseNotificationTable.created_at.desc(), LicenseNotificationTable.id.desc())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


# ---------------------------------------------------------------------------
# CourseRepository
# ---------------------------------------------------------------------------


class CourseRepository:
    """Read and authoring operations over the course -> level -> lesson tree."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_course(
        self,
        course_code: str,
        course_name: str,
        *,
        is_public: bool = False,
        source: str = "WHIZROBOT",
        org_id: int | None = None,
    ) -> CourseTable:
        row = CourseTable(
            course_code=course_code,
            course_name=course_name,
            is_public=is_public,
            source=source,
            org_id=org_id,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def add_level(self, course_id: int, sequence_no: int, level_name: str) -> CourseLevelTable:
        row = CourseLevelTable(course_id=course_id, sequence_no=sequence_no, level_name=level_name)
        self._session.add(row)
        await self._session.flush()
        return row

    async def add_lesson(
        self,
        course_level_id: int,
        lesson_name: str,
        content_type: str,
        content_url: str,
        *,
        is_public: bool = False,
    ) -> LessonTable:
        row = LessonTable(
            course_level_id=course_level_id,
            lesson_name=lesson_name,
            content_type=content_type,
            content_url=content_url,
            is_public=is_public,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def get(self, course_id: int) -> CourseTable | None:
        return await self._session.get(CourseTable, course_id)

    async def get_many(self, course_ids: Sequence[int]) -> list[CourseTable]:
        if not course_ids:
            return []
        stmt = select(CourseTable).where(CourseTable.id.in_(course_ids)).order_by(CourseTable.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_public(self) -> list[CourseTable]:
        stmt = select(CourseTable).where(CourseTable.is_public.is_(True)).order_by(CourseTable.id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def levels_for_courses(self, course_ids: Sequence[int]) -> list[CourseLevelTable]:
        """Return every level of the given courses ordered by course then sequence."""
        if not course_ids:
            return []
        stmt = (
            select(CourseLevelTable)
            .where(CourseLevelTable.course_id.in_(course_ids))
            .order_by(CourseLevelTable.course_id, CourseLevelTable.sequence_no)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def lessons_for_levels(
        self,
        level_ids: Sequence[int],
        *,
        public_only: bool = False,
    ) -> list[LessonTable]:
        if not level_ids:
            return []
        stmt = select(LessonTable).where(LessonTable.course_level_id.in_(level_ids))
        if public_only:
            stmt = stmt.where(LessonTable.is_public.is_(True))
        result = await self._session.execute(stmt.order_by(LessonTable.course_level_id, LessonTable.id))
        return list(result.scalars().all())

    async def find_lesson_by_name(self, fragment: str) -> tuple[LessonTable, CourseTable] | None:
        """Most recently updated lesson whose name contains *fragment* (any case), with its course."""
        stmt = (
            select(LessonTable, CourseTable)
            .join(CourseLevelTable, LessonTable.course_level_id == CourseLevelTable.id)
            .join(CourseTable, CourseLevelTable.course_id == CourseTable.id)
            .where(LessonTable.lesson_name.icontains(fragment, autoescape=True))
            .order_by(LessonTable.updated_at.desc(), LessonTable.id.desc())
            .limit(1)
        )
        row = (await self._session.execute(stmt)).first()
        if row is None:
            return None
        return row[0], row[1]


# ---------------------------------------------------------------------------
# CourseAccessRepository
# ---------------------------------------------------------------------------


class CourseAccessRepository:
    """Operations on ``organization_course_access`` (unique per org + course)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, org_id: int, course_id: int) -> OrganizationCourseAccessTable | None:
        stmt = select(OrganizationCourseAccessTable).where(
            OrganizationCourseAccessTable.org_id == org_id,
            OrganizationCourseAccessTable.course_id == course_id,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_org(self, org_id: int, *, newest_first: bool = False) -> list[OrganizationCourseAccessTable]:
        stmt = select(OrganizationCourseAccessTable).where(OrganizationCourseAccessTable.org_id == org_id)
        if newest_first:
            stmt = stmt.order_by(
                OrganizationCourseAccessTable.assigned_at.desc(),
                OrganizationCourseAccessTable.id.desc(),
            )
        else:
            stmt = stmt.order_by(OrganizationCourseAccessTable.course_id)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def upsert(
        self,
        org_id: int,
        course_id: int,
        allowed_levels: list[int],
        assigned_at: datetime,
    ) -> OrganizationCourseAccessTable:
        """Create the grant or replace its ``allowed_levels`` wholesale."""
        await _dialect_upsert(
            self._session,
            OrganizationCourseAccessTable,
            {
                "org_id": org_id,
                "course_id": course_id,
                "allowed_levels": allowed_levels,
                "assigned_at": assigned_at,
            },
            index_elements=["org_id", "course_id"],
            update_columns=["allowed_levels"],
        )
        await self._session.flush()
        row = await self.get(org_id, course_id)
        if row is None:  # pragma: no cover - the upsert above guarantees a row
            raise RuntimeError(f"course access upsert lost row org={org_id} course={course_id}")
        await self._session.refresh(row)
        return row

    async def delete(self, org_id: int, course_id: int) -> bool:
        stmt = delete(OrganizationCourseAccessTable).where(
            OrganizationCourseAccessTable.org_id == org_id,
            OrganizationCourseAccessTable.course_id == course_id,
        )
        result = await self._session.execute(stmt)
        await self._session.flush()
        return bool(result.rowcount)


# ---------------------------------------------------------------------------
# UsageLogRepository
# ---------------------------------------------------------------------------


class UsageLogRepository:
    """Append-only access to ``robot_usage_logs``."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def exists(
        self,
        robot_id: int,
        course_id: int,
        lesson_id: int | None,
        opened_at: datetime,
    ) -> bool:
        """Return ``True`` when a log with the same dedup key is persisted."""
        lesson_clause = (
            RobotUsageLogTable.lesson_id.is_(None) if lesson_id is None else RobotUsageLogTable.lesson_id == lesson_id
        )
        stmt = (
            select(RobotUsageLogTable.id)
            .where(
                RobotUsageLogTable.robot_id == robot_id,
                RobotUsageLogTable.course_id == course_id,
                lesson_clause,
                RobotUsageLogTable.opened_at == opened_at,
            )
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.first() is not None

    async def create(
        self,
        robot_id: int,
        course_id: int,
        lesson_id: int | None,
        opened_at: datetime,
        duration_seconds: int,
    ) -> RobotUsageLogTable:
        row = RobotUsageLogTable(
            robot_id=robot_id,
            course_id=course_id,
            lesson_id=lesson_id,
            opened_at=opened_at,
            duration_seconds=duration_seconds,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def count_for_robot(self, robot_id: int) -> int:
        from sqlalchemy import func

        stmt = select(func.count()).select_from(RobotUsageLogTable).where(RobotUsageLogTable.robot_id == robot_id)
        result = await self._session.execute(stmt)
        return int(result.scalar_one())
