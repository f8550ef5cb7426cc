"""SQLAlchemy 2.0 ORM table definitions for the robot licensing state store.

All tables use the modern ``Mapped`` / ``mapped_column`` declaration style
introduced in SQLAlchemy 2.0.  The ``Base`` declarative base is exported for
use by Alembic migrations and the repository layer.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

# Cross-dialect JSON type: uses JSONB on PostgreSQL, falls back to plain JSON
# (stored as TEXT) on SQLite.
_JsonType = JSONB().with_variant(JSON(), "sqlite")


def _utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware timestamp that round-trips as UTC on every dialect.

    SQLite drops ``tzinfo`` on write and returns naive values on read; values
    are normalised to UTC before binding and re-tagged as UTC on the way out
    so comparisons against an aware clock are always valid.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Any) -> datetime | None:
        if value is None:
            return None
        value = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Any, dialect: Any) -> datetime | None:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value


# ---------------------------------------------------------------------------
# Declarative base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    """Shared declarative base for all state-store tables."""


# ---------------------------------------------------------------------------
# Organizations
# ---------------------------------------------------------------------------


class OrganizationTable(Base):
    """Schools and partners that own robots, licenses and course grants."""

    __tablename__ = "organizations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    region: Mapped[str] = mapped_column(String(64), nullable=False)
    type: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)


# ---------------------------------------------------------------------------
# Robots
# ---------------------------------------------------------------------------


class RobotTable(Base):
    """A physical robot bound to exactly one organization."""

    __tablename__ = "robots"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    robot_code: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    refresh_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_sync_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (Index("ix_robots_org", "org_id"),)


# ---------------------------------------------------------------------------
# Licenses
# ---------------------------------------------------------------------------


class LicenseTable(Base):
    """A right for one robot to operate over ``[valid_from, valid_until)``.

    Rows are never deleted; revocation flips ``is_active`` to ``False``.
    """

    __tablename__ = "licenses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    robot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("robots.id", ondelete="CASCADE"),
        nullable=False,
    )
    license_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    valid_from: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    valid_until: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("valid_until > valid_from", name="ck_licenses_window"),
        Index("ix_licenses_robot_valid_until", "robot_id", "valid_until"),
        Index("ix_licenses_org", "org_id"),
    )


class LicenseNotificationTable(Base):
    """One-time record that a license crossed a status threshold."""

    __tablename__ = "license_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    license_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("licenses.id", ondelete="CASCADE"),
        nullable=False,
    )
    org_id: Mapped[int] = mapped_column(Integer, nullable=False)
    robot_id: Mapped[int] = mapped_column(Integer, nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)
    acknowledged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("license_id", "type", name="uq_license_notifications_license_type"),
        CheckConstraint(
            "type IN ('EXPIRED','WARNING_7_DAYS','WARNING_30_DAYS')",
            name="ck_license_notifications_type",
        ),
        Index("ix_license_notifications_org", "org_id"),
    )


# ---------------------------------------------------------------------------
# Content tree
# ---------------------------------------------------------------------------


class CourseTable(Base):
    """Top of the course -> level -> lesson content tree."""

    __tablename__ = "courses"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    course_name: Mapped[str] = mapped_column(String(256), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    source: Mapped[str] = mapped_column(String(16), nullable=False, default="WHIZROBOT")
    org_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (CheckConstraint("source IN ('WHIZROBOT','SCHOOL')", name="ck_courses_source"),)


class CourseLevelTable(Base):
    """An ordered level within a course (``sequence_no`` is 1-based)."""

    __tablename__ = "course_levels"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence_no: Mapped[int] = mapped_column(Integer, nullable=False)
    level_name: Mapped[str] = mapped_column(String(256), nullable=False)

    __table_args__ = (
        UniqueConstraint("course_id", "sequence_no", name="uq_course_levels_course_sequence"),
        CheckConstraint("sequence_no >= 1", name="ck_course_levels_sequence"),
    )


class LessonTable(Base):
    """A single piece of content inside a level."""

    __tablename__ = "lessons"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    course_level_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("course_levels.id", ondelete="CASCADE"),
        nullable=False,
    )
    lesson_name: Mapped[str] = mapped_column(String(256), nullable=False)
    content_type: Mapped[str] = mapped_column(String(16), nullable=False)
    content_url: Mapped[str] = mapped_column(String(2048), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("content_type IN ('VIDEO','IMAGE','TEXT')", name="ck_lessons_content_type"),
        Index("ix_lessons_level", "course_level_id"),
    )


# ---------------------------------------------------------------------------
# Organization course access
# ---------------------------------------------------------------------------


class OrganizationCourseAccessTable(Base):
    """Grant of a course to an organization, restricted to some levels."""

    __tablename__ = "organization_course_access"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    org_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    allowed_levels: Mapped[list[int]] = mapped_column(_JsonType, nullable=False, default=list)
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "course_id", name="uq_org_course_access_org_course"),
        Index("ix_org_course_access_org", "org_id"),
    )


# ---------------------------------------------------------------------------
# Robot usage logs
# ---------------------------------------------------------------------------


class RobotUsageLogTable(Base):
    """A lesson/course opening reported by a robot."""

    __tablename__ = "robot_usage_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    robot_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("robots.id", ondelete="CASCADE"),
        nullable=False,
    )
    course_id: Mapped[int] = mapped_column(Integer, nullable=False)
    lesson_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    opened_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("duration_seconds >= 0", name="ck_robot_usage_logs_duration"),
        Index("ix_robot_usage_logs_dedup", "robot_id", "course_id", "opened_at"),
    )
