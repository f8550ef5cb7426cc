"""Initial schema for the licensing state store.

Creates organizations, robots, licenses, license_notifications, the
course -> course_levels -> lessons tree, organization_course_access and
robot_usage_logs.

Revision ID: 001
Revises: None
Create Date: 2026-09-01 00:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _created_at(name: str = "created_at") -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def upgrade() -> None:
    # ------------------------------------------------------------------
    # organizations
    # ------------------------------------------------------------------
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(256), nullable=False),
        sa.Column("region", sa.String(64), nullable=False),
        sa.Column("type", sa.String(64), nullable=False),
        _created_at(),
    )

    # ------------------------------------------------------------------
    # robots
    # ------------------------------------------------------------------
    op.create_table(
        "robots",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "org_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("robot_code", sa.String(128), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("refresh_required", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_sync_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index("ix_robots_org", "robots", ["org_id"])

    # ------------------------------------------------------------------
    # licenses
    # ------------------------------------------------------------------
    op.create_table(
        "licenses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "org_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "robot_id",
            sa.Integer(),
            sa.ForeignKey("robots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("license_key", sa.String(64), nullable=False, unique=True),
        sa.Column("valid_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("valid_until", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.CheckConstraint("valid_until > valid_from", name="ck_licenses_window"),
    )
    op.create_index("ix_licenses_robot_valid_until", "licenses", ["robot_id", "valid_until"])
    op.create_index("ix_licenses_org", "licenses", ["org_id"])

    # ------------------------------------------------------------------
    # license_notifications
    # ------------------------------------------------------------------
    op.create_table(
        "license_notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "license_id",
            sa.Integer(),
            sa.ForeignKey("licenses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("org_id", sa.Integer(), nullable=False),
        sa.Column("robot_id", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        _created_at(),
        sa.Column("acknowledged", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.UniqueConstraint("license_id", "type", name="uq_license_notifications_license_type"),
        sa.CheckConstraint(
            "type IN ('EXPIRED','WARNING_7_DAYS','WARNING_30_DAYS')",
            name="ck_license_notifications_type",
        ),
    )
    op.create_index("ix_license_notifications_org", "license_notifications", ["org_id"])

    # ------------------------------------------------------------------
    # courses / course_levels / lessons
    # ------------------------------------------------------------------
    op.create_table(
        "courses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("course_code", sa.String(32), nullable=False, unique=True),
        sa.Column("course_name", sa.String(256), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", sa.String(16), nullable=False, server_default="WHIZROBOT"),
        sa.Column(
            "org_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="SET NULL"),
            nullable=True,
        ),
        _created_at(),
        sa.CheckConstraint("source IN ('WHIZROBOT','SCHOOL')", name="ck_courses_source"),
    )

    op.create_table(
        "course_levels",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sequence_no", sa.Integer(), nullable=False),
        sa.Column("level_name", sa.String(256), nullable=False),
        sa.UniqueConstraint("course_id", "sequence_no", name="uq_course_levels_course_sequence"),
        sa.CheckConstraint("sequence_no >= 1", name="ck_course_levels_sequence"),
    )

    op.create_table(
        "lessons",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "course_level_id",
            sa.Integer(),
            sa.ForeignKey("course_levels.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("lesson_name", sa.String(256), nullable=False),
        sa.Column("content_type", sa.String(16), nullable=False),
        sa.Column("content_url", sa.String(2048), nullable=False),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at("updated_at"),
        sa.CheckConstraint("content_type IN ('VIDEO','IMAGE','TEXT')", name="ck_lessons_content_type"),
    )
    op.create_index("ix_lessons_level", "lessons", ["course_level_id"])

    # ------------------------------------------------------------------
    # organization_course_access
    # ------------------------------------------------------------------
    op.create_table(
        "organization_course_access",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "org_id",
            sa.Integer(),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "course_id",
            sa.Integer(),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "allowed_levels",
            postgresql.JSONB().with_variant(sa.JSON(), "sqlite"),
            nullable=False,
        ),
        _created_at("assigned_at"),
        sa.UniqueConstraint("org_id", "course_id", name="uq_org_course_access_org_course"),
    )
    op.create_index("ix_org_course_access_org", "organization_course_access", ["org_id"])

    # ------------------------------------------------------------------
    # robot_usage_logs
    # ------------------------------------------------------------------
    op.create_table(
        "robot_usage_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "robot_id",
            sa.Integer(),
            sa.ForeignKey("robots.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("course_id", sa.Integer(), nullable=False),
        sa.Column("lesson_id", sa.Integer(), nullable=True),
        sa.Column("opened_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_seconds", sa.Integer(), nullable=False),
        _created_at(),
        sa.CheckConstraint("duration_seconds >= 0", name="ck_robot_usage_logs_duration"),
    )
    op.create_index(
        "ix_robot_usage_logs_dedup",
        "robot_usage_logs",
        ["robot_id", "course_id", "opened_at"],
    )


def downgrade() -> None:
    op.drop_table("robot_usage_logs")
    op.drop_table("organization_course_access")
    op.drop_table("lessons")
    op.drop_table("course_levels")
    op.drop_table("courses")
    op.drop_table("license_notifications")
    op.drop_table("licenses")
    op.drop_table("robots")
    op.drop_table("organizations")
