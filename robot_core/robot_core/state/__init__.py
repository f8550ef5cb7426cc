"""State persistence layer (PostgreSQL in production, SQLite locally)."""

from robot_core.state.database import create_all_tables, engine_from_settings, get_engine, get_session
from robot_core.state.repository import (
    CourseAccessRepository,
    CourseRepository,
    LicenseRepository,
    NotificationRepository,
    OrganizationRepository,
    RobotRepository,
    UsageLogRepository,
)

__all__ = [
    "CourseAccessRepository",
    "CourseRepository",
    "LicenseRepository",
    "NotificationRepository",
    "OrganizationRepository",
    "RobotRepository",
    "UsageLogRepository",
    "create_all_tables",
    "engine_from_settings",
    "get_engine",
    "get_session",
]
