"""Pydantic domain models shared by the core, the API and the CLI."""

from robot_core.models.catalog import (
    ContentType,
    CourseAccessView,
    CourseSource,
    CourseSummary,
    CourseView,
    LessonView,
    LevelView,
)
from robot_core.models.fleet import OrganizationView, RobotStatusItem, RobotView
from robot_core.models.identity import CallerIdentity, TokenType
from robot_core.models.license import (
    NOTIFICATION_MESSAGES,
    LicenseStatus,
    LicenseStatusResult,
    LicenseView,
    NotificationType,
    NotificationView,
)
from robot_core.models.sync import LockReason, SyncNotification, SyncResponse, SyncStatus
from robot_core.models.usage import IngestResult, UsageLogEntry

__all__ = [
    "NOTIFICATION_MESSAGES",
    "CallerIdentity",
    "ContentType",
    "CourseAccessView",
    "CourseSource",
    "CourseSummary",
    "CourseView",
    "IngestResult",
    "LessonView",
    "LevelView",
    "LicenseStatus",
    "LicenseStatusResult",
    "LicenseView",
    "LockReason",
    "NotificationType",
    "NotificationView",
    "OrganizationView",
    "RobotStatusItem",
    "RobotView",
    "SyncNotification",
    "SyncResponse",
    "SyncStatus",
    "TokenType",
    "UsageLogEntry",
]
