"""Robot sync response models."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from robot_core.models.catalog import CourseView
from robot_core.models.license import LicenseStatus, NotificationType


class SyncStatus(str, Enum):
    OK = "OK"
    LOCKED = "LOCKED"


class LockReason(str, Enum):
    """Why a robot was locked, most specific first: license, org, grants."""

    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"
    ACCESS_REMOVED = "ACCESS_REMOVED"


class SyncNotification(BaseModel):
    type: NotificationType
    message: str


class SyncResponse(BaseModel):
    """Decision and content payload for a robot sync or refresh."""

    status: SyncStatus
    lock_reason: LockReason | None = None
    license_status: LicenseStatus
    days_remaining: int | None = None
    notifications: list[SyncNotification] = Field(default_factory=list)
    refresh_required: bool = False
    courses: list[CourseView] = Field(default_factory=list)
    public_courses: list[CourseView] = Field(default_factory=list)

    @property
    def is_locked(self) -> bool:
        return self.status == SyncStatus.LOCKED
