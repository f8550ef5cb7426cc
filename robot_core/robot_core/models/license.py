"""License status models.

A ``LicenseStatusResult`` is what the status engine hands back to callers:
the derived status, whole days left in the validity window, and the
notification history for the license.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LicenseStatus(str, Enum):
    """Derived state of a license at a point in time."""

    ACTIVE = "ACTIVE"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"
    REVOKED = "REVOKED"


class NotificationType(str, Enum):
    """Threshold events surfaced once per license."""

    EXPIRED = "EXPIRED"
    WARNING_7_DAYS = "WARNING_7_DAYS"
    WARNING_30_DAYS = "WARNING_30_DAYS"


NOTIFICATION_MESSAGES: dict[NotificationType, str] = {
    NotificationType.EXPIRED: "License has expired",
    NotificationType.WARNING_7_DAYS: "License expires in 7 days",
    NotificationType.WARNING_30_DAYS: "License expires in 30 days",
}


class NotificationView(BaseModel):
    """A persisted notification as exposed to callers."""

    model_config = ConfigDict(from_attributes=True)

    type: NotificationType
    message: str
    created_at: datetime
    acknowledged: bool = False


class LicenseStatusResult(BaseModel):
    """Outcome of a status check for one license."""

    status: LicenseStatus
    days_remaining: int | None = Field(
        default=None,
        description="Whole days until valid_until (ceil); None for revoked licenses.",
    )
    notifications: list[NotificationView] = Field(default_factory=list)
    license_id: int
    org_id: int
    robot_id: int

    @property
    def is_locking(self) -> bool:
        """``True`` when this status prevents a robot from operating."""
        return self.status in (LicenseStatus.EXPIRED, LicenseStatus.REVOKED)


class LicenseView(BaseModel):
    """An issued license row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    robot_id: int
    license_key: str
    valid_from: datetime
    valid_until: datetime
    is_active: bool
