"""Organization and robot administration views."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from robot_core.models.license import LicenseStatus


class OrganizationView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    region: str
    type: str


class RobotView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    org_id: int
    robot_code: str
    is_active: bool
    refresh_required: bool
    last_sync_at: datetime | None = None


class RobotStatusItem(BaseModel):
    """One row of the fleet listing."""

    robot_id: int
    robot_code: str
    license_status: LicenseStatus
    days_remaining: int | None = None
    last_sync_at: datetime | None = None
