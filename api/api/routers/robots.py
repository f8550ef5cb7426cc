"""Fleet endpoints for administrators: listing, status, refresh, and lock."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import ClockDep, SessionDep
from api.middleware.rbac import Permission, ensure_org_access, require_permission
from robot_core.fleet import FleetService
from robot_core.licensing import LicenseIssuanceService, LicenseStatusEngine
from robot_core.models.fleet import RobotStatusItem
from robot_core.models.identity import CallerIdentity
from robot_core.models.license import LicenseStatusResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/robots", tags=["robots"])


@router.get("")
async def list_robots(
    session: SessionDep,
    clock: ClockDep,
    caller: CallerIdentity = Depends(require_permission(Permission.MANAGE_ROBOTS)),
) -> list[RobotStatusItem]:
    """Robots visible to the caller with their current license status."""
    service = FleetService(session, clock=clock)
    return await service.list_robots(caller)


@router.get("/{robot_id}/license-status")
async def robot_license_status(
    robot_id: int,
    session: SessionDep,
    clock: ClockDep,
    caller: CallerIdentity = Depends(require_permission(Permission.VIEW_LICENSE_STATUS)),
) -> LicenseStatusResult:
    """Status of the robot's most recent license."""
    robot = await FleetService(session, clock=clock).get_robot(robot_id)
    ensure_org_access(caller, robot.org_id)

    engine = LicenseStatusEngine(session, clock=clock)
    result = await engine.resolve_status_for_robot(robot_id)
    if result is None:
        raise HTTPException(status_code=404, detail="No license found for robot")
    return result


@router.post("/{robot_id}/refresh")
async def request_refresh(
    robot_id: int,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.MANAGE_ROBOTS)),
) -> dict[str, Any]:
    """Flag the robot for a forced content reload on its next sync."""
    service = FleetService(session)
    robot = await service.get_robot(robot_id)
    ensure_org_access(caller, robot.org_id)
    return await service.request_refresh(robot_id)


@router.post("/{robot_id}/lock")
async def lock_robot(
    robot_id: int,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.MANAGE_ROBOTS)),
) -> dict[str, Any]:
    """Revoke the robot's active license so its next sync locks."""
    robot = await FleetService(session).get_robot(robot_id)
    ensure_org_access(caller, robot.org_id)
    return await LicenseIssuanceService(session).lock_robot(robot_id)
