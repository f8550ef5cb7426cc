"""License administration endpoints."""

from __future__ import annotations

import logging
from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import ClockDep, SessionDep
from api.middleware.rbac import Permission, ensure_org_access, require_permission
from robot_core.licensing import LicenseIssuanceService, LicenseStatusEngine
from robot_core.models.identity import CallerIdentity
from robot_core.models.license import LicenseStatusResult, LicenseView

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/licenses", tags=["licenses"])


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class IssueLicenseRequest(BaseModel):
    """Request body for issuing a license to a robot."""

    org_id: int = Field(..., gt=0, description="Organization that owns the robot.")
    robot_id: int = Field(..., gt=0, description="Robot receiving the license.")
    valid_from: datetime = Field(..., description="Start of the validity window (inclusive).")
    valid_until: datetime = Field(..., description="End of the validity window (exclusive).")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("", status_code=201)
async def issue_license(
    body: IssueLicenseRequest,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.ISSUE_LICENSE)),
) -> LicenseView:
    """Issue a new active license."""
    ensure_org_access(caller, body.org_id)
    service = LicenseIssuanceService(session)
    return await service.issue_license(
        org_id=body.org_id,
        robot_id=body.robot_id,
        valid_from=body.valid_from,
        valid_until=body.valid_until,
    )


@router.post("/{license_id}/revoke")
async def revoke_license(
    license_id: int,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.REVOKE_LICENSE)),
) -> LicenseView:
    """Deactivate a license.  Revoking an inactive license is a no-op."""
    service = LicenseIssuanceService(session)
    existing = await service.get_license(license_id)
    ensure_org_access(caller, existing.org_id)
    return await service.revoke_license(license_id)


@router.get("/{license_id}/status")
async def license_status(
    license_id: int,
    session: SessionDep,
    clock: ClockDep,
    caller: CallerIdentity = Depends(require_permission(Permission.VIEW_LICENSE_STATUS)),
) -> LicenseStatusResult:
    """Derive the current status, recording any newly crossed threshold."""
    existing = await LicenseIssuanceService(session).get_license(license_id)
    ensure_org_access(caller, existing.org_id)
    engine = LicenseStatusEngine(session, clock=clock)
    return await engine.resolve_status_for_license(license_id)
