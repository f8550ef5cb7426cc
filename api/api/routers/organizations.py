"""Organization directory endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from api.dependencies import SessionDep
from api.middleware.rbac import Permission, ensure_org_access, require_permission
from robot_core.fleet import FleetService
from robot_core.models.fleet import OrganizationView
from robot_core.models.identity import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["organizations"])


@router.get("")
async def list_organizations(
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.VIEW_ORG)),
) -> list[OrganizationView]:
    """All organizations for superadmins, otherwise the caller's own."""
    return await FleetService(session).list_organizations(caller)


@router.get("/{org_id}")
async def get_organization(
    org_id: int,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.VIEW_ORG)),
) -> OrganizationView:
    ensure_org_access(caller, org_id)
    return await FleetService(session).get_organization(org_id)
