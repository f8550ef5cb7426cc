"""Permission checks and caller-kind guards.

Permissions are flat strings carried in the caller token.  Superadmins pass
every permission check; robots never pass one.

Usage in routers::

    from api.middleware.rbac import Permission, require_permission

    @router.post("/licenses")
    async def issue(
        ...,
        caller: CallerIdentity = Depends(require_permission(Permission.ISSUE_LICENSE)),
    ) -> ...:
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from enum import Enum

from fastapi import Depends, HTTPException, Request

from robot_core.models.identity import CallerIdentity

logger = logging.getLogger(__name__)


class Permission(str, Enum):
    """Fine-grained permissions checked by administrative endpoints."""

    ISSUE_LICENSE = "ISSUE_LICENSE"
    REVOKE_LICENSE = "REVOKE_LICENSE"
    VIEW_LICENSE_STATUS = "VIEW_LICENSE_STATUS"
    MANAGE_ROBOTS = "MANAGE_ROBOTS"
    ASSIGN_COURSE = "ASSIGN_COURSE"
    VIEW_ASSIGNED_COURSE = "VIEW_ASSIGNED_COURSE"
    VIEW_ORG = "VIEW_ORG"


def get_caller(request: Request) -> CallerIdentity:
    """Return the identity populated by :class:`AuthenticationMiddleware`."""
    identity = getattr(request.state, "identity", None)
    if identity is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return identity


def require_permission(permission: Permission) -> Callable[..., CallerIdentity]:
    """Return a FastAPI dependency that enforces *permission* for user tokens.

    Returns the caller so handlers can use it for org scoping.
    """

    def _guard(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
        if caller.is_robot or not caller.has_permission(permission.value):
            logger.info(
                "Permission denied: sub=%s type=%s requires %s",
                caller.subject_id,
                caller.token_type.value,
                permission.value,
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return caller

    return _guard


def require_robot(caller: CallerIdentity = Depends(get_caller)) -> CallerIdentity:
    """Dependency admitting robot tokens only."""
    if not caller.is_robot:
        logger.info("Robot endpoint called with %s token: sub=%s", caller.token_type.value, caller.subject_id)
        raise HTTPException(status_code=403, detail="Robot token required")
    return caller


def ensure_org_access(caller: CallerIdentity, org_id: int) -> None:
    """Raise 403 unless *caller* is a superadmin or belongs to *org_id*."""
    if not caller.can_access_org(org_id):
        logger.info(
            "Cross-organization access denied: sub=%s org=%s target=%d", caller.subject_id, caller.org_id, org_id
        )
        raise HTTPException(status_code=403, detail="Access to this organization is not allowed")
