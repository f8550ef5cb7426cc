"""Organization course-access endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from api.dependencies import SessionDep
from api.middleware.rbac import Permission, ensure_org_access, require_permission
from robot_core.entitlements import CourseAccessService
from robot_core.models.catalog import CourseAccessView
from robot_core.models.identity import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/organizations", tags=["course-access"])


class AssignCourseRequest(BaseModel):
    """Request body for granting a course to an organization."""

    course_id: int = Field(..., gt=0, description="Course to grant.")
    allowed_levels: list[int] = Field(..., description="Level sequence numbers the organization may use.")


@router.post("/{org_id}/courses")
async def assign_course(
    org_id: int,
    body: AssignCourseRequest,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.ASSIGN_COURSE)),
) -> JSONResponse:
    """Grant a course, replacing the level set of an existing grant.

    Responds 201 for a new grant and 200 when an existing one was updated.
    """
    ensure_org_access(caller, org_id)
    service = CourseAccessService(session)
    view = await service.assign_course(org_id, body.course_id, body.allowed_levels)
    return JSONResponse(
        status_code=201 if view.created else 200,
        content=view.model_dump(mode="json"),
    )


@router.get("/{org_id}/courses")
async def list_courses(
    org_id: int,
    session: SessionDep,
    caller: CallerIdentity = Depends(require_permission(Permission.VIEW_ASSIGNED_COURSE)),
) -> list[CourseAccessView]:
    """Courses granted to the organization, newest grant first."""
    ensure_org_access(caller, org_id)
    service = CourseAccessService(session)
    return await service.list_courses(org_id)
