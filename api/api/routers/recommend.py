"""Lesson recommendation endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.dependencies import SessionDep
from api.middleware.rbac import ensure_org_access, get_caller
from robot_core.entitlements import RecommendationService
from robot_core.models.catalog import Recommendation
from robot_core.models.identity import CallerIdentity

logger = logging.getLogger(__name__)

router = APIRouter(tags=["recommend"])


class RecommendRequest(BaseModel):
    """Request body for a lesson lookup."""

    query: str = Field("", description="Free text matched against lesson names.")
    org_id: int | None = Field(None, ge=1, description="Organization to check ownership for; defaults to the caller's.")


@router.post("/recommend")
async def recommend(
    body: RecommendRequest,
    session: SessionDep,
    caller: CallerIdentity = Depends(get_caller),
) -> Recommendation:
    """Best matching lesson, with its content withheld unless the organization may open it."""
    org_id = caller.org_id
    if body.org_id is not None:
        ensure_org_access(caller, body.org_id)
        org_id = body.org_id
    return await RecommendationService(session).recommend(body.query, org_id)
