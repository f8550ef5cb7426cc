"""Robot-facing endpoints: content sync, forced refresh, and usage upload.

Every endpoint here requires a ROBOT token; the token subject is the robot
id.  User tokens are rejected with 403 before any store access.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends

from api.dependencies import ClockDep, SessionDep
from api.middleware.rbac import require_robot
from robot_core.models.identity import CallerIdentity
from robot_core.models.sync import SyncResponse
from robot_core.models.usage import IngestResult
from robot_core.sync import RobotSyncOrchestrator
from robot_core.usage import UsageLogIngestor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/robot", tags=["robot"])


@router.get("/sync")
async def sync(
    session: SessionDep,
    clock: ClockDep,
    caller: CallerIdentity = Depends(require_robot),
) -> SyncResponse:
    """Return the lock decision, notifications and entitled content."""
    orchestrator = RobotSyncOrchestrator(session, clock=clock)
    return await orchestrator.sync(caller)


@router.post("/refresh")
async def refresh(
    session: SessionDep,
    clock: ClockDep,
    caller: CallerIdentity = Depends(require_robot),
) -> SyncResponse:
    """Same as sync, but clears the robot's pending refresh flag."""
    orchestrator = RobotSyncOrchestrator(session, clock=clock)
    return await orchestrator.refresh(caller)


@router.post("/logs")
async def upload_logs(
    session: SessionDep,
    clock: ClockDep,
    payload: Any = Body(None),
    caller: CallerIdentity = Depends(require_robot),
) -> IngestResult:
    """Store a batch of usage events; resubmitted events are skipped.

    The body must be a JSON array.  Shape and field errors reject the
    whole batch with 400; an expired or revoked license rejects it with 403.
    """
    ingestor = UsageLogIngestor(session, clock=clock)
    return await ingestor.ingest(caller.subject_id, payload)
