"""Robot sync orchestration.

Combines the license status engine and the entitlement resolver into one
decision per sync request.  Locking precedence is license first, then
organization binding, then the presence of any course grant, so a robot
with a dead license is locked before its organization's grants are read.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import Clock, utcnow
from robot_core.entitlements.resolver import CourseEntitlementResolver
from robot_core.errors import AccessDeniedError
from robot_core.licensing.status_engine import LicenseStatusEngine
from robot_core.models.identity import CallerIdentity
from robot_core.models.license import LicenseStatus, LicenseStatusResult
from robot_core.models.sync import LockReason, SyncNotification, SyncResponse, SyncStatus
from robot_core.state.repository import RobotRepository

logger = logging.getLogger(__name__)


class RobotSyncOrchestrator:
    """Computes LOCKED / OK sync responses for robot callers.

    Parameters
    ----------
    session:
        Active database session shared by the engine and resolver.
    clock:
        Source of "now" for license status checks.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._engine = LicenseStatusEngine(session, clock=clock)
        self._resolver = CourseEntitlementResolver(session)
        self._robots = RobotRepository(session)

    async def sync(self, caller: CallerIdentity) -> SyncResponse:
        """Incremental poll: decide whether the robot may run and what it gets."""
        return await self._compute(caller, refresh=False)

    async def refresh(self, caller: CallerIdentity) -> SyncResponse:
        """Forced reload: same decision, ``refresh_required`` set to ``True``.

        Also clears the robot's pending administrative refresh request.
        """
        response = await self._compute(caller, refresh=True)
        await self._robots.set_refresh_required(caller.subject_id, False)
        return response

    async def _compute(self, caller: CallerIdentity, *, refresh: bool) -> SyncResponse:
        if not caller.is_robot:
            raise AccessDeniedError("Robot token required")

        robot_id = caller.subject_id
        license_info = await self._engine.resolve_status_for_robot(robot_id)
        status = license_info.status if license_info is not None else LicenseStatus.REVOKED
        await self._robots.touch_last_sync(robot_id, self._clock())

        if license_info is None or license_info.is_locking:
            return self._locked(LockReason(status.value), status, license_info, robot_id, refresh)

        if caller.org_id is None:
            return self._locked(LockReason.ACCESS_REMOVED, status, license_info, robot_id, refresh)

        access_rows = await self._resolver.list_access(caller.org_id)
        if not access_rows:
            return self._locked(LockReason.ACCESS_REMOVED, status, license_info, robot_id, refresh)

        courses = await self._resolver.resolve_org_catalog(caller.org_id, access_rows)
        public_courses = await self._resolver.resolve_public_catalog()
        logger.info(
            "Robot sync OK: robot=%d org=%d status=%s courses=%d public=%d refresh=%s",
            robot_id,
            caller.org_id,
            status.value,
            len(courses),
            len(public_courses),
            refresh,
        )
        return SyncResponse(
            status=SyncStatus.OK,
            license_status=status,
            days_remaining=license_info.days_remaining if license_info else None,
            notifications=_sync_notifications(license_info),
            refresh_required=refresh,
            courses=courses,
            public_courses=public_courses,
        )

    @staticmethod
    def _locked(
        reason: LockReason,
        status: LicenseStatus,
        license_info: LicenseStatusResult | None,
        robot_id: int,
        refresh: bool,
    ) -> SyncResponse:
        logger.warning("Robot locked on sync: robot=%d reason=%s", robot_id, reason.value)
        return SyncResponse(
            status=SyncStatus.LOCKED,
            lock_reason=reason,
            license_status=status,
            days_remaining=license_info.days_remaining if license_info else None,
            notifications=_sync_notifications(license_info),
            refresh_required=refresh,
        )


def _sync_notifications(license_info: LicenseStatusResult | None) -> list[SyncNotification]:
    if license_info is None:
        return []
    return [SyncNotification(type=n.type, message=n.message) for n in license_info.notifications]
