"""Tests for the robot sync decision."""

from __future__ import annotations

from datetime import timedelta

import pytest

from robot_core.errors import AccessDeniedError
from robot_core.models.identity import CallerIdentity, TokenType
from robot_core.models.license import LicenseStatus, NotificationType
from robot_core.models.sync import LockReason, SyncStatus
from robot_core.state.repository import CourseAccessRepository, RobotRepository
from robot_core.sync.orchestrator import RobotSyncOrchestrator


def _robot(fleet, *, org_id: int | None = -1) -> CallerIdentity:
    return CallerIdentity(
        subject_id=fleet.robot_id,
        org_id=fleet.org_id if org_id == -1 else org_id,
        token_type=TokenType.ROBOT,
    )


class TestLocking:
    @pytest.mark.asyncio
    async def test_never_licensed_is_locked_revoked(self, async_session, clock, fleet, catalog) -> None:
        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        assert response.status == SyncStatus.LOCKED
        assert response.lock_reason == LockReason.REVOKED
        assert response.license_status == LicenseStatus.REVOKED
        assert response.days_remaining is None
        assert response.courses == []
        assert response.public_courses == []

    @pytest.mark.asyncio
    async def test_revoked_license_locks_before_grants(
        self, async_session, clock, fleet, catalog, make_license
    ) -> None:
        await make_license(is_active=False)
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [1], clock())

        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        assert response.lock_reason == LockReason.REVOKED
        assert response.courses == []

    @pytest.mark.asyncio
    async def test_expired_license_carries_notification(self, async_session, clock, fleet, make_license) -> None:
        await make_license(timedelta(days=-90), timedelta(days=-1))

        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        assert response.is_locked
        assert response.lock_reason == LockReason.EXPIRED
        assert response.days_remaining == -1
        assert [(n.type, n.message) for n in response.notifications] == [
            (NotificationType.EXPIRED, "License has expired"),
        ]

    @pytest.mark.asyncio
    async def test_robot_without_org_is_access_removed(
        self, async_session, clock, fleet, catalog, make_license
    ) -> None:
        await make_license()

        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet, org_id=None))

        assert response.lock_reason == LockReason.ACCESS_REMOVED
        assert response.license_status == LicenseStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_no_grants_is_access_removed_with_active_license(
        self, async_session, clock, fleet, catalog, make_license
    ) -> None:
        await make_license()

        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        assert response.status == SyncStatus.LOCKED
        assert response.lock_reason == LockReason.ACCESS_REMOVED
        assert response.license_status == LicenseStatus.ACTIVE
        assert response.days_remaining == 365
        assert response.courses == []
        assert response.public_courses == []

    @pytest.mark.asyncio
    async def test_user_tokens_are_rejected(self, async_session, clock, fleet) -> None:
        caller = CallerIdentity(subject_id=fleet.robot_id, org_id=fleet.org_id, token_type=TokenType.USER)
        with pytest.raises(AccessDeniedError, match="Robot token required"):
            await RobotSyncOrchestrator(async_session, clock=clock).sync(caller)


class TestOk:
    @pytest.mark.asyncio
    async def test_sync_returns_org_and_public_catalogs(
        self, async_session, clock, fleet, catalog, make_license
    ) -> None:
        await make_license(timedelta(days=-1), timedelta(days=20))
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [1], clock())

        response = await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        assert response.status == SyncStatus.OK
        assert response.lock_reason is None
        assert response.license_status == LicenseStatus.EXPIRING_SOON
        assert response.days_remaining == 20
        assert response.refresh_required is False
        assert [n.type for n in response.notifications] == [NotificationType.WARNING_30_DAYS]
        assert [c.id for c in response.courses] == [catalog.course_id]
        assert [level.sequence_no for level in response.courses[0].levels] == [1]
        assert [c.id for c in response.public_courses] == [catalog.public_course_id]

    @pytest.mark.asyncio
    async def test_sync_stamps_last_sync(self, async_session, clock, fleet, make_license) -> None:
        await make_license()

        await RobotSyncOrchestrator(async_session, clock=clock).sync(_robot(fleet))

        robot = await RobotRepository(async_session).get(fleet.robot_id)
        await async_session.refresh(robot)
        assert robot.last_sync_at == clock()

    @pytest.mark.asyncio
    async def test_refresh_forces_flag_and_clears_request(
        self, async_session, clock, fleet, catalog, make_license
    ) -> None:
        await make_license()
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [1, 2], clock())
        robots = RobotRepository(async_session)
        await robots.set_refresh_required(fleet.robot_id, True)
        orchestrator = RobotSyncOrchestrator(async_session, clock=clock)

        synced = await orchestrator.sync(_robot(fleet))
        refreshed = await orchestrator.refresh(_robot(fleet))

        assert synced.refresh_required is False
        assert refreshed.refresh_required is True
        assert refreshed.courses == synced.courses
        robot = await robots.get(fleet.robot_id)
        await async_session.refresh(robot)
        assert robot.refresh_required is False

    @pytest.mark.asyncio
    async def test_refresh_when_locked_still_sets_flag(self, async_session, clock, fleet) -> None:
        response = await RobotSyncOrchestrator(async_session, clock=clock).refresh(_robot(fleet))

        assert response.is_locked
        assert response.refresh_required is True
