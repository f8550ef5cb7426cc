"""Organization and robot fleet administration."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import Clock, utcnow
from robot_core.errors import EntityType, InvalidInputError, NotFoundError
from robot_core.licensing.status_engine import LicenseStatusEngine
from robot_core.models.fleet import OrganizationView, RobotStatusItem, RobotView
from robot_core.models.identity import CallerIdentity
from robot_core.models.license import LicenseStatus
from robot_core.state.repository import OrganizationRepository, RobotRepository

logger = logging.getLogger(__name__)


class FleetService:
    """Registers organizations and robots and reports fleet license state.

    Parameters
    ----------
    session:
        Active database session.
    clock:
        Source of "now" for the license status of listed robots.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        self._orgs = OrganizationRepository(session)
        self._robots = RobotRepository(session)
        self._status = LicenseStatusEngine(session, clock=clock)

    async def create_organization(self, name: str, region: str, org_type: str) -> OrganizationView:
        if not name.strip():
            raise InvalidInputError("Organization name must not be empty")
        row = await self._orgs.create(name=name.strip(), region=region, org_type=org_type)
        logger.info("Organization created: id=%d name=%s region=%s", row.id, row.name, region)
        return OrganizationView.model_validate(row)

    async def list_organizations(self, caller: CallerIdentity) -> list[OrganizationView]:
        """Organizations visible to *caller*, ordered by id."""
        if caller.is_superadmin:
            rows = await self._orgs.list_all()
        elif caller.org_id is not None:
            row = await self._orgs.get(caller.org_id)
            rows = [row] if row is not None else []
        else:
            rows = []
        return [OrganizationView.model_validate(row) for row in rows]

    async def get_organization(self, org_id: int) -> OrganizationView:
        row = await self._orgs.get(org_id)
        if row is None:
            raise NotFoundError(EntityType.ORGANIZATION, org_id)
        return OrganizationView.model_validate(row)

    async def register_robot(self, org_id: int, robot_code: str) -> RobotView:
        """Register a robot under *org_id*; robot codes are globally unique."""
        if await self._orgs.get(org_id) is None:
            raise NotFoundError(EntityType.ORGANIZATION, org_id)
        if await self._robots.get_by_code(robot_code) is not None:
            raise InvalidInputError(f"Robot code already registered: {robot_code}")

        row = await self._robots.create(org_id=org_id, robot_code=robot_code)
        logger.info("Robot registered: id=%d org=%d code=%s", row.id, org_id, robot_code)
        return RobotView.model_validate(row)

    async def list_robots(self, caller: CallerIdentity) -> list[RobotStatusItem]:
        """Robots visible to *caller* with their current license status.

        Superadmins see the whole fleet, organization users their own
        organization, and callers without an organization nothing.  Robots
        that were never licensed report REVOKED.
        """
        if caller.is_superadmin:
            robots = await self._robots.list_robots()
        elif caller.org_id is not None:
            robots = await self._robots.list_robots(caller.org_id)
        else:
            return []

        items: list[RobotStatusItem] = []
        for robot in robots:
            info = await self._status.resolve_status_for_robot(robot.id)
            items.append(
                RobotStatusItem(
                    robot_id=robot.id,
                    robot_code=robot.robot_code,
                    license_status=info.status if info is not None else LicenseStatus.REVOKED,
                    days_remaining=info.days_remaining if info is not None else None,
                    last_sync_at=robot.last_sync_at,
                )
            )
        return items

    async def get_robot(self, robot_id: int) -> RobotView:
        row = await self._robots.get(robot_id)
        if row is None:
            raise NotFoundError(EntityType.ROBOT, robot_id)
        return RobotView.model_validate(row)

    async def request_refresh(self, robot_id: int) -> dict[str, Any]:
        """Flag the robot so its next sync is treated as a forced reload."""
        if await self._robots.get(robot_id) is None:
            raise NotFoundError(EntityType.ROBOT, robot_id)
        await self._robots.set_refresh_required(robot_id, True)
        logger.info("Refresh requested: robot=%d", robot_id)
        return {"robot_id": robot_id, "refresh_required": True}
