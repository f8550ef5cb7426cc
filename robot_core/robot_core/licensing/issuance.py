"""License administration: issue, revoke, and lock a robot."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import ensure_utc
from robot_core.errors import EntityType, InvalidInputError, NotFoundError
from robot_core.models.license import LicenseView
from robot_core.state.repository import LicenseRepository, OrganizationRepository, RobotRepository

logger = logging.getLogger(__name__)


class LicenseIssuanceService:
    """Creates and revokes licenses.

    Licenses are never deleted; revocation only clears ``is_active`` so the
    status engine reports REVOKED from then on.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._orgs = OrganizationRepository(session)
        self._robots = RobotRepository(session)
        self._licenses = LicenseRepository(session)

    async def issue_license(
        self,
        org_id: int,
        robot_id: int,
        valid_from: datetime,
        valid_until: datetime,
    ) -> LicenseView:
        """Issue a new active license for a robot of *org_id*.

        Raises
        ------
        NotFoundError
            If the organization or robot does not exist, or the robot belongs
            to another organization.
        InvalidInputError
            If the validity window is empty.
        """
        valid_from = ensure_utc(valid_from)
        valid_until = ensure_utc(valid_until)
        if valid_until <= valid_from:
            raise InvalidInputError("valid_until must be after valid_from")

        if await self._orgs.get(org_id) is None:
            raise NotFoundError(EntityType.ORGANIZATION, org_id)

        robot = await self._robots.get(robot_id)
        if robot is None or robot.org_id != org_id:
            raise NotFoundError(EntityType.ROBOT, robot_id, "Robot not found in organization")

        row = await self._licenses.create(
            org_id=org_id,
            robot_id=robot_id,
            license_key=str(uuid.uuid4()),
            valid_from=valid_from,
            valid_until=valid_until,
        )
        logger.info(
            "License issued: id=%d org=%d robot=%d valid_until=%s",
            row.id,
            org_id,
            robot_id,
            valid_until.isoformat(),
        )
        return LicenseView.model_validate(row)

    async def get_license(self, license_id: int) -> LicenseView:
        row = await self._licenses.get(license_id)
        if row is None:
            raise NotFoundError(EntityType.LICENSE, license_id)
        return LicenseView.model_validate(row)

    async def revoke_license(self, license_id: int) -> LicenseView:
        """Deactivate a license.  Revoking twice is a no-op."""
        row = await self._licenses.get(license_id)
        if row is None:
            raise NotFoundError(EntityType.LICENSE, license_id)

        if row.is_active:
            await self._licenses.deactivate(license_id)
            await self._session.refresh(row)
            logger.info("License revoked: id=%d robot=%d", license_id, row.robot_id)
        return LicenseView.model_validate(row)

    async def lock_robot(self, robot_id: int) -> dict[str, Any]:
        """Revoke the robot's most recent active license, if it has one."""
        robot = await self._robots.get(robot_id)
        if robot is None:
            raise NotFoundError(EntityType.ROBOT, robot_id)

        active = await self._licenses.most_recent_active_license_for_robot(robot_id)
        revoked_id: int | None = None
        if active is not None:
            await self._licenses.deactivate(active.id)
            revoked_id = active.id
            logger.info("Robot locked: robot=%d revoked_license=%d", robot_id, active.id)
        else:
            logger.info("Robot locked: robot=%d had no active license", robot_id)

        return {"robot_id": robot_id, "locked": True, "revoked_license_id": revoked_id}
