"""License status derivation and one-time threshold notifications.

A license's status is never stored: it is derived on every check from the
``is_active`` flag and the half-open validity window
``[valid_from, valid_until)`` relative to the injected clock.  While a
license is active, each check also makes sure the notification matching the
crossed threshold exists exactly once.

Status table (evaluated top to bottom):

=====================================  ==============  ==================
Condition                              Status          Notification
=====================================  ==============  ==================
``is_active`` is false                 REVOKED         none
``now >= valid_until`` or
``now < valid_from``                   EXPIRED         EXPIRED
``days_remaining <= 7``                EXPIRING_SOON   WARNING_7_DAYS
``days_remaining <= 30``               EXPIRING_SOON   WARNING_30_DAYS
otherwise                              ACTIVE          none
=====================================  ==============  ==================
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import Clock, ensure_utc, utcnow
from robot_core.errors import EntityType, NotFoundError
from robot_core.models.license import (
    NOTIFICATION_MESSAGES,
    LicenseStatus,
    LicenseStatusResult,
    NotificationType,
    NotificationView,
)
from robot_core.state.repository import LicenseRepository, NotificationRepository
from robot_core.state.tables import LicenseTable

logger = logging.getLogger(__name__)

EXPIRING_SOON_DAYS = 30
FINAL_WARNING_DAYS = 7

_SECONDS_PER_DAY = 86_400


@dataclass(frozen=True)
class StatusDecision:
    """Pure outcome of :func:`derive_status`, before any persistence."""

    status: LicenseStatus
    days_remaining: int | None
    notification: NotificationType | None


def days_until(valid_until: datetime, now: datetime) -> int:
    """Whole days from *now* until *valid_until*, rounded up (may be negative)."""
    delta = ensure_utc(valid_until) - ensure_utc(now)
    return math.ceil(delta.total_seconds() / _SECONDS_PER_DAY)


def derive_status(
    *,
    is_active: bool,
    valid_from: datetime,
    valid_until: datetime,
    now: datetime,
) -> StatusDecision:
    """Apply the status table to one license at instant *now*.

    Parameters
    ----------
    is_active:
        The license's administrative flag.
    valid_from, valid_until:
        Bounds of the half-open validity window.
    now:
        Evaluation instant.

    Returns
    -------
    StatusDecision
        Derived status, days remaining (``None`` when revoked) and the
        notification type the check must make sure exists, if any.
    """
    if not is_active:
        return StatusDecision(LicenseStatus.REVOKED, None, None)

    now = ensure_utc(now)
    days_remaining = days_until(valid_until, now)

    if now >= ensure_utc(valid_until) or now < ensure_utc(valid_from):
        return StatusDecision(LicenseStatus.EXPIRED, days_remaining, NotificationType.EXPIRED)

    if days_remaining <= FINAL_WARNING_DAYS:
        return StatusDecision(LicenseStatus.EXPIRING_SOON, days_remaining, NotificationType.WARNING_7_DAYS)

    if days_remaining <= EXPIRING_SOON_DAYS:
        return StatusDecision(LicenseStatus.EXPIRING_SOON, days_remaining, NotificationType.WARNING_30_DAYS)

    return StatusDecision(LicenseStatus.ACTIVE, days_remaining, None)


def is_within_window(license_row: LicenseTable, now: datetime) -> bool:
    """``True`` when ``valid_from <= now < valid_until``."""
    now = ensure_utc(now)
    return ensure_utc(license_row.valid_from) <= now < ensure_utc(license_row.valid_until)


class LicenseStatusEngine:
    """Derives license status and records threshold notifications.

    Parameters
    ----------
    session:
        Active database session; notification inserts join its transaction.
    clock:
        Zero-argument callable returning the current aware UTC datetime.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        self._session = session
        self._clock = clock
        self._licenses = LicenseRepository(session)
        self._notifications = NotificationRepository(session)

    async def resolve_status(self, license_row: LicenseTable) -> LicenseStatusResult:
        """Derive the status of *license_row* and ensure its notification exists.

        Revoked licenses never receive notifications, but their existing
        history is still returned (newest first).
        """
        now = self._clock()
        decision = derive_status(
            is_active=license_row.is_active,
            valid_from=license_row.valid_from,
            valid_until=license_row.valid_until,
            now=now,
        )

        if decision.notification is not None:
            created = await self._notifications.create_once(
                license_id=license_row.id,
                org_id=license_row.org_id,
                robot_id=license_row.robot_id,
                notification_type=decision.notification.value,
                message=NOTIFICATION_MESSAGES[decision.notification],
                created_at=now,
            )
            if created:
                logger.info(
                    "License notification created: license=%d robot=%d type=%s",
                    license_row.id,
                    license_row.robot_id,
                    decision.notification.value,
                )

        history = await self._notifications.list_for_license(license_row.id)
        return LicenseStatusResult(
            status=decision.status,
            days_remaining=decision.days_remaining,
            notifications=[NotificationView.model_validate(n) for n in history],
            license_id=license_row.id,
            org_id=license_row.org_id,
            robot_id=license_row.robot_id,
        )

    async def resolve_status_for_license(self, license_id: int) -> LicenseStatusResult:
        """Status of a license by id.

        Raises
        ------
        NotFoundError
            If *license_id* does not resolve.
        """
        license_row = await self._licenses.get(license_id)
        if license_row is None:
            raise NotFoundError(EntityType.LICENSE, license_id)
        return await self.resolve_status(license_row)

    async def resolve_status_for_robot(self, robot_id: int) -> LicenseStatusResult | None:
        """Status of the robot's authoritative license, or ``None`` if never licensed."""
        license_row = await self._licenses.most_recent_license_for_robot(robot_id)
        if license_row is None:
            return None
        return await self.resolve_status(license_row)
