"""Robot usage-log ingestion.

A batch is processed in three phases, and a failure in one phase stops
the batch before the next one runs:

1. **Shape**: the payload must be a list.
2. **Gate**: the robot's authoritative license must be active and inside
   its validity window.
3. **Parse**: every row must validate.  The first bad row rejects the whole
   batch, so nothing is written on a parse failure.

Surviving entries are then deduplicated on
``(robot_id, course_id, lesson_id, opened_at)``, first within the batch and
then against persisted logs, which makes resubmitting a batch harmless.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import Clock, utcnow
from robot_core.errors import AccessDeniedError, InvalidInputError
from robot_core.licensing.status_engine import is_within_window
from robot_core.models.usage import IngestResult, UsageLogEntry
from robot_core.state.repository import LicenseRepository, UsageLogRepository

logger = logging.getLogger(__name__)


def parse_entries(payload: Any) -> list[UsageLogEntry]:
    """Validate raw rows into :class:`UsageLogEntry` objects.

    Raises
    ------
    InvalidInputError
        Naming the 1-based row and the first offending field.
    """
    if not isinstance(payload, list):
        raise InvalidInputError("Payload must be an array")

    entries: list[UsageLogEntry] = []
    for index, raw in enumerate(payload, start=1):
        if isinstance(raw, UsageLogEntry):
            entries.append(raw)
            continue
        if not isinstance(raw, dict):
            raise InvalidInputError(f"Row {index}: entry must be an object")
        try:
            entries.append(UsageLogEntry.model_validate(raw))
        except ValidationError as exc:
            first = exc.errors()[0]
            field = first["loc"][0] if first["loc"] else "entry"
            raise InvalidInputError(f"Row {index}: {field} invalid") from exc
    return entries


class UsageLogIngestor:
    """License-gated, idempotent usage-log writer.

    Parameters
    ----------
    session:
        Active database session.
    clock:
        Source of "now" for the license window check.
    """

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._licenses = LicenseRepository(session)
        self._logs = UsageLogRepository(session)

    async def check_license(self, robot_id: int) -> None:
        """Raise :class:`AccessDeniedError` unless the robot may submit logs."""
        license_row = await self._licenses.most_recent_license_for_robot(robot_id)
        if license_row is None or not license_row.is_active:
            logger.warning("Usage logs rejected: robot=%d license revoked or missing", robot_id)
            raise AccessDeniedError("License revoked")
        if not is_within_window(license_row, self._clock()):
            logger.warning("Usage logs rejected: robot=%d license %d expired", robot_id, license_row.id)
            raise AccessDeniedError("License expired")

    async def ingest(self, robot_id: int, payload: Any) -> IngestResult:
        """Insert new usage events for *robot_id* and count the duplicates.

        Parameters
        ----------
        robot_id:
            The submitting robot (from the caller identity).
        payload:
            The decoded request body; expected to be a list of row objects.

        Returns
        -------
        IngestResult
            ``received`` rows, of which ``inserted`` were new and ``skipped``
            were duplicates.
        """
        if not isinstance(payload, list):
            raise InvalidInputError("Payload must be an array")

        await self.check_license(robot_id)
        entries = parse_entries(payload)

        seen: set[tuple[Any, ...]] = set()
        inserted = 0
        skipped = 0
        for entry in entries:
            key = entry.dedup_key(robot_id)
            if key in seen:
                skipped += 1
                continue
            seen.add(key)

            if await self._logs.exists(robot_id, entry.course_id, entry.lesson_id, entry.opened_at):
                skipped += 1
                continue

            await self._logs.create(
                robot_id=robot_id,
                course_id=entry.course_id,
                lesson_id=entry.lesson_id,
                opened_at=entry.opened_at,
                duration_seconds=round(entry.duration_seconds),
            )
            inserted += 1

        logger.info(
            "Usage logs ingested: robot=%d received=%d inserted=%d skipped=%d",
            robot_id,
            len(entries),
            inserted,
            skipped,
        )
        return IngestResult(received=len(entries), inserted=inserted, skipped=skipped)
