"""Robot usage-log models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from robot_core.clock import ensure_utc

# Upper bound of the INTEGER columns the entry is stored in.
MAX_INT32 = 2**31 - 1


class UsageLogEntry(BaseModel):
    """One usage event as submitted by a robot."""

    course_id: int = Field(..., gt=0, le=MAX_INT32)
    lesson_id: int | None = Field(default=None, gt=0, le=MAX_INT32)
    opened_at: datetime
    duration_seconds: float = Field(..., ge=0, le=MAX_INT32, allow_inf_nan=False)

    @field_validator("opened_at")
    @classmethod
    def _normalise_opened_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    def dedup_key(self, robot_id: int) -> tuple[int, int, int | None, datetime]:
        """Composite identity used to collapse resubmitted events."""
        return (robot_id, self.course_id, self.lesson_id, self.opened_at)


class IngestResult(BaseModel):
    """Counters reported back to the robot after a batch upload."""

    received: int
    inserted: int
    skipped: int
