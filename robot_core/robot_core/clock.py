"""Wall-clock abstraction.

Status thresholds depend on the current time, so every component that reads
"now" takes a :data:`Clock` and defaults to :func:`utcnow`.  Tests pass a
:class:`FrozenClock`.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime, timedelta

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class FrozenClock:
    """A clock pinned to a fixed instant that can be moved explicitly."""

    def __init__(self, now: datetime) -> None:
        self._now = ensure_utc(now)

    def __call__(self) -> datetime:
        return self._now

    def advance(self, delta: timedelta) -> None:
        self._now = self._now + delta
