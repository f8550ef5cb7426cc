"""Tests for license-gated, deduplicating usage-log ingestion."""

from __future__ import annotations

from datetime import timedelta

import pytest

from robot_core.errors import AccessDeniedError, InvalidInputError
from robot_core.state.repository import UsageLogRepository
from robot_core.usage.ingestion import UsageLogIngestor, parse_entries

BATCH = [
    {"course_id": 1, "lesson_id": 10, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 120},
    {"course_id": 1, "lesson_id": 11, "opened_at": "2026-02-28T09:05:00Z", "duration_seconds": 45.6},
    {"course_id": 2, "opened_at": "2026-02-28T10:00:00+05:30", "duration_seconds": 0},
]


class TestParseEntries:
    def test_non_list_payload(self) -> None:
        with pytest.raises(InvalidInputError, match="Payload must be an array"):
            parse_entries({"course_id": 1})

    @pytest.mark.parametrize(
        ("row", "field"),
        [
            ({"course_id": 0, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1}, "course_id"),
            (
                {"course_id": 1, "lesson_id": -2, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1},
                "lesson_id",
            ),
            ({"course_id": 1, "opened_at": "yesterday", "duration_seconds": 1}, "opened_at"),
            ({"course_id": 1, "duration_seconds": 1}, "opened_at"),
            ({"course_id": 1, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": -1}, "duration_seconds"),
            ({"course_id": 2**31, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1}, "course_id"),
            (
                {"course_id": 1, "lesson_id": 2**31, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1},
                "lesson_id",
            ),
            ({"course_id": 1, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1e20}, "duration_seconds"),
        ],
    )
    def test_names_row_and_field(self, row, field) -> None:
        with pytest.raises(InvalidInputError, match=rf"^Row 2: {field} invalid$"):
            parse_entries([BATCH[0], row])

    def test_largest_stored_integers_accepted(self) -> None:
        top = 2**31 - 1
        row = {"course_id": top, "lesson_id": top, "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": top}
        assert parse_entries([row])[0].course_id == top

    def test_non_object_row(self) -> None:
        with pytest.raises(InvalidInputError, match="Row 1: entry must be an object"):
            parse_entries(["not-a-row"])

    def test_null_lesson_and_timezone_normalisation(self) -> None:
        entries = parse_entries([{**BATCH[2], "lesson_id": None}])
        assert entries[0].lesson_id is None
        assert entries[0].opened_at.utcoffset() == timedelta(0)
        assert entries[0].opened_at.hour == 4


class TestIngest:
    @pytest.mark.asyncio
    async def test_resubmitted_batch_is_skipped(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        ingestor = UsageLogIngestor(async_session, clock=clock)

        first = await ingestor.ingest(fleet.robot_id, BATCH)
        second = await ingestor.ingest(fleet.robot_id, BATCH)

        assert (first.received, first.inserted, first.skipped) == (3, 3, 0)
        assert (second.received, second.inserted, second.skipped) == (3, 0, 3)
        assert await UsageLogRepository(async_session).count_for_robot(fleet.robot_id) == 3

    @pytest.mark.asyncio
    async def test_in_batch_duplicates_first_wins(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        duplicate = {**BATCH[0], "duration_seconds": 999}

        result = await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, [BATCH[0], duplicate])

        assert (result.received, result.inserted, result.skipped) == (2, 1, 1)

    @pytest.mark.asyncio
    async def test_null_lesson_participates_in_dedup(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        ingestor = UsageLogIngestor(async_session, clock=clock)
        await ingestor.ingest(fleet.robot_id, [BATCH[2]])

        again = await ingestor.ingest(fleet.robot_id, [{**BATCH[2], "lesson_id": None}])
        with_lesson = await ingestor.ingest(fleet.robot_id, [{**BATCH[2], "lesson_id": 5}])

        assert again.skipped == 1
        assert with_lesson.inserted == 1

    @pytest.mark.asyncio
    async def test_duration_is_rounded(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, [BATCH[1]])

        from sqlalchemy import select

        from robot_core.state.tables import RobotUsageLogTable

        stored = (await async_session.execute(select(RobotUsageLogTable))).scalar_one()
        assert stored.duration_seconds == 46

    @pytest.mark.asyncio
    async def test_parse_failure_writes_nothing(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        bad = {"course_id": "abc", "opened_at": "2026-02-28T09:00:00Z", "duration_seconds": 1}

        with pytest.raises(InvalidInputError, match="Row 3: course_id invalid"):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, [BATCH[0], BATCH[1], bad])

        assert await UsageLogRepository(async_session).count_for_robot(fleet.robot_id) == 0

    @pytest.mark.asyncio
    async def test_unlicensed_robot_is_denied(self, async_session, clock, fleet) -> None:
        with pytest.raises(AccessDeniedError, match="License revoked"):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, BATCH)

    @pytest.mark.asyncio
    async def test_revoked_license_is_denied(self, async_session, clock, fleet, make_license) -> None:
        await make_license(is_active=False)
        with pytest.raises(AccessDeniedError, match="License revoked"):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, BATCH)

    @pytest.mark.asyncio
    async def test_expired_license_is_denied(self, async_session, clock, fleet, make_license) -> None:
        await make_license(timedelta(days=-30), timedelta(0))
        with pytest.raises(AccessDeniedError, match="License expired"):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, BATCH)

    @pytest.mark.asyncio
    async def test_gate_runs_before_row_parsing(self, async_session, clock, fleet) -> None:
        with pytest.raises(AccessDeniedError):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, [{"course_id": "bad"}])

    @pytest.mark.asyncio
    async def test_shape_check_runs_before_gate(self, async_session, clock, fleet) -> None:
        with pytest.raises(InvalidInputError, match="Payload must be an array"):
            await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, "nope")

    @pytest.mark.asyncio
    async def test_empty_batch(self, async_session, clock, fleet, make_license) -> None:
        await make_license()
        result = await UsageLogIngestor(async_session, clock=clock).ingest(fleet.robot_id, [])
        assert (result.received, result.inserted, result.skipped) == (0, 0, 0)
