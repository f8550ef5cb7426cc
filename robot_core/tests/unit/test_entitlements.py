"""Tests for the entitlement resolver and course access administration."""

from __future__ import annotations

from datetime import timedelta

import pytest

from robot_core.entitlements.access import CourseAccessService, normalize_levels
from robot_core.entitlements.resolver import CourseEntitlementResolver
from robot_core.errors import EntityType, InvalidInputError, NotFoundError
from robot_core.state.repository import CourseAccessRepository


def _lesson_ids(course) -> set[int]:
    return {lesson.id for level in course.levels for lesson in level.lessons}


# ---------------------------------------------------------------------------
# Org catalog
# ---------------------------------------------------------------------------


class TestOrgCatalog:
    @pytest.mark.asyncio
    async def test_no_grants_is_empty(self, async_session, fleet, catalog) -> None:
        resolver = CourseEntitlementResolver(async_session)
        assert await resolver.resolve_org_catalog(fleet.org_id) == []

    @pytest.mark.asyncio
    async def test_filters_levels_and_keeps_private_lessons(self, async_session, clock, fleet, catalog) -> None:
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [1, 3], clock())

        courses = await CourseEntitlementResolver(async_session).resolve_org_catalog(fleet.org_id)

        assert [c.id for c in courses] == [catalog.course_id]
        course = courses[0]
        assert course.course_code == "ROBO-101"
        assert [level.sequence_no for level in course.levels] == [1, 3]
        assert _lesson_ids(course) == {
            catalog.lesson_ids["l1-public"],
            catalog.lesson_ids["l1-private"],
            catalog.lesson_ids["l3-public"],
            catalog.lesson_ids["l3-private"],
        }

    @pytest.mark.asyncio
    async def test_lesson_metadata_is_preserved(self, async_session, clock, fleet, catalog) -> None:
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [2], clock())

        courses = await CourseEntitlementResolver(async_session).resolve_org_catalog(fleet.org_id)

        lessons = courses[0].levels[0].lessons
        lab = next(lesson for lesson in lessons if lesson.id == catalog.lesson_ids["l2-private"])
        assert lab.content_type.value == "TEXT"
        assert lab.content_url == "https://cdn/l2.md"
        assert lab.is_public is False
        assert lab.updated_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_levels_missing_from_course_are_ignored(self, async_session, clock, fleet, catalog) -> None:
        await CourseAccessRepository(async_session).upsert(fleet.org_id, catalog.course_id, [2, 9], clock())

        courses = await CourseEntitlementResolver(async_session).resolve_org_catalog(fleet.org_id)

        assert [level.sequence_no for level in courses[0].levels] == [2]

    @pytest.mark.asyncio
    async def test_grants_of_other_orgs_are_invisible(self, async_session, clock, fleet, catalog) -> None:
        await CourseAccessRepository(async_session).upsert(fleet.other_org_id, catalog.course_id, [1], clock())

        resolver = CourseEntitlementResolver(async_session)
        assert await resolver.resolve_org_catalog(fleet.org_id) == []
        assert len(await resolver.resolve_org_catalog(fleet.other_org_id)) == 1

    @pytest.mark.asyncio
    async def test_courses_are_ordered_by_id(self, async_session, clock, fleet, catalog) -> None:
        repo = CourseAccessRepository(async_session)
        await repo.upsert(fleet.org_id, catalog.public_course_id, [1], clock())
        await repo.upsert(fleet.org_id, catalog.course_id, [1], clock())

        courses = await CourseEntitlementResolver(async_session).resolve_org_catalog(fleet.org_id)

        assert [c.id for c in courses] == sorted([catalog.course_id, catalog.public_course_id])


# ---------------------------------------------------------------------------
# Public catalog
# ---------------------------------------------------------------------------


class TestPublicCatalog:
    @pytest.mark.asyncio
    async def test_only_public_lessons_of_public_courses(self, async_session, catalog) -> None:
        courses = await CourseEntitlementResolver(async_session).resolve_public_catalog()

        assert [c.id for c in courses] == [catalog.public_course_id]
        assert _lesson_ids(courses[0]) == {catalog.lesson_ids["preview-public"]}

    @pytest.mark.asyncio
    async def test_public_course_keeps_levels_without_public_lessons(self, async_session, catalog) -> None:
        from robot_core.state.repository import CourseRepository

        repo = CourseRepository(async_session)
        level = await repo.add_level(catalog.public_course_id, 2, "Advanced")
        await repo.add_lesson(level.id, "Private only", "TEXT", "https://cdn/p.md")

        courses = await CourseEntitlementResolver(async_session).resolve_public_catalog()

        levels = courses[0].levels
        assert [lvl.sequence_no for lvl in levels] == [1, 2]
        assert levels[1].lessons == []

    @pytest.mark.asyncio
    async def test_empty_when_nothing_is_public(self, async_session) -> None:
        assert await CourseEntitlementResolver(async_session).resolve_public_catalog() == []


# ---------------------------------------------------------------------------
# Course access administration
# ---------------------------------------------------------------------------


class TestNormalizeLevels:
    def test_sorts_and_deduplicates(self) -> None:
        assert normalize_levels([3, 1, 3, 2]) == [1, 2, 3]

    @pytest.mark.parametrize("levels", [[], [0], [-1, 2], [True], ["1"]])
    def test_rejects_invalid(self, levels) -> None:
        with pytest.raises(InvalidInputError):
            normalize_levels(levels)


class TestCourseAccessService:
    @pytest.mark.asyncio
    async def test_assign_creates_grant(self, async_session, clock, fleet, catalog) -> None:
        service = CourseAccessService(async_session, clock=clock)

        view = await service.assign_course(fleet.org_id, catalog.course_id, [2, 1])

        assert view.created is True
        assert view.allowed_levels == [1, 2]
        assert view.assigned_at == clock()
        assert view.course is not None and view.course.course_code == "ROBO-101"

    @pytest.mark.asyncio
    async def test_reassign_replaces_levels(self, async_session, clock, fleet, catalog) -> None:
        service = CourseAccessService(async_session, clock=clock)
        await service.assign_course(fleet.org_id, catalog.course_id, [1, 2])
        clock.advance(timedelta(days=1))

        view = await service.assign_course(fleet.org_id, catalog.course_id, [3])

        assert view.created is False
        assert view.allowed_levels == [3]
        rows = await CourseAccessRepository(async_session).list_for_org(fleet.org_id)
        assert len(rows) == 1
        assert rows[0].allowed_levels == [3]

    @pytest.mark.asyncio
    async def test_unknown_org_or_course(self, async_session, clock, fleet, catalog) -> None:
        service = CourseAccessService(async_session, clock=clock)

        with pytest.raises(NotFoundError) as excinfo:
            await service.assign_course(4242, catalog.course_id, [1])
        assert excinfo.value.entity_type == EntityType.ORGANIZATION

        with pytest.raises(NotFoundError) as excinfo:
            await service.assign_course(fleet.org_id, 4242, [1])
        assert excinfo.value.entity_type == EntityType.COURSE

    @pytest.mark.asyncio
    async def test_list_courses_newest_first(self, async_session, clock, fleet, catalog) -> None:
        service = CourseAccessService(async_session, clock=clock)
        await service.assign_course(fleet.org_id, catalog.course_id, [1])
        clock.advance(timedelta(hours=1))
        await service.assign_course(fleet.org_id, catalog.public_course_id, [1])

        listed = await service.list_courses(fleet.org_id)

        assert [item.course_id for item in listed] == [catalog.public_course_id, catalog.course_id]
        assert listed[0].course is not None and listed[0].course.is_public is True

    @pytest.mark.asyncio
    async def test_remove_course(self, async_session, clock, fleet, catalog) -> None:
        service = CourseAccessService(async_session, clock=clock)
        await service.assign_course(fleet.org_id, catalog.course_id, [1])

        await service.remove_course(fleet.org_id, catalog.course_id)

        assert await service.list_courses(fleet.org_id) == []
        with pytest.raises(NotFoundError):
            await service.remove_course(fleet.org_id, catalog.course_id)
