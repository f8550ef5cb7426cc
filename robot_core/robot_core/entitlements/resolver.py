"""Course entitlement resolution.

Two catalog views are materialized from the course -> level -> lesson tree:

* the **org catalog**: courses granted to an organization, restricted to the
  granted level sequence numbers.  Every lesson of an allowed level is
  included, private or not.
* the **public catalog**: every public course with all of its levels, but
  only the lessons that are themselves public.

Each view is loaded with one query per tree tier so the cost does not grow
with the number of grants.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.models.catalog import CourseView, LessonView, LevelView
from robot_core.state.repository import CourseAccessRepository, CourseRepository
from robot_core.state.tables import (
    CourseLevelTable,
    CourseTable,
    LessonTable,
    OrganizationCourseAccessTable,
)

logger = logging.getLogger(__name__)


def _assemble(
    courses: Iterable[CourseTable],
    levels: Iterable[CourseLevelTable],
    lessons: Iterable[LessonTable],
) -> list[CourseView]:
    """Build the nested view from flat, already-filtered rows."""
    lessons_by_level: dict[int, list[LessonView]] = defaultdict(list)
    for lesson in lessons:
        lessons_by_level[lesson.course_level_id].append(LessonView.model_validate(lesson))

    levels_by_course: dict[int, list[LevelView]] = defaultdict(list)
    for level in levels:
        levels_by_course[level.course_id].append(
            LevelView(
                id=level.id,
                level_name=level.level_name,
                sequence_no=level.sequence_no,
                lessons=lessons_by_level.get(level.id, []),
            )
        )

    return [
        CourseView(
            id=course.id,
            course_code=course.course_code,
            course_name=course.course_name,
            levels=levels_by_course.get(course.id, []),
        )
        for course in sorted(courses, key=lambda c: c.id)
    ]


class CourseEntitlementResolver:
    """Read-only resolver for the org-entitled and public catalogs."""

    def __init__(self, session: AsyncSession) -> None:
        self._courses = CourseRepository(session)
        self._access = CourseAccessRepository(session)

    async def list_access(self, org_id: int) -> list[OrganizationCourseAccessTable]:
        """Raw access rows of an organization, ordered by course id."""
        return await self._access.list_for_org(org_id)

    async def resolve_org_catalog(
        self,
        org_id: int,
        access_rows: list[OrganizationCourseAccessTable] | None = None,
    ) -> list[CourseView]:
        """Courses an organization may use, filtered to its allowed levels.

        Parameters
        ----------
        org_id:
            The organization whose grants are resolved.
        access_rows:
            Grants already loaded by the caller; fetched when omitted.

        Returns
        -------
        list[CourseView]
            Empty when the organization holds no grants.
        """
        if access_rows is None:
            access_rows = await self.list_access(org_id)
        if not access_rows:
            return []

        allowed: dict[int, set[int]] = {row.course_id: set(row.allowed_levels or []) for row in access_rows}
        courses = await self._courses.get_many(list(allowed))
        levels = [
            level
            for level in await self._courses.levels_for_courses([c.id for c in courses])
            if level.sequence_no in allowed.get(level.course_id, set())
        ]
        lessons = await self._courses.lessons_for_levels([level.id for level in levels])

        catalog = _assemble(courses, levels, lessons)
        logger.debug("Resolved org catalog: org=%d courses=%d levels=%d", org_id, len(catalog), len(levels))
        return catalog

    async def resolve_public_catalog(self) -> list[CourseView]:
        """Public courses with all levels and only their public lessons."""
        courses = await self._courses.list_public()
        levels = await self._courses.levels_for_courses([c.id for c in courses])
        lessons = await self._courses.lessons_for_levels([level.id for level in levels], public_only=True)
        return _assemble(courses, levels, lessons)
