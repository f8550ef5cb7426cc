"""Administration of organization course grants."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.clock import Clock, utcnow
from robot_core.errors import EntityType, InvalidInputError, NotFoundError
from robot_core.models.catalog import CourseAccessView, CourseSummary
from robot_core.state.repository import CourseAccessRepository, CourseRepository, OrganizationRepository

logger = logging.getLogger(__name__)


def normalize_levels(allowed_levels: Sequence[int]) -> list[int]:
    """Validate and canonicalize a level list: positive ints, deduplicated, sorted."""
    if not allowed_levels:
        raise InvalidInputError("allowed_levels must be a non-empty array of level numbers")
    for level in allowed_levels:
        if isinstance(level, bool) or not isinstance(level, int) or level < 1:
            raise InvalidInputError(f"allowed_levels contains an invalid level: {level!r}")
    return sorted(set(allowed_levels))


class CourseAccessService:
    """Grants, lists and removes an organization's course access."""

    def __init__(self, session: AsyncSession, *, clock: Clock = utcnow) -> None:
        self._clock = clock
        self._orgs = OrganizationRepository(session)
        self._courses = CourseRepository(session)
        self._access = CourseAccessRepository(session)

    async def assign_course(
        self,
        org_id: int,
        course_id: int,
        allowed_levels: Sequence[int],
    ) -> CourseAccessView:
        """Grant *course_id* to *org_id*, replacing any previous level set.

        Raises
        ------
        NotFoundError
            If the organization or course does not exist.
        InvalidInputError
            If *allowed_levels* is empty or holds non-positive values.
        """
        levels = normalize_levels(allowed_levels)

        if await self._orgs.get(org_id) is None:
            raise NotFoundError(EntityType.ORGANIZATION, org_id)
        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError(EntityType.COURSE, course_id)

        existing = await self._access.get(org_id, course_id)
        row = await self._access.upsert(org_id, course_id, levels, assigned_at=self._clock())
        logger.info(
            "Course %s: org=%d course=%d levels=%s",
            "assigned" if existing is None else "access updated",
            org_id,
            course_id,
            levels,
        )
        return CourseAccessView(
            org_id=row.org_id,
            course_id=row.course_id,
            allowed_levels=list(row.allowed_levels),
            assigned_at=row.assigned_at,
            course=CourseSummary.model_validate(course),
            created=existing is None,
        )

    async def list_courses(self, org_id: int) -> list[CourseAccessView]:
        """Grants of an organization with their course summary, newest first."""
        if await self._orgs.get(org_id) is None:
            raise NotFoundError(EntityType.ORGANIZATION, org_id)

        rows = await self._access.list_for_org(org_id, newest_first=True)
        courses = {c.id: c for c in await self._courses.get_many([r.course_id for r in rows])}
        return [
            CourseAccessView(
                org_id=row.org_id,
                course_id=row.course_id,
                allowed_levels=list(row.allowed_levels),
                assigned_at=row.assigned_at,
                course=CourseSummary.model_validate(courses[row.course_id]) if row.course_id in courses else None,
            )
            for row in rows
        ]

    async def remove_course(self, org_id: int, course_id: int) -> None:
        """Withdraw a grant.  Robots of the org lock once no grants remain."""
        removed = await self._access.delete(org_id, course_id)
        if not removed:
            raise NotFoundError(EntityType.COURSE_ACCESS, f"{org_id}/{course_id}")
        logger.info("Course access removed: org=%d course=%d", org_id, course_id)
