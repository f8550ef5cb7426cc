"""Lesson lookup by name with entitlement-gated content.

A query matches the most recently updated lesson whose name contains it.
The full ``content_url`` is released when the organization owns the course,
or when both the course and the lesson are public; otherwise the caller gets
a preview and a sales prompt.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from robot_core.errors import InvalidInputError
from robot_core.models.catalog import Recommendation, RecommendedCourse, RecommendedLesson
from robot_core.state.repository import CourseAccessRepository, CourseRepository

logger = logging.getLogger(__name__)

SALES_CTA = "Contact sales to unlock full course"

MIN_QUERY_LENGTH = 2


class RecommendationService:
    def __init__(self, session: AsyncSession) -> None:
        self._courses = CourseRepository(session)
        self._access = CourseAccessRepository(session)

    async def recommend(self, query: str | None, org_id: int | None = None) -> Recommendation:
        """Find a lesson for *query* as seen by organization *org_id*.

        Raises
        ------
        InvalidInputError
            If the query is blank or shorter than two characters.
        """
        trimmed = (query or "").strip()
        if not trimmed:
            raise InvalidInputError("query is required")
        if len(trimmed) < MIN_QUERY_LENGTH:
            raise InvalidInputError(f"query must be at least {MIN_QUERY_LENGTH} characters")

        found = await self._courses.find_lesson_by_name(trimmed)
        if found is None:
            logger.debug("No lesson matches query=%r", trimmed)
            return Recommendation(matched=False)

        lesson, course = found
        owned = org_id is not None and await self._access.get(org_id, course.id) is not None
        full_access = owned or (course.is_public and lesson.is_public)
        logger.info(
            "Recommendation: query=%r lesson=%d course=%d org=%s owned=%s preview=%s",
            trimmed,
            lesson.id,
            course.id,
            org_id,
            owned,
            not full_access,
        )

        return Recommendation(
            matched=True,
            course=RecommendedCourse(course_id=course.id, course_name=course.course_name, owned=owned),
            lesson=RecommendedLesson(
                lesson_id=lesson.id,
                lesson_name=lesson.lesson_name,
                content_url=lesson.content_url if full_access else None,
                preview_only=not full_access,
            ),
            cta=None if owned else SALES_CTA,
        )
