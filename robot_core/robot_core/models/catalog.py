"""Course catalog views returned to robots and administrators."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ContentType(str, Enum):
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"
    TEXT = "TEXT"


class CourseSource(str, Enum):
    """Who authored a course: the platform or a school organization."""

    WHIZROBOT = "WHIZROBOT"
    SCHOOL = "SCHOOL"


class LessonView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    lesson_name: str
    content_type: ContentType
    content_url: str
    is_public: bool
    updated_at: datetime


class LevelView(BaseModel):
    id: int
    level_name: str
    sequence_no: int
    lessons: list[LessonView] = Field(default_factory=list)


class CourseView(BaseModel):
    """A course with the levels and lessons visible to the caller."""

    id: int
    course_code: str
    course_name: str
    levels: list[LevelView] = Field(default_factory=list)


class CourseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    course_code: str
    course_name: str
    is_public: bool
    source: CourseSource


class CourseAccessView(BaseModel):
    """An organization's grant for one course."""

    org_id: int
    course_id: int
    allowed_levels: list[int]
    assigned_at: datetime
    course: CourseSummary | None = None
    created: bool | None = Field(
        default=None,
        description="Set on assignment: True for a new grant, False when an existing grant was replaced.",
    )


# ---------------------------------------------------------------------------
# Lesson recommendation
# ---------------------------------------------------------------------------


class RecommendedCourse(BaseModel):
    course_id: int
    course_name: str
    owned: bool


class RecommendedLesson(BaseModel):
    lesson_id: int
    lesson_name: str
    content_url: str | None = Field(description="Withheld when the caller only gets a preview.")
    preview_only: bool


class Recommendation(BaseModel):
    """Best lesson match for a free-text query and what the caller may open."""

    matched: bool
    course: RecommendedCourse | None = None
    lesson: RecommendedLesson | None = None
    cta: str | None = None
