"""Error taxonomy raised by the core.

The core never swallows or retries; it raises one of these and lets the
transport layer (API exception handlers, CLI) decide how to surface it.
"""

from __future__ import annotations

from enum import Enum


class EntityType(str, Enum):
    """Closed set of entity kinds referenced by errors and admin output."""

    ORGANIZATION = "Organization"
    LICENSE = "License"
    ROBOT = "Robot"
    USER = "User"
    COURSE = "Course"
    COURSE_LEVEL = "CourseLevel"
    LESSON = "Lesson"
    COURSE_ACCESS = "OrganizationCourseAccess"


class RobotCoreError(Exception):
    """Base class for every error raised by ``robot_core``."""


class NotFoundError(RobotCoreError):
    """Raised when an id does not resolve to a persisted entity."""

    def __init__(self, entity_type: EntityType, entity_id: object, detail: str | None = None) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(detail or f"{entity_type.value} not found")


class InvalidInputError(RobotCoreError):
    """Raised for malformed caller input (e.g. a bad usage-log row)."""


class AccessDeniedError(RobotCoreError):
    """Raised when a license gate refuses the operation."""
