"""API router modules for the robot platform."""

from __future__ import annotations

from api.routers import course_access, health, licenses, organizations, recommend, robot, robots

__all__ = [
    "course_access",
    "health",
    "licenses",
    "organizations",
    "recommend",
    "robot",
    "robots",
]
