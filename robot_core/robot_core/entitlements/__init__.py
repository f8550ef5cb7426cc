"""Organization course entitlements."""

from robot_core.entitlements.access import CourseAccessService, normalize_levels
from robot_core.entitlements.recommend import RecommendationService
from robot_core.entitlements.resolver import CourseEntitlementResolver

__all__ = [
    "CourseAccessService",
    "CourseEntitlementResolver",
    "RecommendationService",
    "normalize_levels",
]
