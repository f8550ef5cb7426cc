"""Middleware components for the robot platform API."""

from __future__ import annotations

from api.middleware.auth import AuthenticationMiddleware
from api.middleware.logging import RequestLoggingMiddleware
from api.middleware.rbac import (
    Permission,
    ensure_org_access,
    get_caller,
    require_permission,
    require_robot,
)

__all__ = [
    "AuthenticationMiddleware",
    "Permission",
    "RequestLoggingMiddleware",
    "ensure_org_access",
    "get_caller",
    "require_permission",
    "require_robot",
]
