"""Authenticated caller identity handed to the core by the auth layer.

The core trusts these fields as-is; token signature checks happen before
an identity is constructed.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class TokenType(str, Enum):
    USER = "USER"
    ROBOT = "ROBOT"


class CallerIdentity(BaseModel):
    """Who is calling: a robot (``subject_id`` is the robot id) or a user."""

    subject_id: int
    org_id: int | None = None
    token_type: TokenType
    is_superadmin: bool = False
    permissions: list[str] = Field(default_factory=list)

    @property
    def is_robot(self) -> bool:
        return self.token_type == TokenType.ROBOT

    def has_permission(self, permission: str) -> bool:
        return self.is_superadmin or permission in self.permissions

    def can_access_org(self, org_id: int) -> bool:
        return self.is_superadmin or (self.org_id is not None and self.org_id == org_id)
