"""Caller token verification.

Tokens are HS256 JSON Web Tokens issued by the platform's identity service
and share its secret.  The claims are ``sub`` (numeric user or robot id),
``org_id``, ``token_type`` (``USER`` or ``ROBOT``), ``permissions``,
``is_superadmin``, ``license_expiry``, ``iat`` and ``exp``.

Any failure raises :class:`PermissionError`; an expired token raises the
:class:`TokenExpiredError` subclass so the authentication middleware can
answer 403 instead of 401.
"""

from __future__ import annotations

import time
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, Field, SecretStr, ValidationError

from robot_core.models.identity import CallerIdentity, TokenType

DEFAULT_ALGORITHM = "HS256"


class TokenExpiredError(PermissionError):
    """A well-formed, correctly signed token whose ``exp`` has passed."""


class TokenClaims(BaseModel):
    """Validated token payload."""

    sub: int
    org_id: int | None = None
    token_type: TokenType
    permissions: list[str] = Field(default_factory=list)
    is_superadmin: bool = False
    license_expiry: str | None = None
    iat: int | None = None
    exp: int

    def to_identity(self) -> CallerIdentity:
        return CallerIdentity(
            subject_id=self.sub,
            org_id=self.org_id,
            token_type=self.token_type,
            is_superadmin=self.is_superadmin,
            permissions=list(self.permissions),
        )


class TokenManager:
    """Signs and verifies caller JWTs with a shared secret.

    Parameters
    ----------
    secret:
        The signing key shared with the identity service.
    algorithm:
        JWS algorithm; only this one is accepted on verification.
    leeway_seconds:
        Clock skew tolerated on ``exp``.
    """

    def __init__(
        self,
        secret: SecretStr | str,
        *,
        algorithm: str = DEFAULT_ALGORITHM,
        leeway_seconds: int = 30,
    ) -> None:
        self._secret = secret.get_secret_value() if isinstance(secret, SecretStr) else secret
        self._algorithm = algorithm
        self._leeway = leeway_seconds

    def generate_token(
        self,
        *,
        sub: int,
        token_type: TokenType,
        org_id: int | None = None,
        permissions: list[str] | None = None,
        is_superadmin: bool = False,
        license_expiry: str | None = None,
        ttl_seconds: int = 3600,
    ) -> str:
        """Sign a token for the given identity (operator tooling and tests)."""
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": sub,
            "org_id": org_id,
            "token_type": token_type.value,
            "permissions": permissions or [],
            "is_superadmin": is_superadmin,
            "license_expiry": license_expiry,
            "iat": now,
            "exp": now + ttl_seconds,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def validate_token(self, token: str) -> TokenClaims:
        """Verify *token* and return its claims.

        Raises
        ------
        TokenExpiredError
            If the signature is valid but ``exp`` has passed.
        PermissionError
            If the token is malformed, signed with another key or algorithm,
            or its claims do not describe a caller.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # ``sub`` is a numeric id, which RFC 7519 strictness would reject.
                options={"verify_sub": False, "require_exp": True, "leeway": self._leeway},
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("token expired") from exc
        except JWTError as exc:
            raise PermissionError(str(exc)) from exc

        try:
            return TokenClaims.model_validate(payload)
        except ValidationError as exc:
            raise PermissionError("invalid token claims") from exc
