"""Authentication middleware that extracts and validates caller tokens.

Extracts ``Authorization: Bearer <token>`` from every request, validates it
via :class:`~api.security.TokenManager`, and populates ``request.state``
with the :class:`~robot_core.models.identity.CallerIdentity` plus the flat
``sub``, ``org_id`` and ``token_type`` fields used by the access log.

Endpoints explicitly listed in ``_PUBLIC_PATHS`` bypass authentication.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from api.config import load_api_settings
from api.security import TokenExpiredError, TokenManager

logger = logging.getLogger(__name__)

# Paths that do not require authentication.
_PUBLIC_PATHS: frozenset[str] = frozenset(
    {
        "/api/v1/health",
        "/docs",
        "/openapi.json",
        "/redoc",
        "/favicon.ico",
    }
)

# Prefixes that skip auth (e.g. static docs assets).
_PUBLIC_PREFIXES: tuple[str, ...] = (
    "/docs",
    "/redoc",
)


def _is_public_path(path: str) -> bool:
    """Return ``True`` if the path should bypass authentication."""
    if path in _PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in _PUBLIC_PREFIXES)


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Starlette middleware that enforces Bearer token authentication.

    On each request the middleware:

    1. Checks whether the path is public (health, docs) and skips auth.
    2. Extracts the ``Authorization: Bearer <token>`` header.
    3. Validates the token via :class:`TokenManager`.
    4. Stores the caller identity on ``request.state``.
    5. Returns a 401/403 JSON response on failure.
    """

    def __init__(self, app: Any, token_manager: TokenManager | None = None) -> None:
        super().__init__(app)
        if token_manager is None:
            settings = load_api_settings()
            token_manager = TokenManager(
                settings.jwt_secret,
                algorithm=settings.jwt_algorithm,
                leeway_seconds=settings.jwt_leeway_seconds,
            )
        self._token_manager = token_manager

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path

        if _is_public_path(path) or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("authorization")
        if not auth_header:
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing Authorization header"},
            )

        parts = auth_header.split(None, 1)
        if len(parts) != 2 or parts[0].lower() != "bearer":
            return JSONResponse(
                status_code=401,
                content={"detail": "Authorization header must use Bearer scheme"},
            )

        try:
            claims = self._token_manager.validate_token(parts[1])
        except TokenExpiredError:
            logger.info("Expired token on %s", path)
            return JSONResponse(status_code=403, content={"detail": "Token has expired"})
        except PermissionError as exc:
            logger.info("Rejected token on %s: %s", path, exc)
            return JSONResponse(status_code=401, content={"detail": f"Invalid token: {exc}"})

        identity = claims.to_identity()
        request.state.identity = identity
        request.state.sub = identity.subject_id
        request.state.org_id = identity.org_id
        request.state.token_type = identity.token_type.value

        return await call_next(request)
