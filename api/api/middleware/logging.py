"""Access logging for every API request.

One record per request on the ``api.access`` logger, carrying a
``request`` dict that :class:`~api.middleware.json_formatter.JSONFormatter`
renders as structured JSON.  Robot sync traffic and admin calls share the
same shape; the ``token_type`` field tells them apart.
"""

from __future__ import annotations

import logging
import time
import uuid
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("api.access")

CORRELATION_HEADER = "X-Correlation-ID"

# Load balancer probes; logged at DEBUG unless they fail.
_PROBE_PATHS = frozenset({"/api/v1/health"})


def _level_for(path: str, status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in _PROBE_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log its outcome.

    The id comes from the ``X-Correlation-ID`` request header when present
    and is echoed on the response.  Caller fields (``sub``, ``org_id``,
    ``token_type``) are read from ``request.state`` as left by
    :class:`~api.middleware.auth.AuthenticationMiddleware`.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or uuid.uuid4().hex
        request.state.correlation_id = correlation_id

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[CORRELATION_HEADER] = correlation_id
            return response
        finally:
            path = request.url.path
            entry: dict[str, Any] = {
                "method": request.method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                "correlation_id": correlation_id,
                "client": request.client.host if request.client else None,
                "token_type": getattr(request.state, "token_type", "anonymous"),
                "sub": getattr(request.state, "sub", None),
                "org_id": getattr(request.state, "org_id", None),
            }
            logger.log(
                _level_for(path, status_code),
                "%s %s -> %d",
                request.method,
                path,
                status_code,
                extra={"request": entry},
            )
