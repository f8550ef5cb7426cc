"""Health-check endpoint.

Registered under the versioned API prefix (``/api/v1/health``) and exempt
from authentication so load-balancers can probe it.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api import __version__
from api.dependencies import SessionDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(session: SessionDep) -> dict[str, Any]:
    """Return service health with a database connectivity check.

    The endpoint always returns HTTP 200 so that load-balancers see the
    service as alive.  The ``db`` field reports whether the store answered.
    """
    result: dict[str, Any] = {
        "status": "healthy",
        "version": __version__,
        "db": "ok",
    }

    try:
        await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as exc:
        logger.warning("DB health check failed: %s", exc)
        result["db"] = "degraded"

    return result
