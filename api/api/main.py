"""FastAPI application entry-point for the WhizRobot platform API."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from api import __version__
from api.config import APISettings, PlatformEnv, load_api_settings
from api.dependencies import dispose_engine, init_engine
from api.middleware.auth import AuthenticationMiddleware
from api.middleware.json_formatter import install_json_logging
from api.middleware.logging import RequestLoggingMiddleware
from api.routers import course_access, health, licenses, organizations, recommend, robot, robots
from api.security import TokenManager
from robot_core.errors import AccessDeniedError, InvalidInputError, NotFoundError
from robot_core.state.database import create_all_tables

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the state store for the life of the process.

    The engine is created from ``app.state.settings``.  In dev and SQLite
    mode the schema is created in place; staging and production rely on
    ``alembic upgrade head`` having run.  The pool is disposed on shutdown.
    """
    settings: APISettings = app.state.settings

    engine = init_engine(settings)
    logger.info("State store opened (%s, env=%s)", engine.dialect.name, settings.platform_env.value)

    if settings.platform_env == PlatformEnv.DEV or settings.is_local:
        await create_all_tables(engine)

    if settings.structured_logging:
        install_json_logging(logging.DEBUG if settings.debug else logging.INFO)
        logger.info("Structured JSON logging enabled")

    yield

    await dispose_engine()
    logger.info("State store closed")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def create_app(settings: APISettings | None = None) -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = settings or load_api_settings()

    app = FastAPI(
        title="WhizRobot Platform API",
        description="Licensing, course entitlement and content sync for classroom robots.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings

    # -- Middleware (outermost last) -----------------------------------------

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "X-Correlation-ID",
            "Accept",
        ],
    )
    app.add_middleware(
        AuthenticationMiddleware,
        token_manager=TokenManager(
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            leeway_seconds=settings.jwt_leeway_seconds,
        ),
    )
    app.add_middleware(RequestLoggingMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(robot.router, prefix="/api/v1")
    app.include_router(licenses.router, prefix="/api/v1")
    app.include_router(robots.router, prefix="/api/v1")
    app.include_router(organizations.router, prefix="/api/v1")
    app.include_router(course_access.router, prefix="/api/v1")
    app.include_router(recommend.router, prefix="/api/v1")

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
        logger.info("NotFoundError on %s: %s id=%s", request.url.path, exc.entity_type.value, exc.entity_id)
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError) -> JSONResponse:
        logger.warning("InvalidInputError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(AccessDeniedError)
    async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
        logger.warning("AccessDeniedError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=403, content={"detail": str(exc)})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal database error"},
        )

    return app


# Module-level application instance used by ``uvicorn api.main:app``.
app = create_app()
