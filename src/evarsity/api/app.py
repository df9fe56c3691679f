"""FastAPI application setup."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from evarsity.api.dependencies import close_services, init_services
from evarsity.api.models import APIResponse
from evarsity.api.routes import (
    certificates,
    courses,
    dropouts,
    enrollments,
    events,
    progress,
    semesters,
)
from evarsity.config import config_from_env
from evarsity.exceptions import (
    AlreadyEnrolledError,
    CertificateExistsError,
    ConcurrencyConflictError,
    CourseNotFoundError,
    EngineError,
    NoPolicyDefinedError,
    NotEnrolledError,
)
from evarsity.logging import get_logger, sanitize_for_log

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from evarsity.config import EngineConfig

logger = get_logger("api")


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=APIResponse[None](data=None, error=message).model_dump(),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    # Startup
    config = app.state.config if app.state.config is not None else config_from_env()
    init_services(config)
    logger.info("Engine started with database %s", config.database_path)

    yield
    # Shutdown
    close_services()


def register_exception_handlers(app: FastAPI) -> None:
    """Map engine errors to HTTP responses."""

    @app.exception_handler(NotEnrolledError)
    async def not_enrolled_handler(_request: Request, _exc: NotEnrolledError) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND, "Student is not currently enrolled in this course"
        )

    @app.exception_handler(CourseNotFoundError)
    async def course_not_found_handler(
        _request: Request, _exc: CourseNotFoundError
    ) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, "Course not found")

    @app.exception_handler(NoPolicyDefinedError)
    async def no_policy_handler(_request: Request, _exc: NoPolicyDefinedError) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND, "No advancement policy for this course and semester"
        )

    @app.exception_handler(AlreadyEnrolledError)
    async def already_enrolled_handler(
        _request: Request, _exc: AlreadyEnrolledError
    ) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, "Student is already enrolled in this course")

    @app.exception_handler(CertificateExistsError)
    async def certificate_exists_handler(
        _request: Request, _exc: CertificateExistsError
    ) -> JSONResponse:
        return _error(
            status.HTTP_409_CONFLICT, "Certificate of this type was already issued"
        )

    @app.exception_handler(ConcurrencyConflictError)
    async def concurrency_conflict_handler(
        _request: Request, _exc: ConcurrencyConflictError
    ) -> JSONResponse:
        return _error(status.HTTP_503_SERVICE_UNAVAILABLE, "Service busy, retry the request")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, sanitize_for_log(str(exc)))

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        logger.error(
            "Engine error on %s %s: %s",
            request.method,
            request.url.path,
            sanitize_for_log(str(exc)),
        )
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


def create_app(config: EngineConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Engine configuration. Resolved from the environment at
            startup when omitted.
    """
    app = FastAPI(
        title="evarsity API",
        description="REST API for the evarsity academic lifecycle engine",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store config for lifespan manager
    app.state.config = config

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Include routers
    app.include_router(courses.router, prefix="/api/v1")
    app.include_router(enrollments.router, prefix="/api/v1")
    app.include_router(progress.router, prefix="/api/v1")
    app.include_router(certificates.router, prefix="/api/v1")
    app.include_router(dropouts.router, prefix="/api/v1")
    app.include_router(semesters.router, prefix="/api/v1")
    app.include_router(events.router, prefix="/api/v1")

    return app


# Default app instance
app = create_app()
