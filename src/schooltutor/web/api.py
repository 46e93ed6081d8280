"""FastAPI application factory.

Main entry point for the SchoolTutor Web API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from schooltutor.config.app_config import load_app_config
from schooltutor.core.errors import (
    DuplicateStudentError,
    InvalidRequestError,
    SessionNotFoundError,
    StoreError,
    StudentNotFoundError,
    TopicNotFoundError,
)
from schooltutor.web.routes import (
    content_router,
    health_router,
    progress_router,
    sessions_router,
    students_router,
)
from schooltutor.web.services import get_progress_store

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    purged = get_progress_store().purge_expired()
    logger.info(
        "api_startup",
        db_path=config.storage.db_path,
        provider=config.tutor.default_provider,
        expired_events_purged=purged,
    )
    yield


def _error(status_code: int, detail: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": detail, **extra})


def register_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    @app.exception_handler(StudentNotFoundError)
    async def student_not_found(request: Request, exc: StudentNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found(request: Request, exc: SessionNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(TopicNotFoundError)
    async def topic_not_found(request: Request, exc: TopicNotFoundError) -> JSONResponse:
        return _error(status.HTTP_404_NOT_FOUND, str(exc))

    @app.exception_handler(InvalidRequestError)
    async def invalid_request(request: Request, exc: InvalidRequestError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, str(exc), field=exc.field)

    @app.exception_handler(DuplicateStudentError)
    async def duplicate_student(request: Request, exc: DuplicateStudentError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), existing_id=exc.existing_id)

    @app.exception_handler(StoreError)
    async def store_error(request: Request, exc: StoreError) -> JSONResponse:
        logger.error("store_error", path=request.url.path, error=str(exc))
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", error=str(exc))

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error", error=str(exc))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="SchoolTutor API",
        description="Adaptive tutoring and progress analytics",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(health_router)
    app.include_router(students_router)
    app.include_router(progress_router)
    app.include_router(sessions_router)
    app.include_router(content_router)

    return app


# Default app instance for ASGI servers
app = create_app()
