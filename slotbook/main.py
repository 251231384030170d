"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from slotbook.api.v1.router import api_router
from slotbook.core.config import settings
from slotbook.core.logging import setup_logging
from slotbook.db.init_db import init_db
from slotbook.db.session import AsyncSessionLocal
from slotbook.services.notifications import (
    EmailProvider,
    NotificationDispatcher,
    NotificationSender,
)
from slotbook.services.scheduling import (
    ConflictError,
    InvalidTransitionError,
    InvalidWindowError,
    NotAuthorizedError,
    NotFoundError,
    SchedulingError,
    TransientStoreError,
    VersionMismatchError,
)

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


def build_dispatcher() -> NotificationDispatcher:
    """Dispatcher wired to the app's session factory and email provider."""
    sender = NotificationSender(
        session_factory=AsyncSessionLocal,
        email_provider=EmailProvider(
            from_email=settings.mail_from_email,
            from_name=settings.mail_from_name,
        ),
    )
    return NotificationDispatcher(sender, maxsize=settings.notification_queue_size)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup and shutdown events."""
    # Startup
    logger.info(f"Starting Slotbook API (env={settings.env})")

    if settings.init_db_on_startup and settings.is_dev:
        logger.info("Initializing database...")
        await init_db()

    if getattr(app.state, "dispatcher", None) is None:
        app.state.dispatcher = build_dispatcher()
    await app.state.dispatcher.start()

    yield

    # Shutdown
    await app.state.dispatcher.stop()
    logger.info("Shutting down Slotbook API")


# Create FastAPI application
app = FastAPI(
    title="Slotbook API",
    description="Appointment scheduling with conflict detection and audit trail",
    version="0.1.0",
    docs_url="/docs" if settings.is_dev else None,
    redoc_url="/redoc" if settings.is_dev else None,
    openapi_url="/openapi.json" if settings.is_dev else None,
    lifespan=lifespan,
)

# CORS middleware (configure appropriately for production)
if settings.is_dev:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:3001"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _error(status_code: int, code: str, exc: Exception, **extra) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": code, **extra},
    )


@app.exception_handler(ConflictError)
async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
    return _error(
        status.HTTP_409_CONFLICT,
        "conflict",
        exc,
        conflicting_appointment_id=exc.conflicting_appointment_id,
    )


@app.exception_handler(VersionMismatchError)
async def version_mismatch_handler(
    request: Request, exc: VersionMismatchError
) -> JSONResponse:
    return _error(
        status.HTTP_409_CONFLICT,
        "version_mismatch",
        exc,
        expected_version=exc.expected,
        current_version=exc.current,
    )


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(
    request: Request, exc: InvalidTransitionError
) -> JSONResponse:
    return _error(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "invalid_transition",
        exc,
        current_status=exc.current.value,
        requested_status=exc.requested.value,
    )


@app.exception_handler(InvalidWindowError)
async def invalid_window_handler(request: Request, exc: InvalidWindowError) -> JSONResponse:
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "invalid_window", exc)


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(status.HTTP_404_NOT_FOUND, "not_found", exc)


@app.exception_handler(NotAuthorizedError)
async def not_authorized_handler(request: Request, exc: NotAuthorizedError) -> JSONResponse:
    return _error(status.HTTP_403_FORBIDDEN, "forbidden", exc)


@app.exception_handler(TransientStoreError)
async def transient_handler(request: Request, exc: TransientStoreError) -> JSONResponse:
    response = _error(status.HTTP_503_SERVICE_UNAVAILABLE, "transient", exc)
    response.headers["Retry-After"] = "1"
    return response


@app.exception_handler(SchedulingError)
async def scheduling_error_handler(request: Request, exc: SchedulingError) -> JSONResponse:
    return _error(status.HTTP_400_BAD_REQUEST, "scheduling_error", exc)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unhandled exceptions."""
    logger.exception(f"Unhandled exception: {exc}")

    # Don't expose internal errors in production
    if settings.is_prod:
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc)},
    )


# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Root endpoint redirect to docs."""
    return {
        "service": "Slotbook API",
        "version": "0.1.0",
        "docs": "/docs" if settings.is_dev else "Disabled in production",
    }
