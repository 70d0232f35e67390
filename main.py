"""
Main FastAPI application entry point.

This module creates and configures the FastAPI application: middleware,
exception handlers, route registration and the background components
(payment gateway client, email dispatcher, file storage and the retention
job scheduler) that live for the lifetime of the process.
"""

import logging
import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import (
    admin,
    auth,
    classes,
    contact,
    events,
    health,
    payments,
    registrations,
)
from app.core.config import settings
from app.core.errors import error_kind
from app.core.logging_config import setup_logging
from app.core.middleware import LoggingMiddleware, SecurityHeadersMiddleware
from app.core.responses import StandardHTTPException, error_response
from app.db.models import Base
from app.db.session import SessionLocal, engine
from app.jobs.retention import RetentionJobs
from app.jobs.scheduler import build_scheduler
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaymentGatewayClient
from app.services.storage_service import StorageService

# Configure logging
setup_logging()
logger = logging.getLogger("app.main")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """
    FastAPI lifespan context manager.

    Creates tables outside production, then builds the long-lived
    collaborators and keeps them on ``app.state``.
    """
    logger.info("Starting up application...")

    if not settings.is_production and os.getenv("SKIP_DB_INIT") != "1":
        try:
            logger.info("Attempting to create database tables in development mode")
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            Base.metadata.create_all(bind=engine)
            logger.info("Database tables created successfully")
        except SQLAlchemyError as e:
            logger.warning(f"Database initialization failed: {e}")
            logger.info("Application will start without database connectivity")

    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug mode: {settings.debug}")

    db_url_str = str(settings.get_database_url())
    logger.info(f"Database URL: {db_url_str.split('@')[-1] if '@' in db_url_str else db_url_str}")

    app.state.payment_gateway = PaymentGatewayClient.from_settings(settings)

    notifier = NotificationDispatcher(settings)
    app.state.notifier = notifier
    logger.info(
        f"Email delivery via Celery queue '{settings.email_queue}' "
        f"({notifier.transport} transport)"
    )

    app.state.storage = StorageService(settings) if settings.use_gcs else None
    if app.state.storage is None:
        logger.info("File storage disabled (USE_GCS=false); document uploads will be rejected")

    app.state.retention_jobs = RetentionJobs(SessionLocal, notifier, settings)

    app.state.scheduler = None
    if settings.scheduler_enabled and not settings.is_testing:
        scheduler = build_scheduler(app.state.retention_jobs, settings)
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info(f"Retention scheduler started ({len(scheduler.get_jobs())} jobs)")

    yield

    logger.info("Shutting down application...")
    if app.state.scheduler is not None:
        app.state.scheduler.shutdown(wait=False)
    app.state.payment_gateway.close()


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    app = FastAPI(
        title="Sports Event Registration API",
        version=settings.app_version,
        description=(
            "Event and class registration with online payments, "
            "plus scheduled retention and archival of old records."
        ),
        docs_url="/docs" if not settings.is_production else None,
        redoc_url="/redoc" if not settings.is_production else None,
        openapi_url="/openapi.json" if not settings.is_production else None,
        lifespan=lifespan,
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    register_routes(app)

    return app


def setup_middleware(app: FastAPI) -> None:
    """Configure application middleware."""

    # Order matters: added first, executed last
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(LoggingMiddleware)

    # Cannot use "*" with allow_credentials=True
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
        allow_headers=["*"],
        expose_headers=["*"],
        max_age=3600,
    )

    if settings.is_production:
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=["localhost", "127.0.0.1", "*.run.app"],
        )


def setup_exception_handlers(app: FastAPI) -> None:
    """Configure application exception handlers."""

    @app.exception_handler(StandardHTTPException)
    async def standard_exception_handler(request: Request, exc: StandardHTTPException):
        """Domain and standard errors keep their message, data and kind."""
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"HTTP {exc.status_code} error on {request.method} {request.url.path}: {exc.message}")
        return error_response(
            status_code=exc.status_code,
            message=exc.message,
            data=exc.data,
            error=error_kind(exc),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle framework HTTP exceptions (404 routes, 405 methods)."""
        logger.warning(
            f"HTTP {exc.status_code} error on {request.method} {request.url.path}: {exc.detail}"
        )
        return error_response(status_code=exc.status_code, message=str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors with standardized response format."""
        logger.warning(f"Request validation error on {request.method} {request.url.path}: {exc}")

        errors = exc.errors()
        if errors:
            first_error = errors[0]
            if "ctx" in first_error and "error" in first_error["ctx"]:
                error_msg = str(first_error["ctx"]["error"])
            else:
                error_msg = first_error.get("msg", "Validation failed")

            if len(errors) > 1:
                message = f"{error_msg} (and {len(errors) - 1} more validation error{'s' if len(errors) > 2 else ''})"
            else:
                message = error_msg
        else:
            message = "Request validation failed"

        return error_response(status_code=422, message=message, error="InvalidInput")

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Handle database errors."""
        logger.error(
            f"Database error on {request.method} {request.url.path}: {exc}",
            exc_info=True,
            extra={"error_type": type(exc).__name__},
        )
        return error_response(
            status_code=500, message="Internal server error", error="PersistenceError"
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle unexpected errors."""
        logger.error(
            f"Unexpected error on {request.method} {request.url.path}: {exc}",
            exc_info=True,
        )
        return error_response(status_code=500, message="Internal server error")


def register_routes(app: FastAPI) -> None:
    """Register application routes."""

    # Health checks (no authentication required)
    app.include_router(health.router, prefix="/api/v1")

    # Accounts
    app.include_router(auth.router, prefix="/api/v1")

    # Public catalogue and contact form
    app.include_router(events.router, prefix="/api/v1")
    app.include_router(contact.router, prefix="/api/v1")

    # Registrations, payments and memberships
    app.include_router(registrations.router, prefix="/api/v1")
    app.include_router(payments.router, prefix="/api/v1")
    app.include_router(classes.router, prefix="/api/v1")

    # Administration and retention job triggers
    app.include_router(admin.router, prefix="/api/v1")

    @app.get("/api/info", tags=["Root"])
    async def api_info():
        """Get API information in JSON format for programmatic access."""
        return {
            "name": settings.app_name,
            "version": settings.app_version,
            "environment": settings.environment,
            "status": "running",
            "endpoints": {
                "health": "/api/v1/health",
                "events": "/api/v1/events",
                "registrations": "/api/v1/registrations",
                "docs": "/docs" if not settings.is_production else None,
            },
        }


# Create the application instance
app = create_application()


# Development server entry point
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",  # nosec: B104 - Intentional for containerized deployment
        port=int(os.getenv("PORT", "8000")),
        reload=not settings.is_production,
        log_level="info" if settings.is_production else "debug",
    )
