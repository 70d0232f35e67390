"""
Health check endpoints.

Report API, database, scheduler and email dispatcher status.
"""

import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Request, status
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from app.core.config import settings
from app.core.responses import StandardHTTPException, success_response
from app.db.session import check_database_health, engine
from app.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


def _background_components(request: Request) -> dict[str, str]:
    scheduler = getattr(request.app.state, "scheduler", None)
    notifier = getattr(request.app.state, "notifier", None)
    return {
        "scheduler": "running" if scheduler is not None and scheduler.running else "disabled",
        "notifier": (
            f"celery:{notifier.settings.email_queue} ({notifier.transport})"
            if notifier is not None
            else "disabled"
        ),
    }


@router.get("/health", response_model=HealthResponse, summary="Health Check")
def health_check(request: Request):
    """
    Check the health status of the application.

    The database must answer a trivial query; background components are
    reported but do not make the service unhealthy.
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        raise StandardHTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message="Database connection failed",
        ) from None

    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        components={"database": "healthy", **_background_components(request)},
    )


@router.get("/health/database", summary="Database Health Check")
def database_health_check():
    """
    Detailed database health: connection status, pool statistics and response time.
    """
    db_health = check_database_health()

    if db_health["status"] != "healthy":
        logger.error(f"Database health check failed: {db_health.get('error')}")
        raise StandardHTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            message=f"Database is unhealthy: {db_health.get('error')}",
        )

    return success_response(message="Database is healthy", data=db_health)
