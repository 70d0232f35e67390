"""
FastAPI dependency functions.

Authorization helpers, plus accessors for the collaborators that are built
once in the application lifespan and kept on ``app.state``. Tests replace
these through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from app.core.errors import Forbidden, UpstreamError
from app.core.security import get_current_user
from app.db.models import User, UserRole
from app.jobs.retention import RetentionJobs
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaymentGatewayClient
from app.services.storage_service import StorageService


def require_admin(
    current_user: User = Depends(get_current_user),
) -> User:
    """
    Dependency that ensures the current user has admin role.

    Raises:
        Forbidden: 403 if user is not an admin

    Usage:
        @router.get("/admin-only")
        def admin_endpoint(admin: User = Depends(require_admin)):
            ...
    """
    if current_user.role != UserRole.ADMIN:
        raise Forbidden("Admin access required")
    return current_user


def get_payment_gateway(request: Request) -> PaymentGatewayClient:
    gateway = getattr(request.app.state, "payment_gateway", None)
    if gateway is None:
        raise UpstreamError("Payment gateway is not configured")
    return gateway


def get_notifier(request: Request) -> NotificationDispatcher | None:
    return getattr(request.app.state, "notifier", None)


def get_storage(request: Request) -> StorageService | None:
    return getattr(request.app.state, "storage", None)


def get_retention_jobs(request: Request) -> RetentionJobs:
    jobs = getattr(request.app.state, "retention_jobs", None)
    if jobs is None:
        raise UpstreamError("Retention jobs are not configured")
    return jobs
