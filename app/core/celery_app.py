"""
Celery application for background email delivery.

Queued emails live in the broker (Redis), so confirmation and report emails
survive API restarts. Run a worker with::

    celery -A app.core.celery_app worker -Q email_queue --loglevel=INFO
"""

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from app.core.config import settings

celery_app = Celery(
    "sportsreg",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.services.notification_service"],
)

celery_app.conf.update(
    accept_content=["json"],
    task_serializer="json",
    result_serializer="json",
    result_expires=24 * 60 * 60,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_routes={"notifications.*": {"queue": settings.email_queue}},
    task_always_eager=settings.celery_task_always_eager,
    broker_transport_options={"priority_steps": list(range(10))},
    worker_hijack_root_logger=False,
    timezone="UTC",
)


@celery_setup_logging.connect
def configure_worker_logging(**kwargs):
    """Workers log through the application's dictConfig."""
    from app.core.logging_config import setup_logging

    setup_logging()
