"""
Cron scheduling for the retention jobs.
"""

import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import Settings
from app.jobs.retention import RetentionJobs

logger = logging.getLogger(__name__)


def build_scheduler(jobs: RetentionJobs, settings: Settings) -> BackgroundScheduler:
    """
    Register every retention job on its own cron trigger.

    Schedules (in ``settings.scheduler_timezone``):
        event-status                hourly
        event-cleanup               daily
        contact-cleanup             daily
        class-registration-cleanup  daily
        payment-cleanup             weekly
    """
    scheduler = BackgroundScheduler(timezone=settings.scheduler_timezone)

    schedule = [
        ("event-status", jobs.update_event_status, settings.event_status_cron),
        ("event-cleanup", jobs.run_event_cleanup, settings.event_cleanup_cron),
        ("contact-cleanup", jobs.run_contact_cleanup, settings.contact_cleanup_cron),
        (
            "class-registration-cleanup",
            jobs.run_class_registration_cleanup,
            settings.class_cleanup_cron,
        ),
        ("payment-cleanup", jobs.run_payment_cleanup, settings.payment_cleanup_cron),
    ]

    for job_id, func, cron in schedule:
        scheduler.add_job(
            func,
            CronTrigger.from_crontab(cron, timezone=settings.scheduler_timezone),
            id=job_id,
            name=job_id,
            max_instances=1,
            coalesce=True,
            misfire_grace_time=3600,
            replace_existing=True,
        )
        logger.info(f"Scheduled {job_id} with cron '{cron}' ({settings.scheduler_timezone})")

    return scheduler
