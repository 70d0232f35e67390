"""
Transactional email delivery.

Emails are delivered by the ``notifications.deliver_email`` Celery task.
Request handlers and scheduled jobs queue it through ``NotificationDispatcher``
and never wait on SMTP; the broker keeps queued emails across restarts, and
Celery retries transient SMTP failures with exponential backoff. The export
email of the event cleanup job is the one synchronous send: it runs the
same task in-process so the job knows whether the export reached operators
before anything is deleted.

When no SMTP host is configured, messages are written to the log instead
of being sent (development mode).
"""

import asyncio
import base64
import logging
from dataclasses import asdict, dataclass, field
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr

import aiosmtplib
from celery.result import AsyncResult

from app.core.celery_app import celery_app
from app.core.config import Settings, settings

logger = logging.getLogger(__name__)

# Redis serves lower numbers first
PRIORITY_HIGH = 0
PRIORITY_NORMAL = 5

RETRYABLE_ERRORS = (aiosmtplib.SMTPException, OSError)


@dataclass
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "text/csv"


@dataclass
class EmailJob:
    """A single email to deliver."""

    recipient: str | list[str]
    subject: str
    html: str
    text: str | None = None
    priority: int = PRIORITY_NORMAL
    attachments: list[EmailAttachment] = field(default_factory=list)

    @property
    def recipients(self) -> list[str]:
        if isinstance(self.recipient, str):
            return [self.recipient]
        return list(self.recipient)

    def to_payload(self) -> dict:
        """JSON-safe task payload; attachment bytes travel base64 encoded."""
        return {
            "recipients": self.recipients,
            "subject": self.subject,
            "html": self.html,
            "text": self.text,
            "priority": self.priority,
            "attachments": [
                {
                    "filename": a.filename,
                    "content": base64.b64encode(a.content).decode("ascii"),
                    "content_type": a.content_type,
                }
                for a in self.attachments
            ],
        }

    @classmethod
    def from_payload(cls, payload: dict) -> "EmailJob":
        return cls(
            recipient=payload["recipients"],
            subject=payload["subject"],
            html=payload["html"],
            text=payload.get("text"),
            priority=payload.get("priority", PRIORITY_NORMAL),
            attachments=[
                EmailAttachment(
                    filename=a["filename"],
                    content=base64.b64decode(a["content"]),
                    content_type=a.get("content_type", "text/csv"),
                )
                for a in payload.get("attachments", [])
            ],
        )


@dataclass
class DeliveryResult:
    """Outcome of a delivery; the task's return value."""

    recipients: list[str]
    subject: str
    delivered: bool
    attempts: int
    transport: str
    error: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def transport_name(config: Settings) -> str:
    return "smtp" if config.smtp_host else "console"


def build_message(job: EmailJob, config: Settings) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    msg["Subject"] = job.subject
    msg["From"] = formataddr((config.mail_from_name, config.mail_from))
    msg["To"] = ", ".join(job.recipients)

    body = MIMEMultipart("alternative")
    if job.text:
        body.attach(MIMEText(job.text, "plain"))
    body.attach(MIMEText(job.html, "html"))
    msg.attach(body)

    for attachment in job.attachments:
        subtype = attachment.content_type.split("/")[-1]
        part = MIMEApplication(attachment.content, _subtype=subtype)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)

    return msg


async def transmit(job: EmailJob, config: Settings) -> None:
    """Hand one message to the SMTP server, or log it in console mode."""
    if transport_name(config) == "console":
        attachment_names = [a.filename for a in job.attachments]
        logger.info(
            f"[console email] to={job.recipients} subject='{job.subject}' "
            f"attachments={attachment_names}"
        )
        return

    await aiosmtplib.send(
        build_message(job, config),
        hostname=config.smtp_host,
        port=config.smtp_port,
        username=config.smtp_user,
        password=config.smtp_password,
        use_tls=config.smtp_use_tls,
        start_tls=config.smtp_start_tls,
        timeout=config.smtp_timeout_seconds,
    )


@celery_app.task(
    bind=True,
    name="notifications.deliver_email",
    autoretry_for=RETRYABLE_ERRORS,
    retry_backoff=settings.email_retry_min_seconds,
    retry_backoff_max=settings.email_retry_max_seconds,
    retry_jitter=False,
    max_retries=max(settings.email_retry_attempts - 1, 0),
)
def deliver_email(self, payload: dict) -> dict:
    """Deliver one email; transient SMTP errors are retried by Celery."""
    job = EmailJob.from_payload(payload)
    attempt = self.request.retries + 1
    if attempt > 1:
        logger.info(f"Retrying email '{job.subject}' to {job.recipients} (attempt {attempt})")

    asyncio.run(transmit(job, settings))

    logger.info(f"Email '{job.subject}' delivered to {job.recipients} ({attempt} attempt(s))")
    return DeliveryResult(
        recipients=job.recipients,
        subject=job.subject,
        delivered=True,
        attempts=attempt,
        transport=transport_name(settings),
    ).to_dict()


class NotificationDispatcher:
    """
    Queues emails on the Celery broker.

    Usage:
        dispatcher = NotificationDispatcher(settings)
        handle = dispatcher.enqueue(EmailJob(...))   # AsyncResult
        result = dispatcher.send(EmailJob(...))      # DeliveryResult, blocking
    """

    def __init__(self, settings: Settings, task=deliver_email):
        self.settings = settings
        self.task = task
        self.transport = transport_name(settings)

    def enqueue(self, job: EmailJob) -> AsyncResult:
        """
        Queue a job for background delivery.

        Returns:
            AsyncResult whose value is a DeliveryResult dict

        Raises:
            kombu.exceptions.OperationalError: Broker unreachable
        """
        handle = self.task.apply_async(
            args=[job.to_payload()],
            queue=self.settings.email_queue,
            priority=job.priority,
        )
        logger.debug(f"Queued email '{job.subject}' to {job.recipients} as task {handle.id}")
        return handle

    def send(self, job: EmailJob) -> DeliveryResult:
        """Deliver in-process, retries included, and report the outcome."""
        outcome = self.task.apply(args=[job.to_payload()])
        if outcome.successful():
            return DeliveryResult(**outcome.result)

        error = outcome.result
        attempts = self.task.max_retries + 1 if isinstance(error, RETRYABLE_ERRORS) else 1
        logger.error(
            f"Giving up on email '{job.subject}' to {job.recipients} "
            f"after {attempts} attempt(s): {error}"
        )
        return DeliveryResult(
            recipients=job.recipients,
            subject=job.subject,
            delivered=False,
            attempts=attempts,
            transport=self.transport,
            error=str(error),
        )


def dispatch_quietly(notifier: NotificationDispatcher | None, job: EmailJob) -> AsyncResult | None:
    """
    Queue a job without letting dispatch problems escape.

    Notification is best-effort for the request flows: a missing dispatcher
    or an unreachable broker is logged, never raised.
    """
    if notifier is None:
        logger.warning(f"No notification dispatcher configured; dropping '{job.subject}'")
        return None
    try:
        return notifier.enqueue(job)
    except Exception as e:
        logger.error(f"Could not queue email '{job.subject}' to {job.recipients}: {e}")
        return None
