"""
Retention and archival jobs.

Each job selects candidates under its retention rule, then processes every
candidate in its own transaction: archive (where applicable) and delete
commit together or not at all. A failing candidate is logged, recorded in
the run summary and left in place for the next run; the remaining
candidates are still processed. Operators receive a summary email and, when
anything failed, a separate error email.

The same methods back the scheduled runs and the manual admin triggers.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import Settings
from app.core.errors import Conflict
from app.core.logging_config import LogExecutionTime
from app.db.models import (
    ClassRegistration,
    ClassRegistrationArchive,
    ContactMessage,
    Event,
    EventArchive,
    GalleryItem,
    MembershipStatus,
    Payment,
    PaymentArchive,
    PaymentStatus,
    Registration,
    Team,
    UserDetails,
)
from app.db.session import session_scope
from app.jobs.export import build_event_export_rows, export_filename, rows_to_csv
from app.services import email_templates
from app.services.notification_service import (
    EmailAttachment,
    EmailJob,
    NotificationDispatcher,
    dispatch_quietly,
)

logger = logging.getLogger(__name__)

ARCHIVE_TABLES = [
    PaymentArchive.__table__,
    ClassRegistrationArchive.__table__,
    EventArchive.__table__,
]


class ExportError(Exception):
    """The event export could not be produced or delivered."""


@dataclass
class CleanupSummary:
    job: str
    ran_at: datetime
    candidates: int = 0
    processed: int = 0
    failed: list[dict] = field(default_factory=list)
    extra: dict = field(default_factory=dict)

    def record_failure(self, item_id: int, error: Exception) -> None:
        self.failed.append({"id": item_id, "error": str(error)})

    def to_dict(self) -> dict:
        data = asdict(self)
        data["ran_at"] = self.ran_at.isoformat()
        return data


class RetentionJobs:
    """Retention job engine bound to a session factory and a dispatcher."""

    def __init__(
        self,
        session_factory: sessionmaker,
        notifier: NotificationDispatcher | None,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.settings = settings
        self._archives_ready = False
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def local_today(self, now: datetime | None = None) -> date:
        """
        Cutoff day for date-based rules, on the scheduler's clock rather than
        the host's. Timestamp cutoffs (payments, contacts) stay in UTC.
        """
        return self.settings.local_today(now)

    # --- jobs ---

    def update_event_status(self, today: date | None = None) -> CleanupSummary:
        """Flip ``live`` off for events whose start date has passed."""
        today = today or self.local_today()
        summary = CleanupSummary(job="event-status", ran_at=datetime.now(UTC))

        with self._exclusive(summary.job), LogExecutionTime(logger, "event status update"):
            with session_scope(self.session_factory) as db:
                events = db.query(Event).filter(Event.live.is_(True), Event.start_date < today).all()
                for event in events:
                    event.live = False
                summary.candidates = summary.processed = len(events)
                summary.extra["event_ids"] = [e.id for e in events]

        if events:
            logger.info(f"Marked {len(events)} event(s) as not live: {summary.extra['event_ids']}")
        return summary

    def run_event_cleanup(self, today: date | None = None) -> CleanupSummary:
        """
        Export, archive and purge finished events.

        Candidates: ``live = false AND start_date < today - grace``. For each
        event the registration export is emailed to operators first; if that
        fails the event is skipped. Archive and delete then run in a single
        transaction per event.
        """
        today = today or self.local_today()
        cutoff = today - timedelta(days=self.settings.event_cleanup_grace_days)
        summary = CleanupSummary(job="event-cleanup", ran_at=datetime.now(UTC))
        exported_rows = 0

        with self._exclusive(summary.job), LogExecutionTime(logger, "event cleanup"):
            self.ensure_archive_tables()
            event_ids = self._event_candidates(cutoff)
            summary.candidates = len(event_ids)

            for event_id in event_ids:
                try:
                    exported_rows += self._cleanup_event(event_id, today)
                    summary.processed += 1
                except Exception as e:
                    logger.error(f"Event cleanup failed for event {event_id}: {e}", exc_info=True)
                    summary.record_failure(event_id, e)

        summary.extra["exported_rows"] = exported_rows
        self._report(summary)
        return summary

    def run_payment_cleanup(self, now: datetime | None = None) -> CleanupSummary:
        """Archive and delete failed/pending payments older than the retention window."""
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(days=self.settings.payment_retention_days)
        summary = CleanupSummary(job="payment-cleanup", ran_at=datetime.now(UTC))
        counts = {PaymentStatus.FAILED: 0, PaymentStatus.PENDING: 0}
        total = Decimal("0")

        with self._exclusive(summary.job), LogExecutionTime(logger, "payment cleanup"):
            self.ensure_archive_tables()
            with session_scope(self.session_factory) as db:
                payment_ids = [
                    pid
                    for (pid,) in db.query(Payment.id)
                    .filter(
                        Payment.status.in_([PaymentStatus.FAILED, PaymentStatus.PENDING]),
                        Payment.created_at < cutoff,
                    )
                    .order_by(Payment.id)
                ]
            summary.candidates = len(payment_ids)

            for payment_id in payment_ids:
                try:
                    with session_scope(self.session_factory) as db:
                        payment = db.query(Payment).filter(Payment.id == payment_id).first()
                        if payment is None:
                            continue
                        registration = (
                            db.query(Registration)
                            .filter(Registration.id == payment.registration_id)
                            .first()
                        )
                        db.add(self._payment_archive_row(payment, registration))
                        db.delete(payment)
                        status, amount = payment.status, payment.amount
                    counts[status] += 1
                    total += Decimal(str(amount or 0))
                    summary.processed += 1
                except Exception as e:
                    logger.error(f"Payment cleanup failed for payment {payment_id}: {e}", exc_info=True)
                    summary.record_failure(payment_id, e)

        summary.extra.update(
            {
                "failed_payments": counts[PaymentStatus.FAILED],
                "pending_payments": counts[PaymentStatus.PENDING],
                "total_amount": str(total),
            }
        )
        self._report(summary)
        return summary

    def run_contact_cleanup(self, now: datetime | None = None) -> CleanupSummary:
        """Delete contact messages older than the retention window."""
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(days=self.settings.contact_retention_days)
        summary = CleanupSummary(job="contact-cleanup", ran_at=datetime.now(UTC))

        with self._exclusive(summary.job), LogExecutionTime(logger, "contact cleanup"):
            with session_scope(self.session_factory) as db:
                message_ids = [
                    mid
                    for (mid,) in db.query(ContactMessage.id)
                    .filter(ContactMessage.created_at < cutoff)
                    .order_by(ContactMessage.id)
                ]
            summary.candidates = len(message_ids)

            for message_id in message_ids:
                try:
                    with session_scope(self.session_factory) as db:
                        db.query(ContactMessage).filter(ContactMessage.id == message_id).delete(
                            synchronize_session=False
                        )
                    summary.processed += 1
                except Exception as e:
                    logger.error(f"Contact cleanup failed for message {message_id}: {e}")
                    summary.record_failure(message_id, e)

        self._report(summary)
        return summary

    def run_class_registration_cleanup(self, today: date | None = None) -> CleanupSummary:
        """Archive and delete paid memberships whose end date has been reached."""
        today = today or self.local_today()
        summary = CleanupSummary(job="class-registration-cleanup", ran_at=datetime.now(UTC))
        total = Decimal("0")

        with self._exclusive(summary.job), LogExecutionTime(logger, "class registration cleanup"):
            self.ensure_archive_tables()
            with session_scope(self.session_factory) as db:
                membership_ids = [mid for (mid,) in self._expired_memberships(db, today, ClassRegistration.id)]
            summary.candidates = len(membership_ids)

            for membership_id in membership_ids:
                try:
                    with session_scope(self.session_factory) as db:
                        membership = (
                            db.query(ClassRegistration)
                            .filter(ClassRegistration.id == membership_id)
                            .first()
                        )
                        if membership is None:
                            continue
                        db.add(self._membership_archive_row(membership))
                        db.delete(membership)
                        amount = membership.amount
                    total += Decimal(str(amount or 0))
                    summary.processed += 1
                except Exception as e:
                    logger.error(
                        f"Class registration cleanup failed for {membership_id}: {e}", exc_info=True
                    )
                    summary.record_failure(membership_id, e)

        summary.extra["total_amount"] = str(total)
        self._report(summary)
        return summary

    # --- admin views ---

    def get_event_cleanup_preview(self, today: date | None = None) -> list[dict]:
        """Events the next cleanup run would process, with registration counts."""
        today = today or self.local_today()
        cutoff = today - timedelta(days=self.settings.event_cleanup_grace_days)
        with session_scope(self.session_factory) as db:
            rows = (
                db.query(Event, func.count(Registration.id))
                .outerjoin(Registration, Registration.event_id == Event.id)
                .filter(Event.live.is_(False), Event.start_date < cutoff)
                .group_by(Event.id)
                .order_by(Event.start_date)
                .all()
            )
            return [
                {
                    "id": event.id,
                    "title": event.title,
                    "start_date": event.start_date.isoformat(),
                    "registration_count": count,
                }
                for event, count in rows
            ]

    def get_class_registration_stats(self, today: date | None = None) -> dict:
        """Active, expired (awaiting cleanup) and archived membership counts."""
        today = today or self.local_today()
        self.ensure_archive_tables()
        with session_scope(self.session_factory) as db:
            active = (
                db.query(func.count(ClassRegistration.id))
                .filter(
                    ClassRegistration.status == MembershipStatus.SUCCESS,
                    (ClassRegistration.end_date.is_(None)) | (ClassRegistration.end_date > today),
                )
                .scalar()
            )
            expired = self._expired_memberships(db, today, func.count(ClassRegistration.id)).scalar()
            archived = db.query(func.count(ClassRegistrationArchive.id)).scalar()
        return {"active": active or 0, "expired": expired or 0, "archived": archived or 0}

    def get_expired_class_registrations(self, today: date | None = None) -> list[dict]:
        today = today or self.local_today()
        with session_scope(self.session_factory) as db:
            return [
                {
                    "id": m.id,
                    "full_name": m.full_name,
                    "email": m.email,
                    "amount": str(m.amount),
                    "issue_date": m.issue_date.isoformat() if m.issue_date else None,
                    "end_date": m.end_date.isoformat() if m.end_date else None,
                }
                for m in self._expired_memberships(db, today, ClassRegistration).order_by(
                    ClassRegistration.end_date
                )
            ]

    def ensure_archive_tables(self) -> None:
        """Create archive tables on first use."""
        if self._archives_ready:
            return
        with session_scope(self.session_factory) as db:
            bind = db.get_bind()
        for table in ARCHIVE_TABLES:
            table.create(bind=bind, checkfirst=True)
        self._archives_ready = True

    # --- internals ---

    @contextmanager
    def _exclusive(self, job: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(job, threading.Lock())
        if not lock.acquire(blocking=False):
            raise Conflict(f"The {job} job is already running")
        try:
            yield
        finally:
            lock.release()

    def _event_candidates(self, cutoff: date) -> list[int]:
        with session_scope(self.session_factory) as db:
            return [
                eid
                for (eid,) in db.query(Event.id)
                .filter(Event.live.is_(False), Event.start_date < cutoff)
                .order_by(Event.start_date, Event.id)
            ]

    @staticmethod
    def _expired_memberships(db: Session, today: date, *entities):
        return db.query(*entities).filter(
            ClassRegistration.end_date <= today,
            ClassRegistration.status == MembershipStatus.SUCCESS,
        )

    def _cleanup_event(self, event_id: int, today: date) -> int:
        """Export then purge one event. Returns the number of exported rows."""
        with session_scope(self.session_factory) as db:
            event = db.query(Event).filter(Event.id == event_id).first()
            if event is None:
                return 0
            rows = build_event_export_rows(db, event)

        if rows:
            self._send_export(event, rows, today)
        else:
            logger.info(f"Event {event_id} has no registrations; skipping export email")

        with session_scope(self.session_factory) as db:
            event = db.query(Event).filter(Event.id == event_id).first()
            if event is None:
                return len(rows)

            registrations_by_id = {
                r.id: r for r in db.query(Registration).filter(Registration.event_id == event_id)
            }
            registration_ids = list(registrations_by_id)
            payments = []
            if registration_ids:
                payments = (
                    db.query(Payment).filter(Payment.registration_id.in_(registration_ids)).all()
                )

            for payment in payments:
                db.add(
                    self._payment_archive_row(payment, registrations_by_id.get(payment.registration_id))
                )
            db.add(
                EventArchive(
                    original_id=event.id,
                    title=event.title,
                    location=event.location,
                    start_date=event.start_date,
                    is_team_event=event.is_team_event,
                    price_per_person=event.price_per_person,
                    price_per_team=event.price_per_team,
                    registration_count=len(registration_ids),
                    total_collected=sum(
                        (Decimal(str(p.amount or 0)) for p in payments if p.status == PaymentStatus.SUCCESS),
                        Decimal("0"),
                    ),
                    created_at=event.created_at,
                    archived_at=datetime.now(UTC),
                )
            )

            # Foreign-key order: payments, registrations, details, teams, gallery, event
            if registration_ids:
                db.query(Payment).filter(Payment.registration_id.in_(registration_ids)).delete(
                    synchronize_session=False
                )
                db.query(Registration).filter(Registration.id.in_(registration_ids)).delete(
                    synchronize_session=False
                )
            db.query(UserDetails).filter(UserDetails.event_id == event_id).delete(
                synchronize_session=False
            )
            db.query(Team).filter(Team.event_id == event_id).delete(synchronize_session=False)
            gallery_removed = (
                db.query(GalleryItem)
                .filter(GalleryItem.event_name == event.title)
                .delete(synchronize_session=False)
            )
            db.query(Event).filter(Event.id == event_id).delete(synchronize_session=False)

        logger.info(
            f"Purged event {event_id}: {len(registration_ids)} registrations, "
            f"{len(payments)} payments archived, {gallery_removed} gallery items"
        )
        return len(rows)

    def _send_export(self, event: Event, rows: list[dict], today: date) -> None:
        recipients = self.settings.admin_emails
        if not recipients:
            raise ExportError("No operator recipients configured for event export")
        if self.notifier is None:
            raise ExportError("No notification dispatcher configured for event export")

        subject, html = email_templates.event_export(
            self.settings.app_name,
            title=event.title,
            event_id=event.id,
            start_date=event.start_date,
            row_count=len(rows),
        )
        job = EmailJob(
            recipient=recipients,
            subject=subject,
            html=html,
            attachments=[
                EmailAttachment(filename=export_filename(event, today), content=rows_to_csv(rows))
            ],
        )
        result = self.notifier.send(job)
        if not result.delivered:
            raise ExportError(f"Export email for event {event.id} not delivered: {result.error}")
        logger.info(f"Exported {len(rows)} rows for event {event.id} to {recipients}")

    @staticmethod
    def _payment_archive_row(payment: Payment, registration: Registration | None) -> PaymentArchive:
        return PaymentArchive(
            original_id=payment.id,
            registration_id=payment.registration_id,
            razorpay_order_id=payment.razorpay_order_id,
            razorpay_payment_id=payment.razorpay_payment_id,
            amount=payment.amount,
            status=payment.status.value,
            created_at=payment.created_at,
            archived_at=datetime.now(UTC),
            user_id=registration.user_id if registration else None,
            event_id=registration.event_id if registration else None,
        )

    @staticmethod
    def _membership_archive_row(membership: ClassRegistration) -> ClassRegistrationArchive:
        return ClassRegistrationArchive(
            original_id=membership.id,
            user_id=membership.user_id,
            full_name=membership.full_name,
            phone_number=membership.phone_number,
            email=membership.email,
            age=membership.age,
            gender=membership.gender,
            razorpay_order_id=membership.razorpay_order_id,
            razorpay_payment_id=membership.razorpay_payment_id,
            amount=membership.amount,
            status=membership.status.value,
            issue_date=membership.issue_date,
            end_date=membership.end_date,
            created_at=membership.created_at,
            archived_at=datetime.now(UTC),
        )

    def _report(self, summary: CleanupSummary) -> None:
        logger.info(
            f"{summary.job}: {summary.processed}/{summary.candidates} processed, "
            f"{len(summary.failed)} failed"
        )
        recipients = self.settings.admin_emails
        if not recipients or summary.candidates == 0:
            return

        data = summary.to_dict()
        subject, html = email_templates.job_summary(self.settings.app_name, data)
        dispatch_quietly(self.notifier, EmailJob(recipient=recipients, subject=subject, html=html))

        if summary.failed:
            subject, html = email_templates.job_error(self.settings.app_name, data)
            dispatch_quietly(
                self.notifier, EmailJob(recipient=recipients, subject=subject, html=html)
            )
