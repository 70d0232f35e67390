"""
Test the retention jobs: event status, event export and purge, payment,
contact and class membership cleanup, plus the admin triggers.
"""

import csv
import io
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest
from conftest import auth_headers

from app.core.config import settings
from app.core.errors import Conflict
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
    RegistrationStatus,
    RegistrationType,
    Team,
    UserDetails,
)
from app.jobs.retention import RetentionJobs
from app.jobs.scheduler import build_scheduler

TODAY = date(2026, 3, 15)
NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


@pytest.fixture
def finished_event(db_session, participant, make_user, make_event):
    """A past, non-live event with a paid individual entry, a team entry and a gallery image."""
    event = make_event(
        title="Winter Classic",
        start_date=TODAY - timedelta(days=5),
        live=False,
        price_per_team=Decimal("1500.00"),
    )

    details = UserDetails(user_id=participant.id, event_id=event.id, first_name="Asha")
    db_session.add(details)
    db_session.flush()
    paid = Registration(
        user_id=participant.id,
        event_id=event.id,
        registration_type=RegistrationType.INDIVIDUAL,
        status=RegistrationStatus.CONFIRMED,
        user_details_id=details.id,
    )

    captain = make_user()
    team = Team(
        name="Rollers",
        captain_id=captain.id,
        event_id=event.id,
        members=[{"name": "A"}, {"name": "B"}],
    )
    db_session.add_all([paid, team])
    db_session.flush()
    unpaid = Registration(
        user_id=captain.id,
        event_id=event.id,
        team_id=team.id,
        registration_type=RegistrationType.TEAM,
        status=RegistrationStatus.PENDING,
    )
    db_session.add(unpaid)
    db_session.flush()

    db_session.add_all(
        [
            Payment(
                registration_id=paid.id,
                razorpay_order_id="order_1",
                razorpay_payment_id="pay_1",
                amount=Decimal("500.00"),
                status=PaymentStatus.SUCCESS,
            ),
            Payment(
                registration_id=unpaid.id,
                razorpay_order_id="order_2",
                razorpay_payment_id="pay_2",
                amount=Decimal("0"),
                status=PaymentStatus.FAILED,
            ),
            GalleryItem(title="Podium", image_url="https://img.test/1.jpg", event_name=event.title),
        ]
    )
    db_session.commit()
    return event


class TestEventStatus:
    def test_past_live_events_are_switched_off(self, retention_jobs, make_event, db_session):
        past = make_event(title="Past", start_date=TODAY - timedelta(days=1))
        upcoming = make_event(title="Upcoming", start_date=TODAY)

        summary = retention_jobs.update_event_status(today=TODAY)

        assert summary.processed == 1
        assert summary.extra["event_ids"] == [past.id]
        db_session.expire_all()
        assert db_session.get(Event, past.id).live is False
        assert db_session.get(Event, upcoming.id).live is True

    @pytest.mark.parametrize(
        "timezone,expected",
        [("Asia/Kolkata", date(2026, 3, 15)), ("UTC", date(2026, 3, 14))],
    )
    def test_today_follows_scheduler_timezone(self, retention_jobs, timezone, expected):
        pinned = settings.model_copy(update={"scheduler_timezone": timezone})
        jobs = RetentionJobs(retention_jobs.session_factory, retention_jobs.notifier, pinned)

        # 20:00 UTC is already 01:30 the next day in Kolkata
        assert jobs.local_today(datetime(2026, 3, 14, 20, 0, tzinfo=UTC)) == expected

    def test_default_run_uses_local_today(self, retention_jobs, make_event, db_session, monkeypatch):
        past = make_event(title="Yesterday", start_date=TODAY - timedelta(days=1))
        monkeypatch.setattr(retention_jobs, "local_today", lambda now=None: TODAY)

        summary = retention_jobs.update_event_status()

        assert summary.extra["event_ids"] == [past.id]


class TestEventCleanup:
    """Test suite for event export and purge."""

    def test_exports_archives_and_purges_event(
        self, retention_jobs, finished_event, notifier, db_session
    ):
        event_id = finished_event.id

        summary = retention_jobs.run_event_cleanup(today=TODAY)

        assert summary.candidates == 1
        assert summary.processed == 1
        assert summary.failed == []
        assert summary.extra["exported_rows"] == 2

        # Export delivered synchronously to the operators, one row per registration
        assert len(notifier.sent) == 1
        export = notifier.sent[0]
        assert export.recipients == settings.admin_emails
        attachment = export.attachments[0]
        assert attachment.filename == f"event_{event_id}_Winter_Classic_{TODAY.isoformat()}.csv"
        rows = list(csv.DictReader(io.StringIO(attachment.content.decode("utf-8"))))
        assert [r["registration_status"] for r in rows] == ["confirmed", "pending"]
        assert rows[0]["first_name"] == "Asha"
        assert rows[0]["payment_status"] == "success"
        assert rows[1]["team_members"] == "A; B"

        db_session.expire_all()
        assert db_session.get(Event, event_id) is None
        assert db_session.query(Registration).count() == 0
        assert db_session.query(Payment).count() == 0
        assert db_session.query(UserDetails).count() == 0
        assert db_session.query(Team).count() == 0
        assert db_session.query(GalleryItem).count() == 0

        archived_payments = db_session.query(PaymentArchive).order_by(PaymentArchive.id).all()
        assert [p.status for p in archived_payments] == ["success", "failed"]
        assert all(p.event_id == event_id for p in archived_payments)
        archived_event = db_session.query(EventArchive).one()
        assert archived_event.original_id == event_id
        assert archived_event.registration_count == 2
        assert archived_event.total_collected == Decimal("500.00")

        # Run summary goes out through the queue
        assert any("event-cleanup" in job.subject for job in notifier.queued)

    def test_failed_export_leaves_event_in_place(
        self, retention_jobs, finished_event, notifier, db_session
    ):
        notifier.fail_sends = True

        summary = retention_jobs.run_event_cleanup(today=TODAY)

        assert summary.processed == 0
        assert [f["id"] for f in summary.failed] == [finished_event.id]
        db_session.expire_all()
        assert db_session.get(Event, finished_event.id) is not None
        assert db_session.query(Registration).count() == 2
        assert db_session.query(PaymentArchive).count() == 0
        # Summary and error report
        assert len(notifier.queued) == 2

    def test_event_without_registrations_is_purged_without_export(
        self, retention_jobs, make_event, notifier, db_session
    ):
        event = make_event(start_date=TODAY - timedelta(days=3), live=False)

        summary = retention_jobs.run_event_cleanup(today=TODAY)

        assert summary.processed == 1
        assert notifier.sent == []
        db_session.expire_all()
        assert db_session.get(Event, event.id) is None

    def test_grace_period_and_live_events_are_respected(
        self, retention_jobs, make_event, db_session
    ):
        recent = make_event(title="Yesterday", start_date=TODAY - timedelta(days=1), live=False)
        still_live = make_event(title="Stale Live", start_date=TODAY - timedelta(days=10))

        summary = retention_jobs.run_event_cleanup(today=TODAY)
        preview = retention_jobs.get_event_cleanup_preview(today=TODAY)

        assert summary.candidates == 0
        assert preview == []
        db_session.expire_all()
        assert db_session.get(Event, recent.id) is not None
        assert db_session.get(Event, still_live.id) is not None

    def test_preview_lists_candidates(self, retention_jobs, finished_event):
        preview = retention_jobs.get_event_cleanup_preview(today=TODAY)
        assert preview == [
            {
                "id": finished_event.id,
                "title": "Winter Classic",
                "start_date": finished_event.start_date.isoformat(),
                "registration_count": 2,
            }
        ]


class TestPaymentCleanup:
    def test_archives_old_failed_and_pending_payments(
        self, retention_jobs, participant, make_event, db_session
    ):
        event = make_event()
        registration = Registration(
            user_id=participant.id,
            event_id=event.id,
            registration_type=RegistrationType.INDIVIDUAL,
            status=RegistrationStatus.CONFIRMED,
        )
        db_session.add(registration)
        db_session.flush()
        old = NOW - timedelta(days=61)
        recent = NOW - timedelta(days=10)
        db_session.add_all(
            [
                Payment(registration_id=registration.id, razorpay_payment_id="p1",
                        amount=Decimal("0"), status=PaymentStatus.FAILED, created_at=old),
                Payment(registration_id=registration.id, razorpay_payment_id="p2",
                        amount=Decimal("250.00"), status=PaymentStatus.PENDING, created_at=old),
                Payment(registration_id=registration.id, razorpay_payment_id="p3",
                        amount=Decimal("500.00"), status=PaymentStatus.SUCCESS, created_at=old),
                Payment(registration_id=registration.id, razorpay_payment_id="p4",
                        amount=Decimal("0"), status=PaymentStatus.FAILED, created_at=recent),
            ]
        )
        db_session.commit()

        summary = retention_jobs.run_payment_cleanup(now=NOW)

        assert summary.processed == 2
        assert summary.extra == {
            "failed_payments": 1,
            "pending_payments": 1,
            "total_amount": "250.00",
        }
        db_session.expire_all()
        remaining = sorted(p.razorpay_payment_id for p in db_session.query(Payment))
        assert remaining == ["p3", "p4"]
        archived = db_session.query(PaymentArchive).all()
        assert sorted(a.razorpay_payment_id for a in archived) == ["p1", "p2"]
        assert all(a.user_id == participant.id for a in archived)


class TestContactCleanup:
    def test_deletes_messages_past_retention(self, retention_jobs, db_session):
        db_session.add_all(
            [
                ContactMessage(name="Old", email="old@example.com", subject="Hi", message="x",
                               created_at=NOW - timedelta(days=91)),
                ContactMessage(name="New", email="new@example.com", subject="Hi", message="y",
                               created_at=NOW - timedelta(days=5)),
            ]
        )
        db_session.commit()

        summary = retention_jobs.run_contact_cleanup(now=NOW)

        assert summary.processed == 1
        db_session.expire_all()
        assert [m.name for m in db_session.query(ContactMessage)] == ["New"]


class TestClassRegistrationCleanup:
    def membership(self, status, end_date, **kw):
        return ClassRegistration(
            full_name=kw.get("name", "Member"),
            phone_number="9876543210",
            email="member@example.com",
            amount=Decimal("1200.00"),
            status=status,
            issue_date=end_date - timedelta(days=30),
            end_date=end_date,
        )

    def test_archives_expired_paid_memberships(self, retention_jobs, db_session):
        expired = self.membership(MembershipStatus.SUCCESS, TODAY, name="Expired")
        active = self.membership(MembershipStatus.SUCCESS, TODAY + timedelta(days=1), name="Active")
        unpaid = self.membership(MembershipStatus.PENDING, TODAY - timedelta(days=5), name="Unpaid")
        db_session.add_all([expired, active, unpaid])
        db_session.commit()

        stats_before = retention_jobs.get_class_registration_stats(today=TODAY)
        listed = retention_jobs.get_expired_class_registrations(today=TODAY)
        summary = retention_jobs.run_class_registration_cleanup(today=TODAY)
        stats_after = retention_jobs.get_class_registration_stats(today=TODAY)

        assert stats_before == {"active": 1, "expired": 1, "archived": 0}
        assert [m["id"] for m in listed] == [expired.id]
        assert summary.processed == 1
        assert stats_after == {"active": 1, "expired": 0, "archived": 1}

        db_session.expire_all()
        assert sorted(m.full_name for m in db_session.query(ClassRegistration)) == [
            "Active",
            "Unpaid",
        ]
        archived = db_session.query(ClassRegistrationArchive).one()
        assert archived.original_id == expired.id
        assert archived.status == "success"


class TestJobControl:
    def test_concurrent_run_of_same_job_conflicts(self, retention_jobs):
        with retention_jobs._exclusive("contact-cleanup"):
            with pytest.raises(Conflict):
                retention_jobs.run_contact_cleanup(now=NOW)

    def test_scheduler_registers_every_job(self, retention_jobs):
        scheduler = build_scheduler(retention_jobs, settings)
        assert sorted(job.id for job in scheduler.get_jobs()) == [
            "class-registration-cleanup",
            "contact-cleanup",
            "event-cleanup",
            "event-status",
            "payment-cleanup",
        ]

    def test_admin_triggers_require_admin(self, client, participant, admin_user):
        forbidden = client.post("/api/v1/admin/cleanup/contacts", headers=auth_headers(participant))
        allowed = client.post("/api/v1/admin/cleanup/contacts", headers=auth_headers(admin_user))

        assert forbidden.status_code == 403
        assert allowed.status_code == 200
        data = allowed.json()["data"]
        assert data["job"] == "contact-cleanup"
        assert data["candidates"] == 0

    def test_admin_stats_endpoint(self, client, admin_user):
        response = client.get("/api/v1/admin/cleanup/classes/stats", headers=auth_headers(admin_user))
        assert response.status_code == 200
        assert response.json()["data"] == {"active": 0, "expired": 0, "archived": 0}
