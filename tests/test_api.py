"""
Test accounts, the public catalogue, contact form, class memberships and
admin management endpoints.
"""

from datetime import date, timedelta
from decimal import Decimal

from conftest import TEST_PASSWORD, auth_headers, sign

from app.db.models import ClassRegistration, GalleryItem, MembershipStatus, UserRole


class TestAuthentication:
    """Test suite for authentication endpoints."""

    def test_signup_and_me(self, client):
        response = client.post(
            "/api/v1/auth/signup",
            json={"username": "asha", "email": "Asha@Example.com", "password": TEST_PASSWORD},
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["user"]["email"] == "asha@example.com"
        assert data["user"]["role"] == "participant"

        me = client.get(
            "/api/v1/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"}
        )
        assert me.status_code == 200
        assert me.json()["data"]["username"] == "asha"

    def test_signup_cannot_claim_admin(self, client):
        response = client.post(
            "/api/v1/auth/signup",
            json={
                "username": "sneaky",
                "email": "sneaky@example.com",
                "password": TEST_PASSWORD,
                "role": "admin",
            },
        )
        assert response.json()["data"]["user"]["role"] == "participant"

    def test_signup_duplicate_email(self, client, participant):
        response = client.post(
            "/api/v1/auth/signup",
            json={"username": "dup", "email": participant.email, "password": TEST_PASSWORD},
        )
        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_signup_invalid_email(self, client):
        response = client.post(
            "/api/v1/auth/signup",
            json={"username": "x1", "email": "invalid-email", "password": TEST_PASSWORD},
        )
        assert response.status_code == 422

    def test_login(self, client, participant):
        ok = client.post(
            "/api/v1/auth/login", json={"email": participant.email, "password": TEST_PASSWORD}
        )
        wrong = client.post(
            "/api/v1/auth/login", json={"email": participant.email, "password": "wrong-password"}
        )

        assert ok.status_code == 200
        assert ok.json()["data"]["access_token"]
        assert wrong.status_code == 401

    def test_invalid_token_is_rejected(self, client):
        response = client.get("/api/v1/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401


class TestEvents:
    """Test suite for event listing and admin management."""

    def test_listing_hides_past_events_by_default(self, client, make_event):
        make_event(title="Past", start_date=date.today() - timedelta(days=2))
        make_event(title="Soon", start_date=date.today() + timedelta(days=2), is_featured=True)
        make_event(title="Later", start_date=date.today() + timedelta(days=20))

        upcoming = client.get("/api/v1/events").json()["data"]["events"]
        everything = client.get("/api/v1/events", params={"include_past": True}).json()
        featured = client.get("/api/v1/events", params={"featured": True}).json()

        assert [e["title"] for e in upcoming] == ["Soon", "Later"]
        assert len(everything["data"]["events"]) == 3
        assert [e["title"] for e in featured["data"]["events"]] == ["Soon"]

    def test_get_missing_event(self, client):
        response = client.get("/api/v1/events/123")
        assert response.status_code == 404

    def test_admin_creates_and_updates_event(self, client, admin_user, participant):
        payload = {
            "title": "Speed Skating Open",
            "start_date": (date.today() + timedelta(days=30)).isoformat(),
            "price_per_person": "750.00",
            "hashtags": ["speed", "open"],
        }

        forbidden = client.post("/api/v1/admin/events", json=payload, headers=auth_headers(participant))
        created = client.post("/api/v1/admin/events", json=payload, headers=auth_headers(admin_user))

        assert forbidden.status_code == 403
        assert created.status_code == 201
        event = created.json()["data"]
        assert event["live"] is True
        assert event["hashtags"] == ["speed", "open"]

        url = f"/api/v1/admin/events/{event['id']}"
        headers = auth_headers(admin_user)
        updated = client.patch(url, json={"is_featured": True}, headers=headers)
        empty = client.patch(url, json={}, headers=headers)
        unknown = client.patch(url, json={"id": 99}, headers=headers)

        assert updated.json()["data"]["is_featured"] is True
        assert empty.status_code == 400
        assert unknown.status_code == 422

    def test_team_event_requires_team_price(self, client, admin_user):
        response = client.post(
            "/api/v1/admin/events",
            json={
                "title": "Relay",
                "start_date": date.today().isoformat(),
                "is_team_event": True,
            },
            headers=auth_headers(admin_user),
        )
        assert response.status_code == 422

    def test_gallery_filter(self, client, db_session):
        db_session.add_all(
            [
                GalleryItem(title="A", image_url="https://img.test/a.jpg", event_name="Cup"),
                GalleryItem(title="B", image_url="https://img.test/b.jpg", event_name="Open"),
            ]
        )
        db_session.commit()

        items = client.get("/api/v1/gallery", params={"event_name": "Cup"}).json()["data"]["items"]

        assert [i["title"] for i in items] == ["A"]

    def test_gallery_item_date_is_serialized(self, client, db_session):
        db_session.add(
            GalleryItem(
                title="Podium",
                image_url="https://img.test/podium.jpg",
                event_name="Cup",
                date=date(2026, 1, 10),
            )
        )
        db_session.commit()

        response = client.get("/api/v1/gallery")

        assert response.status_code == 200
        assert response.json()["data"]["items"][0]["date"] == "2026-01-10"


class TestContact:
    def test_contact_message_lifecycle(self, client, admin_user):
        created = client.post(
            "/api/v1/contact",
            json={
                "name": "Visitor",
                "email": "visitor@example.com",
                "subject": "Timings",
                "message": "When does coaching start?",
            },
        )
        assert created.status_code == 201
        message_id = created.json()["data"]["id"]

        headers = auth_headers(admin_user)
        listing = client.get("/api/v1/admin/contact", headers=headers)
        deleted = client.delete(f"/api/v1/admin/contact/{message_id}", headers=headers)
        missing = client.delete(f"/api/v1/admin/contact/{message_id}", headers=headers)

        assert [m["id"] for m in listing.json()["data"]["messages"]] == [message_id]
        assert deleted.status_code == 200
        assert missing.status_code == 404


class TestClassMemberships:
    """Test suite for class membership registration and payment."""

    def register(self, client, user):
        return client.post(
            "/api/v1/classes/register",
            json={
                "full_name": "Asha Patil",
                "phone_number": "9876543210",
                "email": "asha@example.com",
                "amount": "1200.00",
            },
            headers=auth_headers(user),
        )

    def verify(self, client, user, membership_id, payment_id="pay_c1", signature=None):
        return client.post(
            "/api/v1/classes/verify",
            json={
                "class_registration_id": membership_id,
                "razorpay_order_id": "order_c1",
                "razorpay_payment_id": payment_id,
                "razorpay_signature": signature or sign("order_c1", payment_id),
            },
            headers=auth_headers(user),
        )

    def test_register_defaults_to_pending_thirty_day_membership(self, client, participant):
        response = self.register(client, participant)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["issue_date"] == date.today().isoformat()
        assert data["end_date"] == (date.today() + timedelta(days=30)).isoformat()

    def test_paid_membership_is_listed(self, client, participant, notifier):
        membership_id = self.register(client, participant).json()["data"]["id"]

        response = self.verify(client, participant, membership_id)
        listing = client.get(
            f"/api/v1/classes/memberships/{participant.id}", headers=auth_headers(participant)
        )

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "success"
        assert [m["id"] for m in listing.json()["data"]["memberships"]] == [membership_id]
        assert any(job.subject == "Class membership confirmed" for job in notifier.queued)

    def test_invalid_signature_marks_pending_membership_failed(
        self, client, participant, db_session
    ):
        membership_id = self.register(client, participant).json()["data"]["id"]

        response = self.verify(client, participant, membership_id, signature="bad")

        assert response.status_code == 400
        assert response.json()["data"]["status"] == "failed"
        db_session.expire_all()
        assert db_session.get(ClassRegistration, membership_id).status == MembershipStatus.FAILED

    def test_paid_membership_is_never_downgraded(self, client, participant, db_session):
        membership_id = self.register(client, participant).json()["data"]["id"]
        self.verify(client, participant, membership_id)

        response = self.verify(client, participant, membership_id, payment_id="pay_c2", signature="bad")

        assert response.status_code == 400
        db_session.expire_all()
        membership = db_session.get(ClassRegistration, membership_id)
        assert membership.status == MembershipStatus.SUCCESS
        assert membership.razorpay_payment_id == "pay_c1"

    def test_memberships_are_private(self, client, participant, make_user, admin_user):
        membership_id = self.register(client, participant).json()["data"]["id"]
        stranger = make_user()

        pay = self.verify(client, stranger, membership_id)
        listing = client.get(
            f"/api/v1/classes/memberships/{participant.id}", headers=auth_headers(stranger)
        )
        admin_listing = client.get(
            f"/api/v1/classes/memberships/{participant.id}", headers=auth_headers(admin_user)
        )

        assert pay.status_code == 403
        assert listing.status_code == 403
        assert admin_listing.status_code == 200

    def test_admin_lists_memberships_by_status(self, client, participant, admin_user):
        self.register(client, participant)

        response = client.get(
            "/api/v1/admin/classes", params={"status": "pending"}, headers=auth_headers(admin_user)
        )

        assert len(response.json()["data"]["class_registrations"]) == 1


class TestAdminRegistrations:
    def test_admin_registration_listing_and_fail(
        self, client, participant, admin_user, make_event, db_session
    ):
        event = make_event(price_per_person=Decimal("300.00"))
        reg_id = client.post(
            "/api/v1/registrations",
            data={"event_id": str(event.id), "registration_type": "individual"},
            headers=auth_headers(participant),
        ).json()["data"]["registration_id"]
        headers = auth_headers(admin_user)

        listing = client.get("/api/v1/admin/registrations", params={"event_id": event.id}, headers=headers)
        failed = client.patch(
            f"/api/v1/admin/registrations/{reg_id}/fail", json={"reason": "no show"}, headers=headers
        )
        again = client.patch(
            f"/api/v1/admin/registrations/{reg_id}/fail", json={}, headers=headers
        )

        rows = listing.json()["data"]["registrations"]
        assert [r["id"] for r in rows] == [reg_id]
        assert rows[0]["user"]["email"] == participant.email
        assert rows[0]["payment_status"] is None
        assert failed.json()["data"]["status"] == "failed"
        assert again.status_code == 409

    def test_non_admin_is_forbidden(self, client, make_user):
        coach = make_user(role=UserRole.COACH)
        response = client.get("/api/v1/admin/registrations", headers=auth_headers(coach))
        assert response.status_code == 403
        assert response.json()["error"] == "Forbidden"
