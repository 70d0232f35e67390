"""
Test event registration, cancellation, participant details and team rosters.
"""

import json
from decimal import Decimal

from conftest import auth_headers

from app.db.models import Registration, RegistrationStatus, Team, UserDetails, UserRole
from app.repositories.registration_repository import RegistrationRepository

DETAILS = {"first_name": "Asha", "last_name": "Patil", "age_group": "U14", "district": "Pune"}


def register(client, user, event_id, **fields):
    files = fields.pop("files", None)
    data = {
        "event_id": str(event_id),
        "registration_type": fields.pop("registration_type", "individual"),
        "details": json.dumps(fields.pop("details", DETAILS)),
    }
    data.update(fields)
    return client.post(
        "/api/v1/registrations",
        data=data,
        files=files,
        headers=auth_headers(user),
    )


class TestCreateRegistration:
    """Test suite for registration creation."""

    def test_individual_registration_is_pending(self, client, participant, make_event, db_session):
        event = make_event()

        response = register(client, participant, event.id)

        assert response.status_code == 201
        body = response.json()
        assert body["success"] is True
        assert body["data"]["status"] == "pending"
        assert body["data"]["team_id"] is None

        registration = db_session.get(Registration, body["data"]["registration_id"])
        assert registration.status == RegistrationStatus.PENDING
        details = db_session.get(UserDetails, registration.user_details_id)
        assert details.first_name == "Asha"
        assert details.event_id == event.id

    def test_requires_authentication(self, client, make_event):
        event = make_event()
        response = client.post(
            "/api/v1/registrations",
            data={"event_id": str(event.id), "registration_type": "individual"},
        )
        assert response.status_code == 401
        assert response.json()["error"] == "Unauthorized"

    def test_unknown_event_returns_404(self, client, participant):
        response = register(client, participant, 9999)
        assert response.status_code == 404
        assert response.json()["error"] == "NotFound"

    def test_duplicate_individual_registration_conflicts(self, client, participant, make_event):
        event = make_event()
        assert register(client, participant, event.id).status_code == 201

        response = register(client, participant, event.id)

        assert response.status_code == 409
        assert response.json()["error"] == "Conflict"

    def test_store_rejects_second_active_individual_registration(
        self, client, participant, make_event, db_session, monkeypatch
    ):
        # Both requests pass the read-side check, as two concurrent requests would
        monkeypatch.setattr(RegistrationRepository, "has_active_individual", lambda *args: False)
        event = make_event()

        first = register(client, participant, event.id)
        second = register(client, participant, event.id)

        assert first.status_code == 201
        assert second.status_code == 409
        assert second.json()["error"] == "Conflict"
        count = db_session.query(Registration).filter(Registration.event_id == event.id).count()
        assert count == 1
        assert db_session.query(UserDetails).count() == 1

    def test_coach_may_register_several_participants(self, client, make_user, make_event, db_session):
        coach = make_user(role=UserRole.COACH)
        event = make_event()

        first = register(client, coach, event.id)
        second = register(client, coach, event.id, details={"first_name": "Ravi"})

        assert first.status_code == 201
        assert second.status_code == 201
        count = db_session.query(Registration).filter(Registration.user_id == coach.id).count()
        assert count == 2

    def test_cancelled_registration_does_not_block_new_one(self, client, participant, make_event):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]
        client.patch(f"/api/v1/registrations/{reg_id}/cancel", headers=auth_headers(participant))

        response = register(client, participant, event.id)

        assert response.status_code == 201

    def test_unknown_detail_field_is_rejected(self, client, participant, make_event):
        event = make_event()
        response = register(client, participant, event.id, details={"is_admin": True})
        assert response.status_code == 400
        assert response.json()["error"] == "InvalidInput"

    def test_malformed_details_json_is_rejected(self, client, participant, make_event):
        event = make_event()
        response = client.post(
            "/api/v1/registrations",
            data={
                "event_id": str(event.id),
                "registration_type": "individual",
                "details": "{not json",
            },
            headers=auth_headers(participant),
        )
        assert response.status_code == 400
        assert "details must be valid JSON" in response.json()["message"]

    def test_identity_document_is_uploaded(self, client, participant, make_event, storage, db_session):
        event = make_event()

        response = register(
            client,
            participant,
            event.id,
            files={"aadhaar_image": ("id.png", b"\x89PNG fake image", "image/png")},
        )

        assert response.status_code == 201
        registration = db_session.get(Registration, response.json()["data"]["registration_id"])
        details = db_session.get(UserDetails, registration.user_details_id)
        assert details.aadhaar_image.startswith("https://storage.test/identity-documents/")
        assert details.aadhaar_image_public_id in storage.files


class TestTeamRegistration:
    """Test suite for team registrations."""

    def team_event(self, make_event):
        return make_event(
            title="Relay Cup",
            is_team_event=True,
            price_per_person=None,
            price_per_team=Decimal("2000.00"),
            max_team_size=3,
        )

    def test_team_registration_creates_team(self, client, participant, make_event, db_session):
        event = self.team_event(make_event)
        members = [{"name": "A"}, {"name": "B", "phone": "9999999999"}]

        response = register(
            client,
            participant,
            event.id,
            registration_type="team",
            team_name="Rollers",
            team_members=json.dumps(members),
        )

        assert response.status_code == 201
        team = db_session.get(Team, response.json()["data"]["team_id"])
        assert team.name == "Rollers"
        assert team.captain_id == participant.id
        assert [m["name"] for m in team.members] == ["A", "B"]

    def test_team_registration_on_individual_event_is_rejected(
        self, client, participant, make_event, db_session
    ):
        event = make_event()

        response = register(
            client,
            participant,
            event.id,
            registration_type="team",
            team_name="Rollers",
            team_members=json.dumps([{"name": "A"}]),
        )

        assert response.status_code == 400
        assert db_session.query(Team).count() == 0

    def test_team_requires_name_and_members(self, client, participant, make_event):
        event = self.team_event(make_event)

        no_members = register(
            client, participant, event.id, registration_type="team", team_name="Rollers"
        )
        no_name = register(
            client,
            participant,
            event.id,
            registration_type="team",
            team_members=json.dumps([{"name": "A"}]),
        )

        assert no_members.status_code == 400
        assert "members" in no_members.json()["message"]
        assert no_name.status_code == 400
        assert "name" in no_name.json()["message"]

    def test_team_size_limit(self, client, participant, make_event, db_session):
        event = self.team_event(make_event)
        members = [{"name": n} for n in "ABCD"]

        response = register(
            client,
            participant,
            event.id,
            registration_type="team",
            team_name="Too Many",
            team_members=json.dumps(members),
        )

        assert response.status_code == 400
        assert db_session.query(Registration).count() == 0

    def test_captain_can_replace_roster(self, client, participant, make_user, make_event):
        event = self.team_event(make_event)
        team_id = register(
            client,
            participant,
            event.id,
            registration_type="team",
            team_name="Rollers",
            team_members=json.dumps([{"name": "A"}]),
        ).json()["data"]["team_id"]
        url = f"/api/v1/teams/{team_id}/members"

        ok = client.patch(
            url, json={"members": [{"name": "X"}, {"name": "Y"}]}, headers=auth_headers(participant)
        )
        stranger = client.patch(
            url, json={"members": [{"name": "Z"}]}, headers=auth_headers(make_user())
        )
        too_many = client.patch(
            url, json={"members": [{"name": n} for n in "ABCD"]}, headers=auth_headers(participant)
        )

        assert ok.status_code == 200
        assert [m["name"] for m in ok.json()["data"]["members"]] == ["X", "Y"]
        assert stranger.status_code == 403
        assert too_many.status_code == 400


class TestCancelRegistration:
    """Test suite for cancellation rules."""

    def test_owner_can_cancel_and_repeat_is_noop(self, client, participant, make_event):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]
        url = f"/api/v1/registrations/{reg_id}/cancel"

        first = client.patch(url, headers=auth_headers(participant))
        second = client.patch(url, headers=auth_headers(participant))

        assert first.status_code == 200
        assert first.json()["data"] == {"ok": True, "status": "cancelled", "changed": True}
        assert second.status_code == 200
        assert second.json()["data"]["changed"] is False

    def test_other_user_cannot_cancel(self, client, participant, make_user, make_event, db_session):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]

        response = client.patch(
            f"/api/v1/registrations/{reg_id}/cancel", headers=auth_headers(make_user())
        )

        assert response.status_code == 404
        assert db_session.get(Registration, reg_id).status == RegistrationStatus.PENDING

    def test_failed_registration_cannot_be_cancelled(
        self, client, participant, admin_user, make_event
    ):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]
        client.patch(
            f"/api/v1/admin/registrations/{reg_id}/fail",
            json={"reason": "document rejected"},
            headers=auth_headers(admin_user),
        )

        response = client.patch(
            f"/api/v1/registrations/{reg_id}/cancel", headers=auth_headers(participant)
        )

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InvalidStateTransition"
        assert body["data"] == {"current_status": "failed", "requested_status": "cancelled"}


class TestListAndDetails:
    """Test suite for listing registrations and participant details."""

    def test_list_shows_latest_registration_per_event(self, client, participant, make_event):
        event = make_event()
        other = make_event(title="District Meet")
        first = register(client, participant, event.id).json()["data"]["registration_id"]
        client.patch(f"/api/v1/registrations/{first}/cancel", headers=auth_headers(participant))
        second = register(client, participant, event.id).json()["data"]["registration_id"]
        third = register(client, participant, other.id).json()["data"]["registration_id"]

        response = client.get("/api/v1/registrations", headers=auth_headers(participant))

        assert response.status_code == 200
        ids = [r["id"] for r in response.json()["data"]["registrations"]]
        assert sorted(ids) == sorted([second, third])

    def test_coach_sees_every_registration(self, client, make_user, make_event):
        coach = make_user(role=UserRole.COACH)
        event = make_event()
        register(client, coach, event.id)
        register(client, coach, event.id)

        response = client.get("/api/v1/registrations", headers=auth_headers(coach))

        assert len(response.json()["data"]["registrations"]) == 2

    def test_details_access_rules(self, client, participant, make_user, admin_user, make_event):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]
        url = f"/api/v1/registrations/{reg_id}/details"

        owner = client.get(url, headers=auth_headers(participant))
        admin = client.get(url, headers=auth_headers(admin_user))
        stranger = client.get(url, headers=auth_headers(make_user()))

        assert owner.status_code == 200
        assert owner.json()["data"]["details"]["first_name"] == "Asha"
        assert admin.status_code == 200
        assert stranger.status_code == 403

    def test_update_details_allow_list(self, client, participant, make_event):
        event = make_event()
        reg_id = register(client, participant, event.id).json()["data"]["registration_id"]
        url = f"/api/v1/registrations/{reg_id}/details"
        headers = auth_headers(participant)

        updated = client.patch(url, json={"club_name": "Pune Rollers"}, headers=headers)
        unknown = client.patch(url, json={"user_id": 1}, headers=headers)
        empty = client.patch(url, json={}, headers=headers)

        assert updated.status_code == 200
        assert updated.json()["data"]["club_name"] == "Pune Rollers"
        assert updated.json()["data"]["first_name"] == "Asha"
        assert unknown.status_code == 422
        assert empty.status_code == 400
