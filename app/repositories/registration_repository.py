"""
Data access layer for registrations, their teams and participant details.
"""

from sqlalchemy.orm import Session

from app.db.models import (
    Event,
    Payment,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Team,
    User,
    UserDetails,
)


def active_individual_key(user_id: int, event_id: int) -> str:
    """Value of the unique slot column held by an active individual registration."""
    return f"{user_id}:{event_id}"


class RegistrationRepository:
    """Repository for Registration data access operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, reg_id: int) -> Registration | None:
        return self.db.query(Registration).filter(Registration.id == reg_id).first()

    def get_for_update(self, reg_id: int) -> Registration | None:
        """Get a registration with a row lock (no-op on SQLite)."""
        return (
            self.db.query(Registration)
            .filter(Registration.id == reg_id)
            .with_for_update()
            .first()
        )

    def has_active_individual(self, user_id: int, event_id: int) -> bool:
        """Check for a non-cancelled individual registration on the event."""
        exists = (
            self.db.query(Registration.id)
            .filter(
                Registration.user_id == user_id,
                Registration.event_id == event_id,
                Registration.registration_type == RegistrationType.INDIVIDUAL,
                Registration.status != RegistrationStatus.CANCELLED,
            )
            .first()
        )
        return exists is not None

    def add_team(self, name: str, captain_id: int, event_id: int, members: list) -> Team:
        team = Team(name=name, captain_id=captain_id, event_id=event_id, members=members)
        self.db.add(team)
        self.db.flush()
        return team

    def add_registration(
        self,
        user_id: int,
        event_id: int,
        registration_type: RegistrationType,
        team_id: int | None,
        holds_slot: bool = False,
    ) -> Registration:
        registration = Registration(
            user_id=user_id,
            event_id=event_id,
            team_id=team_id,
            registration_type=registration_type,
            status=RegistrationStatus.PENDING,
            active_individual_key=active_individual_key(user_id, event_id) if holds_slot else None,
        )
        self.db.add(registration)
        self.db.flush()
        return registration

    def add_details(self, user_id: int, event_id: int, fields: dict) -> UserDetails:
        details = UserDetails(user_id=user_id, event_id=event_id, **fields)
        self.db.add(details)
        self.db.flush()
        return details

    def get_details(self, details_id: int | None) -> UserDetails | None:
        if details_id is None:
            return None
        return self.db.query(UserDetails).filter(UserDetails.id == details_id).first()

    def get_team(self, team_id: int | None) -> Team | None:
        if team_id is None:
            return None
        return self.db.query(Team).filter(Team.id == team_id).first()

    def list_for_user(self, user_id: int) -> list[tuple[Registration, Event, Team | None]]:
        """Registrations of a user with their event and team, newest first."""
        return (
            self.db.query(Registration, Event, Team)
            .join(Event, Event.id == Registration.event_id)
            .outerjoin(Team, Team.id == Registration.team_id)
            .filter(Registration.user_id == user_id)
            .order_by(Registration.created_at.desc(), Registration.id.desc())
            .all()
        )

    def list_all(
        self, event_id: int | None = None, skip: int = 0, limit: int = 100
    ) -> list[tuple[Registration, User, Event, Team | None, UserDetails | None]]:
        """Admin listing joined with user, event, team and details."""
        query = (
            self.db.query(Registration, User, Event, Team, UserDetails)
            .join(User, User.id == Registration.user_id)
            .join(Event, Event.id == Registration.event_id)
            .outerjoin(Team, Team.id == Registration.team_id)
            .outerjoin(UserDetails, UserDetails.id == Registration.user_details_id)
        )
        if event_id is not None:
            query = query.filter(Registration.event_id == event_id)
        return (
            query.order_by(Registration.created_at.desc(), Registration.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def latest_payments(self, registration_ids: list[int]) -> dict[int, Payment]:
        """Map registration id to its most recent payment row."""
        if not registration_ids:
            return {}
        payments = (
            self.db.query(Payment)
            .filter(Payment.registration_id.in_(registration_ids))
            .order_by(Payment.created_at.asc(), Payment.id.asc())
            .all()
        )
        latest: dict[int, Payment] = {}
        for payment in payments:
            latest[payment.registration_id] = payment
        return latest
