"""
Business logic service for event registrations.

Creating a registration persists the team (team events), the pending
registration and its participant details in one transaction. No payment or
email side effects happen here; those belong to payment verification.
"""

import logging
from dataclasses import dataclass

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import (
    Conflict,
    Forbidden,
    InvalidInput,
    NotFound,
    PersistenceError,
    UpstreamError,
)
from app.db.models import (
    Event,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Team,
    User,
    UserDetails,
    UserRole,
)
from app.repositories.registration_repository import RegistrationRepository
from app.schemas.registration import (
    RegistrationCreate,
    TeamMember,
    UserDetailsUpdate,
)
from app.services.registration_state import ensure_transition
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

IDENTITY_DOCUMENT_FOLDER = "identity-documents"


@dataclass
class UploadedDocument:
    """An identity document buffered from the request."""

    data: bytes
    filename: str
    content_type: str | None = None


def requires_unique_registration(principal: User) -> bool:
    """Coaches may hold several individual registrations for the same event."""
    return principal.role != UserRole.COACH


class RegistrationService:
    """Service for registration business logic."""

    def __init__(self, db: Session, storage: StorageService | None = None):
        """Initialize service with database session and optional file host."""
        self.db = db
        self.storage = storage
        self.repo = RegistrationRepository(db)

    def create_registration(
        self,
        principal: User,
        reg_data: RegistrationCreate,
        document: UploadedDocument | None = None,
    ) -> Registration:
        """
        Create a pending registration.

        Args:
            principal: Authenticated user registering
            reg_data: Event, type, team info and participant details
            document: Optional identity document to upload

        Returns:
            The new Registration (status PENDING)

        Raises:
            NotFound: Event does not exist
            Conflict: Duplicate individual registration
            InvalidInput: Team rules violated
            UpstreamError: Document upload failed
            PersistenceError: Any insert failed (nothing is kept)
        """
        event = self.db.query(Event).filter(Event.id == reg_data.event_id).first()
        if not event:
            raise NotFound("Event not found")

        members: list[dict] = []
        holds_slot = (
            reg_data.registration_type == RegistrationType.INDIVIDUAL
            and requires_unique_registration(principal)
        )
        if holds_slot:
            if self.repo.has_active_individual(principal.id, event.id):
                raise Conflict("You are already registered for this event")
        elif reg_data.registration_type == RegistrationType.TEAM:
            members = self._validate_team(event, reg_data)

        uploaded = self._upload_document(principal, document) if document else None

        try:
            team = None
            if reg_data.registration_type == RegistrationType.TEAM:
                team = self.repo.add_team(
                    name=reg_data.team.name.strip(),
                    captain_id=principal.id,
                    event_id=event.id,
                    members=members,
                )

            registration = self.repo.add_registration(
                user_id=principal.id,
                event_id=event.id,
                registration_type=reg_data.registration_type,
                team_id=team.id if team else None,
                holds_slot=holds_slot,
            )

            detail_fields = reg_data.details.model_dump(exclude_none=True)
            if uploaded:
                detail_fields["aadhaar_image"] = uploaded["url"]
                detail_fields["aadhaar_image_public_id"] = uploaded["public_id"]
            details = self.repo.add_details(principal.id, event.id, detail_fields)

            registration.user_details_id = details.id
            self.db.commit()

        except IntegrityError as e:
            self.db.rollback()
            if uploaded:
                self._discard_document(uploaded["public_id"])
            if "active_individual" in str(e.orig):
                # A concurrent request took the slot between check and insert
                raise Conflict("You are already registered for this event") from None
            logger.error(f"Integrity error creating registration for user {principal.id}: {e}")
            raise PersistenceError("Failed to create registration") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create registration for user {principal.id}: {e}")
            if uploaded:
                self._discard_document(uploaded["public_id"])
            raise PersistenceError("Failed to create registration") from e

        logger.info(
            f"Registration {registration.id} created: user {principal.id}, event {event.id}, "
            f"type {registration.registration_type.value}"
        )
        return registration

    def cancel_registration(self, principal: User, reg_id: int) -> dict:
        """
        Cancel the principal's own registration.

        Cancelling an already-cancelled registration succeeds without change.

        Raises:
            NotFound: Registration missing or not owned by the principal
            InvalidStateTransition: Registration is FAILED
        """
        try:
            registration = self.repo.get_for_update(reg_id)
            if not registration or registration.user_id != principal.id:
                raise NotFound("Registration not found")

            if registration.status == RegistrationStatus.CANCELLED:
                self.db.rollback()
                return {"ok": True, "status": registration.status.value, "changed": False}

            ensure_transition(registration.status, RegistrationStatus.CANCELLED)
            registration.status = RegistrationStatus.CANCELLED
            registration.active_individual_key = None
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to cancel registration {reg_id}: {e}")
            raise PersistenceError("Failed to cancel registration") from e

        logger.info(f"Registration {reg_id} cancelled by user {principal.id}")
        return {"ok": True, "status": registration.status.value, "changed": True}

    def mark_failed(self, reg_id: int, reason: str | None = None) -> Registration:
        """Explicit (non-payment) failure of a pending registration, by an admin."""
        try:
            registration = self.repo.get_for_update(reg_id)
            if not registration:
                raise NotFound("Registration not found")
            ensure_transition(registration.status, RegistrationStatus.FAILED)
            registration.status = RegistrationStatus.FAILED
            self.db.commit()
        except HTTPException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to update registration") from e

        logger.info(f"Registration {reg_id} marked failed: {reason or 'no reason given'}")
        return registration

    def list_user_registrations(self, principal: User) -> list[dict]:
        """
        Registrations of the principal, newest first, with the latest payment.

        Non-coaches see only the most recent registration per event.
        """
        rows = self.repo.list_for_user(principal.id)
        payments = self.repo.latest_payments([r.id for r, _, _ in rows])

        dedupe = principal.role != UserRole.COACH
        seen_events: set[int] = set()
        summaries = []
        for registration, event, team in rows:
            if dedupe:
                if event.id in seen_events:
                    continue
                seen_events.add(event.id)

            payment = payments.get(registration.id)
            summaries.append(
                {
                    "id": registration.id,
                    "event_id": event.id,
                    "event_title": event.title,
                    "event_start_date": event.start_date,
                    "is_team_event": bool(event.is_team_event),
                    "registration_type": registration.registration_type,
                    "status": registration.status,
                    "team_id": team.id if team else None,
                    "team_name": team.name if team else None,
                    "created_at": registration.created_at,
                    "payment_status": payment.status.value if payment else None,
                    "payment_amount": payment.amount if payment else None,
                    "razorpay_payment_id": payment.razorpay_payment_id if payment else None,
                }
            )
        return summaries

    def get_details(self, principal: User, reg_id: int) -> dict:
        """Participant details and team roster of a registration."""
        registration = self._get_accessible(principal, reg_id)
        details = self.repo.get_details(registration.user_details_id)
        if not details:
            raise NotFound("Participant details not found for this registration")
        return {
            "registration": registration,
            "details": details,
            "team": self.repo.get_team(registration.team_id),
        }

    def update_details(
        self, principal: User, reg_id: int, update: UserDetailsUpdate
    ) -> UserDetails:
        """
        Update allow-listed participant detail fields.

        Raises:
            InvalidInput: No fields supplied
        """
        fields = update.model_dump(exclude_unset=True)
        if not fields:
            raise InvalidInput("No valid fields provided for update")

        registration = self._get_accessible(principal, reg_id)
        details = self.repo.get_details(registration.user_details_id)
        if not details:
            raise NotFound("Participant details not found for this registration")

        try:
            for field_name, value in fields.items():
                setattr(details, field_name, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to update participant details") from e

        logger.info(f"Updated details {details.id} ({', '.join(fields)}) for registration {reg_id}")
        return details

    def update_team_members(
        self, principal: User, team_id: int, members: list[TeamMember]
    ) -> Team:
        """
        Replace a team's roster. Only the captain or an admin may do this.

        Raises:
            NotFound: Team missing
            Forbidden: Not the captain
            InvalidInput: Empty roster or too many members
        """
        team = self.db.query(Team).filter(Team.id == team_id).first()
        if not team:
            raise NotFound("Team not found")
        if principal.role != UserRole.ADMIN and team.captain_id != principal.id:
            raise Forbidden("Only the team captain can update members")
        if not members:
            raise InvalidInput("Team must have at least one member")

        event = self.db.query(Event).filter(Event.id == team.event_id).first()
        if event and event.max_team_size and len(members) > event.max_team_size:
            raise InvalidInput(f"Team cannot have more than {event.max_team_size} members")

        try:
            team.members = [m.model_dump(mode="json", exclude_none=True) for m in members]
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to update team members") from e

        logger.info(f"Team {team_id} roster updated ({len(members)} members)")
        return team

    def list_all_registrations(
        self, event_id: int | None = None, skip: int = 0, limit: int = 100
    ) -> list[dict]:
        """Admin view of registrations with user, team, details and latest payment."""
        rows = self.repo.list_all(event_id=event_id, skip=skip, limit=limit)
        payments = self.repo.latest_payments([row[0].id for row in rows])

        result = []
        for registration, user, event, team, details in rows:
            payment = payments.get(registration.id)
            result.append(
                {
                    "id": registration.id,
                    "status": registration.status.value,
                    "registration_type": registration.registration_type.value,
                    "created_at": registration.created_at,
                    "user": {"id": user.id, "username": user.username, "email": user.email},
                    "event": {"id": event.id, "title": event.title},
                    "team": (
                        {"id": team.id, "name": team.name, "members": team.members}
                        if team
                        else None
                    ),
                    "details_id": details.id if details else None,
                    "payment_status": payment.status.value if payment else None,
                    "payment_amount": payment.amount if payment else None,
                }
            )
        return result

    # --- helpers ---

    def _validate_team(self, event: Event, reg_data: RegistrationCreate) -> list[dict]:
        if not event.is_team_event:
            raise InvalidInput("This event does not accept team registrations")

        team = reg_data.team
        if team is None or not team.name.strip():
            raise InvalidInput("Team name is required for team registration")
        if not team.members:
            raise InvalidInput("Team members are required for team registration")
        if event.max_team_size and len(team.members) > event.max_team_size:
            raise InvalidInput(f"Team cannot have more than {event.max_team_size} members")

        return [m.model_dump(mode="json", exclude_none=True) for m in team.members]

    def _upload_document(self, principal: User, document: UploadedDocument) -> dict:
        if self.storage is None:
            raise UpstreamError("File storage is not configured")
        return self.storage.upload(
            document.data,
            folder=f"{IDENTITY_DOCUMENT_FOLDER}/{principal.id}",
            filename=document.filename,
            content_type=document.content_type,
        )

    def _discard_document(self, public_id: str) -> None:
        try:
            self.storage.delete(public_id)
        except UpstreamError as e:
            logger.warning(f"Could not remove orphaned upload {public_id}: {e.message}")

    def _get_accessible(self, principal: User, reg_id: int) -> Registration:
        registration = self.repo.get_by_id(reg_id)
        if not registration:
            raise NotFound("Registration not found")
        if principal.role != UserRole.ADMIN and registration.user_id != principal.id:
            raise Forbidden("You can only access your own registrations")
        return registration
