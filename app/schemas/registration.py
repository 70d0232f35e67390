"""
Registration schemas.

Request models are explicit allow-lists: unknown keys in participant detail
updates are rejected instead of being written to the database.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.db.models import RegistrationStatus, RegistrationType


class TeamMember(BaseModel):
    """One entry of a team roster."""

    name: str = Field(..., min_length=1, max_length=255, description="Member full name")
    phone: str | None = Field(None, max_length=20, description="Contact number")
    email: EmailStr | None = Field(None, description="Contact email")
    date_of_birth: date | None = Field(None, description="Date of birth")
    gender: str | None = Field(None, max_length=20)


class TeamInfo(BaseModel):
    """Team name and roster for a team registration."""

    name: str = Field("", max_length=255, description="Team name")
    members: list[TeamMember] = Field(default_factory=list, description="Team roster")


class ParticipantDetails(BaseModel):
    """Participant details stored with the registration."""

    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(None, max_length=100)
    middle_name: str | None = Field(None, max_length=100)
    last_name: str | None = Field(None, max_length=100)
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    age_group: str | None = Field(None, max_length=50)
    category: str | None = Field(None, max_length=100)
    skate_category: str | None = Field(None, max_length=100)
    event_category: str | None = Field(None, max_length=100)
    district: str | None = Field(None, max_length=100)
    state: str | None = Field(None, max_length=100)
    coach_name: str | None = Field(None, max_length=255)
    club_name: str | None = Field(None, max_length=255)
    aadhaar_number: str | None = Field(None, max_length=20, description="Identity number")


class UserDetailsUpdate(ParticipantDetails):
    """Partial update of participant details; only set fields are written."""


class RegistrationCreate(BaseModel):
    """Registration request (JSON form of the multipart endpoint)."""

    event_id: int = Field(..., description="Event to register for")
    registration_type: RegistrationType = Field(..., description="individual or team")
    team: TeamInfo | None = Field(None, description="Required for team registrations")
    details: ParticipantDetails = Field(default_factory=ParticipantDetails)


class TeamMembersUpdate(BaseModel):
    members: list[TeamMember] = Field(..., description="Full replacement roster")


class RegistrationFailRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class RegistrationOut(BaseModel):
    """Registration row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    event_id: int
    team_id: int | None = None
    registration_type: RegistrationType
    status: RegistrationStatus
    user_details_id: int | None = None
    created_at: datetime | None = None


class RegistrationSummary(BaseModel):
    """Registration as listed to its owner."""

    id: int
    event_id: int
    event_title: str
    event_start_date: date | None = None
    is_team_event: bool
    registration_type: RegistrationType
    status: RegistrationStatus
    team_id: int | None = None
    team_name: str | None = None
    created_at: datetime | None = None
    payment_status: str | None = None
    payment_amount: Decimal | None = None
    razorpay_payment_id: str | None = None


class UserDetailsOut(ParticipantDetails):
    model_config = ConfigDict(from_attributes=True, extra="ignore")

    id: int
    user_id: int
    event_id: int
    aadhaar_image: str | None = None


class TeamOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    captain_id: int
    event_id: int
    members: list[dict]
