"""
SQLAlchemy database models.

This module contains all the database table definitions using SQLAlchemy ORM
for the sports event registration platform: accounts, events, teams,
registrations with their per-registration participant details, payments,
club/class memberships, contact messages and gallery items.

Archive tables live on a separate declarative base so they are not created
with the live schema; the retention jobs create them on first use.
"""

from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
    event,
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()
ArchiveBase = declarative_base()


class UserRole(str, Enum):
    """User roles enumeration."""

    PARTICIPANT = "participant"
    COACH = "coach"
    ADMIN = "admin"


class RegistrationType(str, Enum):
    """Registration unit: a single participant or a team."""

    INDIVIDUAL = "individual"
    TEAM = "team"


class RegistrationStatus(str, Enum):
    """Registration lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Payment attempt status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class MembershipStatus(str, Enum):
    """Class/club membership status."""

    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class User(Base):
    """Platform account. Role decides coach exemptions and admin access."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    full_name = Column(String(255), nullable=True)
    password_hash = Column(String(255), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.PARTICIPANT)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"


class Event(Base):
    """
    Sports event listing.

    ``live`` is true while the event is upcoming; the hourly status job flips
    it once the start date has passed, after which the event becomes a
    candidate for export and purge.
    """

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)

    # Eligibility filters
    gender = Column(String(20), nullable=True)
    age_group = Column(String(50), nullable=True)

    # Pricing and team rules
    is_team_event = Column(Boolean, nullable=False, default=False)
    price_per_person = Column(Numeric(10, 2), nullable=True)
    price_per_team = Column(Numeric(10, 2), nullable=True)
    max_team_size = Column(Integer, nullable=True)

    live = Column(Boolean, nullable=False, default=True, index=True)
    hashtags = Column(JSON, nullable=True)  # Category tags
    image_url = Column(String(512), nullable=True)
    is_featured = Column(Boolean, nullable=False, default=False)
    rules_and_guidelines = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (Index("idx_event_live_start", "live", "start_date"),)

    def __repr__(self):
        return f"<Event(id={self.id}, title={self.title}, start_date={self.start_date})>"


class Team(Base):
    """Team registered for a team event. Members are stored as a JSON list."""

    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    captain_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    members = Column(JSON, nullable=False)  # [{name, phone, email, ...}]
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Team(id={self.id}, name={self.name}, event_id={self.event_id})>"


class UserDetails(Base):
    """
    Participant details captured with a registration.

    One row per registration (not per user), deleted with its registration.
    """

    __tablename__ = "user_details"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)

    first_name = Column(String(100), nullable=True)
    middle_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    date_of_birth = Column(Date, nullable=True)
    gender = Column(String(20), nullable=True)
    age_group = Column(String(50), nullable=True)
    category = Column(String(100), nullable=True)
    skate_category = Column(String(100), nullable=True)
    event_category = Column(String(100), nullable=True)
    district = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    coach_name = Column(String(255), nullable=True)
    club_name = Column(String(255), nullable=True)

    # Identity document
    aadhaar_number = Column(String(20), nullable=True)
    aadhaar_image = Column(String(512), nullable=True)
    aadhaar_image_public_id = Column(String(512), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<UserDetails(id={self.id}, user_id={self.user_id}, event_id={self.event_id})>"


class Registration(Base):
    """A participant's (or team's) claim on a slot in an event."""

    __tablename__ = "registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True, index=True)
    registration_type = Column(SQLEnum(RegistrationType), nullable=False)
    status = Column(
        SQLEnum(RegistrationStatus),
        nullable=False,
        default=RegistrationStatus.PENDING,
        index=True,
    )
    user_details_id = Column(Integer, ForeignKey("user_details.id"), nullable=True)
    # "{user_id}:{event_id}" while an individual registration holds its slot;
    # NULL for team, coach and cancelled registrations
    active_individual_key = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        Index("idx_registration_user_event", "user_id", "event_id"),
        UniqueConstraint("active_individual_key", name="uq_registration_active_individual"),
    )

    def __repr__(self):
        return f"<Registration(id={self.id}, event_id={self.event_id}, status={self.status})>"


class Payment(Base):
    """
    One row per verification attempt.

    A failed verification still records a failed row; a later retry adds a
    success row. The unique constraint backs verification idempotency.
    """

    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    registration_id = Column(
        Integer, ForeignKey("registrations.id"), nullable=False, index=True
    )
    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(SQLEnum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    __table_args__ = (
        UniqueConstraint(
            "registration_id", "razorpay_payment_id", "status", name="uq_payment_attempt"
        ),
        Index("idx_payment_status_created", "status", "created_at"),
    )

    def __repr__(self):
        return f"<Payment(id={self.id}, registration_id={self.registration_id}, status={self.status})>"


class ClassRegistration(Base):
    """Club/class membership paid through its own order and verify flow."""

    __tablename__ = "class_registrations"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    full_name = Column(String(255), nullable=False)
    phone_number = Column(String(20), nullable=False)
    email = Column(String(255), nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(String(20), nullable=True)
    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)
    amount = Column(Numeric(10, 2), nullable=False)
    status = Column(
        SQLEnum(MembershipStatus), nullable=False, default=MembershipStatus.PENDING, index=True
    )
    issue_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<ClassRegistration(id={self.id}, email={self.email}, status={self.status})>"


class ContactMessage(Base):
    """Contact form submission, purged after the retention window."""

    __tablename__ = "contact_messages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False)
    phone = Column(String(20), nullable=True)
    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self):
        return f"<ContactMessage(id={self.id}, email={self.email})>"


class GalleryItem(Base):
    """Gallery image, associated with an event by title."""

    __tablename__ = "gallery"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    image_url = Column(String(512), nullable=False)
    event_name = Column(String(255), nullable=True, index=True)
    image_location = Column(String(255), nullable=True)
    date = Column(Date, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<GalleryItem(id={self.id}, event_name={self.event_name})>"


# --- Archive tables (append-only, created lazily by the retention jobs) ---


class PaymentArchive(ArchiveBase):
    __tablename__ = "payments_archive"

    id = Column(Integer, primary_key=True)
    original_id = Column(Integer, nullable=False, index=True)
    registration_id = Column(Integer, nullable=True)
    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)
    amount = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=False)
    user_id = Column(Integer, nullable=True)
    event_id = Column(Integer, nullable=True)


class ClassRegistrationArchive(ArchiveBase):
    __tablename__ = "class_registrations_archive"

    id = Column(Integer, primary_key=True)
    original_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=True)
    full_name = Column(String(255), nullable=True)
    phone_number = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    age = Column(Integer, nullable=True)
    gender = Column(String(20), nullable=True)
    razorpay_order_id = Column(String(100), nullable=True)
    razorpay_payment_id = Column(String(100), nullable=True)
    amount = Column(Numeric(10, 2), nullable=True)
    status = Column(String(20), nullable=True)
    issue_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=False)


class EventArchive(ArchiveBase):
    __tablename__ = "events_archive"

    id = Column(Integer, primary_key=True)
    original_id = Column(Integer, nullable=False, index=True)
    title = Column(String(255), nullable=True)
    location = Column(String(255), nullable=True)
    start_date = Column(Date, nullable=True)
    is_team_event = Column(Boolean, nullable=True)
    price_per_person = Column(Numeric(10, 2), nullable=True)
    price_per_team = Column(Numeric(10, 2), nullable=True)
    registration_count = Column(Integer, nullable=False, default=0)
    total_collected = Column(Numeric(12, 2), nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=True)
    archived_at = Column(DateTime(timezone=True), nullable=False)


# --- Email normalization events ---
@event.listens_for(User, "before_insert")
def normalize_user_email_before_insert(mapper, connection, target):  # type: ignore[misc]
    """Normalize email to lowercase before inserting."""
    if target.email:
        target.email = target.email.strip().lower()


@event.listens_for(User, "before_update")
def normalize_user_email_before_update(mapper, connection, target):  # type: ignore[misc]
    """Normalize email to lowercase before updating."""
    if target.email:
        target.email = target.email.strip().lower()
