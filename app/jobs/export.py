"""
Event registration export.

Flattens registration, user, participant details, event, team and latest
payment data into one row per registration and renders it as CSV. Internal
foreign keys and event-level columns that are the same for every row are
left out.
"""

import csv
import io
import re
from datetime import date

from sqlalchemy.orm import Session

from app.db.models import Event, Payment, Registration, Team, User, UserDetails

EXPORT_COLUMNS = [
    "registration_id",
    "registration_type",
    "registration_status",
    "registered_at",
    "username",
    "email",
    "phone",
    "account_name",
    "first_name",
    "middle_name",
    "last_name",
    "date_of_birth",
    "gender",
    "age_group",
    "category",
    "skate_category",
    "event_category",
    "district",
    "state",
    "coach_name",
    "club_name",
    "aadhaar_number",
    "aadhaar_image",
    "event_title",
    "event_gender",
    "event_age_group",
    "is_team_event",
    "price_per_person",
    "price_per_team",
    "team_name",
    "team_members",
    "razorpay_order_id",
    "razorpay_payment_id",
    "payment_amount",
    "payment_status",
    "payment_date",
]

_DETAIL_FIELDS = [
    "first_name",
    "middle_name",
    "last_name",
    "date_of_birth",
    "gender",
    "age_group",
    "category",
    "skate_category",
    "event_category",
    "district",
    "state",
    "coach_name",
    "club_name",
    "aadhaar_number",
    "aadhaar_image",
]


def export_filename(event: Event, today: date) -> str:
    """``event_<id>_<sanitized title>_<YYYY-MM-DD>.csv``"""
    safe_title = re.sub(r"[^a-zA-Z0-9]", "_", event.title or "event")
    return f"event_{event.id}_{safe_title}_{today.isoformat()}.csv"


def team_member_names(members) -> str:
    if not members:
        return ""
    names = []
    for member in members:
        if isinstance(member, dict):
            names.append(str(member.get("name", "")).strip())
        else:
            names.append(str(member).strip())
    return "; ".join(n for n in names if n)


def build_event_export_rows(db: Session, event: Event) -> list[dict]:
    """One flat row per registration of ``event``."""
    results = (
        db.query(Registration, User, UserDetails, Team)
        .join(User, User.id == Registration.user_id)
        .outerjoin(UserDetails, UserDetails.id == Registration.user_details_id)
        .outerjoin(Team, Team.id == Registration.team_id)
        .filter(Registration.event_id == event.id)
        .order_by(Registration.id.asc())
        .all()
    )

    registration_ids = [r.id for r, _, _, _ in results]
    latest_payment: dict[int, Payment] = {}
    if registration_ids:
        for payment in (
            db.query(Payment)
            .filter(Payment.registration_id.in_(registration_ids))
            .order_by(Payment.created_at.asc(), Payment.id.asc())
        ):
            latest_payment[payment.registration_id] = payment

    rows = []
    for registration, user, details, team in results:
        payment = latest_payment.get(registration.id)
        row = {
            "registration_id": registration.id,
            "registration_type": registration.registration_type.value,
            "registration_status": registration.status.value,
            "registered_at": registration.created_at,
            "username": user.username,
            "email": user.email,
            "phone": user.phone,
            "account_name": user.full_name,
            "event_title": event.title,
            "event_gender": event.gender,
            "event_age_group": event.age_group,
            "is_team_event": event.is_team_event,
            "price_per_person": event.price_per_person,
            "price_per_team": event.price_per_team,
            "team_name": team.name if team else None,
            "team_members": team_member_names(team.members) if team else None,
            "razorpay_order_id": payment.razorpay_order_id if payment else None,
            "razorpay_payment_id": payment.razorpay_payment_id if payment else None,
            "payment_amount": payment.amount if payment else None,
            "payment_status": payment.status.value if payment else None,
            "payment_date": payment.created_at if payment else None,
        }
        for field_name in _DETAIL_FIELDS:
            row[field_name] = getattr(details, field_name) if details else None
        rows.append(row)
    return rows


def rows_to_csv(rows: list[dict], columns: list[str] = EXPORT_COLUMNS) -> bytes:
    """Render rows as UTF-8 CSV with a header line. ``None`` becomes empty."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    for row in rows:
        writer.writerow({k: ("" if row.get(k) is None else row.get(k)) for k in columns})
    return buffer.getvalue().encode("utf-8")
