"""
API routes for event registrations, participant details and team rosters.
"""

import json
import logging

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.core.dependencies import get_storage
from app.core.errors import InvalidInput
from app.core.responses import created_response, success_response
from app.core.security import get_current_user
from app.db.models import User
from app.db.session import get_db
from app.schemas.registration import (
    RegistrationCreate,
    RegistrationSummary,
    TeamMembersUpdate,
    TeamOut,
    UserDetailsOut,
    UserDetailsUpdate,
)
from app.services.registration_service import RegistrationService, UploadedDocument
from app.services.storage_service import StorageService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Registrations"])


def _parse_json_field(raw: str | None, field_name: str):
    if raw is None or raw == "":
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        raise InvalidInput(f"{field_name} must be valid JSON") from None


@router.post(
    "/registrations",
    status_code=status.HTTP_201_CREATED,
    summary="Register For Event",
    description="""
Create a pending registration for an event (multipart form).

**FORM FIELDS:**
- event_id (integer, required)
- registration_type (string, required): "individual" or "team"
- team_name (string): required for team registrations
- team_members (JSON array): required for team registrations, e.g. `[{"name": "A"}, {"name": "B"}]`
- details (JSON object): participant details (first_name, last_name, date_of_birth,
  gender, age_group, category, district, state, coach_name, club_name, aadhaar_number, ...)
- aadhaar_image (file, optional): identity document

**RULES:**
- Individual: one active registration per user and event (coaches exempt)
- Team: event must be a team event; name and at least one member required

The registration starts as "pending"; it is confirmed by payment verification.

**AUTHENTICATION:** Required
""",
)
def create_registration(
    event_id: int = Form(...),
    registration_type: str = Form(...),
    team_name: str | None = Form(None),
    team_members: str | None = Form(None),
    details: str | None = Form(None),
    aadhaar_image: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    storage: StorageService | None = Depends(get_storage),
    db: Session = Depends(get_db),
):
    """Create a pending registration."""
    payload = {
        "event_id": event_id,
        "registration_type": registration_type,
        "details": _parse_json_field(details, "details") or {},
    }
    members = _parse_json_field(team_members, "team_members")
    if team_name is not None or members is not None:
        payload["team"] = {"name": team_name or "", "members": members or []}

    try:
        reg_data = RegistrationCreate.model_validate(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first["loc"])
        raise InvalidInput(f"Invalid registration data ({location}): {first['msg']}") from None

    document = None
    if aadhaar_image is not None and aadhaar_image.filename:
        document = UploadedDocument(
            data=aadhaar_image.file.read(),
            filename=aadhaar_image.filename,
            content_type=aadhaar_image.content_type,
        )

    registration = RegistrationService(db, storage=storage).create_registration(
        current_user, reg_data, document
    )
    return created_response(
        message="Registration created successfully",
        data={
            "registration_id": registration.id,
            "status": registration.status.value,
            "team_id": registration.team_id,
        },
    )


@router.get("/registrations", summary="My Registrations")
def list_my_registrations(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    List the current user's registrations, newest first, with latest payment status.

    Only the most recent registration per event is shown, except for coaches.
    """
    summaries = RegistrationService(db).list_user_registrations(current_user)
    return success_response(
        message="Registrations retrieved successfully",
        data={
            "registrations": [
                RegistrationSummary.model_validate(s).model_dump(mode="json") for s in summaries
            ]
        },
    )


@router.patch("/registrations/{registration_id}/cancel", summary="Cancel Registration")
def cancel_registration(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Cancel your own pending or confirmed registration. Repeating is a no-op."""
    result = RegistrationService(db).cancel_registration(current_user, registration_id)
    message = (
        "Registration cancelled successfully"
        if result["changed"]
        else "Registration was already cancelled"
    )
    return success_response(message=message, data=result)


@router.get("/registrations/{registration_id}/details", summary="Get Participant Details")
def get_registration_details(
    registration_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = RegistrationService(db).get_details(current_user, registration_id)
    team = result["team"]
    return success_response(
        message="Participant details retrieved successfully",
        data={
            "registration_id": registration_id,
            "details": UserDetailsOut.model_validate(result["details"]).model_dump(mode="json"),
            "team": TeamOut.model_validate(team).model_dump(mode="json") if team else None,
        },
    )


@router.patch(
    "/registrations/{registration_id}/details",
    summary="Update Participant Details",
    description="Update participant details. Only known detail fields are accepted.",
)
def update_registration_details(
    registration_id: int,
    update: UserDetailsUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    details = RegistrationService(db).update_details(current_user, registration_id, update)
    return success_response(
        message="Participant details updated successfully",
        data=UserDetailsOut.model_validate(details).model_dump(mode="json"),
    )


@router.patch("/teams/{team_id}/members", summary="Update Team Members", tags=["Teams"])
def update_team_members(
    team_id: int,
    body: TeamMembersUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Replace the roster of a team you captain."""
    team = RegistrationService(db).update_team_members(current_user, team_id, body.members)
    return success_response(
        message="Team members updated successfully",
        data=TeamOut.model_validate(team).model_dump(mode="json"),
    )
