"""
Admin API routes.

Event management, contact inbox, registration oversight and manual
triggers for the retention jobs. All endpoints require the admin role.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.dependencies import get_retention_jobs, require_admin
from app.core.responses import created_response, success_response
from app.db.models import MembershipStatus, User
from app.db.session import get_db
from app.jobs.retention import CleanupSummary, RetentionJobs
from app.schemas.class_registration import ClassRegistrationOut
from app.schemas.contact import ContactOut
from app.schemas.event import EventCreate, EventOut, EventUpdate
from app.schemas.registration import RegistrationFailRequest, RegistrationOut
from app.services.class_registration_service import ClassRegistrationService
from app.services.contact_service import ContactService
from app.services.event_service import EventService
from app.services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


def _job_response(summary: CleanupSummary):
    return success_response(
        message=f"{summary.job} completed: {summary.processed} processed, "
        f"{len(summary.failed)} failed",
        data=summary.to_dict(),
    )


# --- events ---


@router.post("/events", status_code=status.HTTP_201_CREATED, summary="Create Event")
def create_event(
    data: EventCreate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = EventService(db).create_event(data)
    logger.info(f"Event {event.id} created by admin {admin.id}")
    return created_response(
        message="Event created successfully",
        data=EventOut.model_validate(event).model_dump(mode="json"),
    )


@router.patch("/events/{event_id}", summary="Update Event")
def update_event(
    event_id: int,
    data: EventUpdate,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    event = EventService(db).update_event(event_id, data)
    return success_response(
        message="Event updated successfully",
        data=EventOut.model_validate(event).model_dump(mode="json"),
    )


# --- contact inbox ---


@router.get("/contact", summary="List Contact Messages")
def list_contact_messages(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    messages = ContactService(db).list_messages(skip=skip, limit=limit)
    return success_response(
        message="Contact messages retrieved successfully",
        data={"messages": [ContactOut.model_validate(m).model_dump(mode="json") for m in messages]},
    )


@router.delete("/contact/{message_id}", summary="Delete Contact Message")
def delete_contact_message(
    message_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    ContactService(db).delete(message_id)
    return success_response(message="Contact message deleted successfully")


# --- registrations ---


@router.get("/registrations", summary="List All Registrations")
def list_registrations(
    event_id: int | None = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    registrations = RegistrationService(db).list_all_registrations(
        event_id=event_id, skip=skip, limit=limit
    )
    return success_response(
        message="Registrations retrieved successfully",
        data={"registrations": registrations},
    )


@router.patch("/registrations/{registration_id}/fail", summary="Mark Registration Failed")
def fail_registration(
    registration_id: int,
    body: RegistrationFailRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    """Fail a pending registration for a reason other than a payment signature."""
    registration = RegistrationService(db).mark_failed(registration_id, body.reason)
    return success_response(
        message="Registration marked as failed",
        data=RegistrationOut.model_validate(registration).model_dump(mode="json"),
    )


@router.get("/classes", summary="List Class Registrations")
def list_class_registrations(
    status_filter: MembershipStatus | None = Query(None, alias="status"),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    memberships = ClassRegistrationService(db).list_all(status=status_filter)
    return success_response(
        message="Class registrations retrieved successfully",
        data={
            "class_registrations": [
                ClassRegistrationOut.model_validate(m).model_dump(mode="json") for m in memberships
            ]
        },
    )


# --- retention jobs ---


@router.post("/cleanup/event-status", summary="Run Event Status Update")
def trigger_event_status_update(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    """Mark events whose date has passed as not live."""
    return _job_response(jobs.update_event_status())


@router.post(
    "/cleanup/events",
    summary="Run Event Cleanup",
    description="""
Export, archive and delete events that ended more than the grace period ago.

For each event: a CSV of its registrations is emailed to the admin
recipients, payments are archived, then the event and everything that
belongs to it is deleted in one transaction. An event whose export could
not be delivered is skipped and retried on the next run.

Returns 409 if the job is already running.
""",
)
def trigger_event_cleanup(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    return _job_response(jobs.run_event_cleanup())


@router.post("/cleanup/payments", summary="Run Payment Cleanup")
def trigger_payment_cleanup(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    """Archive and delete failed and pending payments older than the retention window."""
    return _job_response(jobs.run_payment_cleanup())


@router.post("/cleanup/contacts", summary="Run Contact Cleanup")
def trigger_contact_cleanup(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    return _job_response(jobs.run_contact_cleanup())


@router.post("/cleanup/classes", summary="Run Class Registration Cleanup")
def trigger_class_cleanup(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    """Archive and delete paid memberships whose end date has passed."""
    return _job_response(jobs.run_class_registration_cleanup())


@router.get("/cleanup/events/preview", summary="Preview Event Cleanup")
def preview_event_cleanup(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    events = jobs.get_event_cleanup_preview()
    return success_response(
        message=f"{len(events)} event(s) eligible for cleanup",
        data={"events": events},
    )


@router.get("/cleanup/classes/stats", summary="Class Registration Statistics")
def class_registration_stats(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    return success_response(
        message="Class registration statistics retrieved successfully",
        data=jobs.get_class_registration_stats(),
    )


@router.get("/cleanup/classes/expired", summary="Expired Class Registrations")
def expired_class_registrations(
    admin: User = Depends(require_admin),
    jobs: RetentionJobs = Depends(get_retention_jobs),
):
    expired = jobs.get_expired_class_registrations()
    return success_response(
        message=f"{len(expired)} expired class registration(s)",
        data={"class_registrations": expired},
    )
