"""
Public event listing and gallery endpoints.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.responses import success_response
from app.db.session import get_db
from app.schemas.event import EventOut, GalleryItemOut
from app.services.event_service import EventService

router = APIRouter(tags=["Events"])


@router.get(
    "/events",
    summary="List Events",
    description="""
List events ordered by date.

**FILTERS:**
- age_group: exact match on the event's age group
- featured: only featured (true) or non-featured (false) events
- include_past: include events whose date has passed (default false)
""",
)
def list_events(
    age_group: str | None = Query(None),
    featured: bool | None = Query(None),
    include_past: bool = Query(False),
    db: Session = Depends(get_db),
):
    events = EventService(db).list_events(
        age_group=age_group, featured=featured, include_past=include_past
    )
    return success_response(
        message="Events retrieved successfully",
        data={"events": [EventOut.model_validate(e).model_dump(mode="json") for e in events]},
    )


@router.get("/events/{event_id}", summary="Get Event")
def get_event(event_id: int, db: Session = Depends(get_db)):
    event = EventService(db).get_event(event_id)
    return success_response(
        message="Event retrieved successfully",
        data=EventOut.model_validate(event).model_dump(mode="json"),
    )


@router.get("/gallery", summary="List Gallery Items", tags=["Gallery"])
def list_gallery(event_name: str | None = Query(None), db: Session = Depends(get_db)):
    items = EventService(db).list_gallery(event_name=event_name)
    return success_response(
        message="Gallery retrieved successfully",
        data={"items": [GalleryItemOut.model_validate(i).model_dump(mode="json") for i in items]},
    )
