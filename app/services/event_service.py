"""
Event listing and admin management, plus the public gallery.
"""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import InvalidInput, NotFound, PersistenceError
from app.db.models import Event, GalleryItem
from app.schemas.event import EventCreate, EventUpdate

logger = logging.getLogger(__name__)


class EventService:
    """Service for event business logic."""

    def __init__(self, db: Session):
        self.db = db

    def list_events(
        self,
        age_group: str | None = None,
        featured: bool | None = None,
        include_past: bool = False,
        today: date | None = None,
    ) -> list[Event]:
        """Events ordered by date; upcoming only unless ``include_past``."""
        query = self.db.query(Event)
        if not include_past:
            query = query.filter(Event.start_date >= (today or settings.local_today()))
        if age_group:
            query = query.filter(Event.age_group == age_group)
        if featured is not None:
            query = query.filter(Event.is_featured == featured)
        return query.order_by(Event.start_date.asc(), Event.id.asc()).all()

    def get_event(self, event_id: int) -> Event:
        event = self.db.query(Event).filter(Event.id == event_id).first()
        if not event:
            raise NotFound("Event not found")
        return event

    def create_event(self, data: EventCreate) -> Event:
        event = Event(**data.model_dump(), live=True)
        try:
            self.db.add(event)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create event: {e}")
            raise PersistenceError("Failed to create event") from e
        logger.info(f"Event {event.id} created: {event.title}")
        return event

    def update_event(self, event_id: int, data: EventUpdate) -> Event:
        """Apply allow-listed fields. Raises InvalidInput when nothing is supplied."""
        fields = data.model_dump(exclude_unset=True)
        if not fields:
            raise InvalidInput("No valid fields provided for update")

        event = self.get_event(event_id)
        try:
            for field_name, value in fields.items():
                setattr(event, field_name, value)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to update event") from e

        logger.info(f"Event {event_id} updated: {', '.join(fields)}")
        return event

    def list_gallery(self, event_name: str | None = None) -> list[GalleryItem]:
        query = self.db.query(GalleryItem)
        if event_name:
            query = query.filter(GalleryItem.event_name == event_name)
        return query.order_by(GalleryItem.uploaded_at.desc(), GalleryItem.id.desc()).all()
