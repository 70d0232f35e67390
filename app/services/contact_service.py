"""
Contact form messages.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.errors import NotFound, PersistenceError
from app.db.models import ContactMessage
from app.schemas.contact import ContactCreate

logger = logging.getLogger(__name__)


class ContactService:
    def __init__(self, db: Session):
        self.db = db

    def create(self, data: ContactCreate) -> ContactMessage:
        message = ContactMessage(**data.model_dump())
        try:
            self.db.add(message)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to save message") from e
        logger.info(f"Contact message {message.id} received from {message.email}")
        return message

    def list_messages(self, skip: int = 0, limit: int = 100) -> list[ContactMessage]:
        return (
            self.db.query(ContactMessage)
            .order_by(ContactMessage.created_at.desc(), ContactMessage.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def delete(self, message_id: int) -> None:
        message = self.db.query(ContactMessage).filter(ContactMessage.id == message_id).first()
        if not message:
            raise NotFound("Message not found")
        try:
            self.db.delete(message)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError("Failed to delete message") from e
