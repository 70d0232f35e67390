"""
Public contact form endpoint.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.responses import created_response
from app.db.session import get_db
from app.schemas.contact import ContactCreate, ContactOut
from app.services.contact_service import ContactService

router = APIRouter(tags=["Contact"])


@router.post("/contact", status_code=status.HTTP_201_CREATED, summary="Send Contact Message")
def send_contact_message(data: ContactCreate, db: Session = Depends(get_db)):
    message = ContactService(db).create(data)
    return created_response(
        message="Message received. We will get back to you soon.",
        data=ContactOut.model_validate(message).model_dump(mode="json"),
    )
