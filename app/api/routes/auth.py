"""
Account signup, login and profile endpoints.
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.responses import created_response, success_response
from app.core.security import get_current_user
from app.db.models import User
from app.db.session import get_db
from app.schemas.user import UserCreate, UserLogin, UserOut
from app.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/signup",
    status_code=status.HTTP_201_CREATED,
    summary="Create Account",
    description="""
Create a participant or coach account and receive an access token.

**REQUIRED FIELDS:** username, email, password (min 8 chars)

**OPTIONAL FIELDS:** full_name, phone, date_of_birth, gender, role ("participant" or "coach")

Returns 409 if the email is already registered.
""",
)
def signup(data: UserCreate, db: Session = Depends(get_db)):
    user, token = UserService(db).signup(data)
    return created_response(
        message="Account created successfully",
        data={
            "user": UserOut.model_validate(user).model_dump(mode="json"),
            "access_token": token,
            "token_type": "bearer",
        },
    )


@router.post("/login", summary="Login", description="Exchange email and password for a token.")
def login(data: UserLogin, db: Session = Depends(get_db)):
    user, token = UserService(db).login(data.email, data.password)
    return success_response(
        message="Login successful",
        data={
            "user": UserOut.model_validate(user).model_dump(mode="json"),
            "access_token": token,
            "token_type": "bearer",
        },
    )


@router.get("/me", summary="Current User")
def me(current_user: User = Depends(get_current_user)):
    return success_response(
        message="User retrieved successfully",
        data=UserOut.model_validate(current_user).model_dump(mode="json"),
    )
