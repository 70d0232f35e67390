"""
User account schemas.
"""

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.db.models import UserRole


class UserCreate(BaseModel):
    """Signup request."""

    username: str = Field(..., min_length=2, max_length=100, description="Display name")
    email: EmailStr = Field(..., description="Login email, unique")
    password: str = Field(..., min_length=8, max_length=128, description="Password")
    full_name: str | None = Field(None, max_length=255)
    phone: str | None = Field(None, max_length=20)
    date_of_birth: date | None = None
    gender: str | None = Field(None, max_length=20)
    role: UserRole = Field(UserRole.PARTICIPANT, description="participant or coach")


class UserLogin(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: EmailStr
    full_name: str | None = None
    phone: str | None = None
    date_of_birth: date | None = None
    gender: str | None = None
    role: UserRole
    created_at: datetime | None = None
