"""
Class/club membership schemas.
"""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from app.db.models import MembershipStatus


class ClassRegistrationCreate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=255)
    phone_number: str = Field(..., min_length=5, max_length=20)
    email: EmailStr
    age: int | None = Field(None, ge=1, le=120)
    gender: str | None = Field(None, max_length=20)
    amount: Decimal = Field(..., gt=0, description="Membership fee")
    issue_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.issue_date and self.end_date and self.end_date < self.issue_date:
            raise ValueError("end_date must not be before issue_date")
        return self


class ClassPaymentVerify(BaseModel):
    class_registration_id: int
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class ClassRegistrationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None = None
    full_name: str
    phone_number: str
    email: str
    age: int | None = None
    gender: str | None = None
    amount: Decimal
    status: MembershipStatus
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    issue_date: date | None = None
    end_date: date | None = None
    created_at: datetime | None = None
