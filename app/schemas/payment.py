"""
Payment order and verification schemas.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.db.models import PaymentStatus


class OrderCreate(BaseModel):
    """Gateway order request. Amount is in major units (e.g. rupees)."""

    amount: Decimal = Field(..., description="Amount in major currency units")
    currency: str | None = Field(None, min_length=3, max_length=3, description="Defaults to INR")
    receipt: str | None = Field(None, max_length=40, description="Merchant receipt id")
    phone: str | None = Field(None, max_length=20, description="Stored in order notes")


class PaymentVerify(BaseModel):
    """Checkout callback fields forwarded by the client."""

    registration_id: int
    razorpay_order_id: str = Field(..., min_length=1)
    razorpay_payment_id: str = Field(..., min_length=1)
    razorpay_signature: str = Field(..., min_length=1)


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    registration_id: int
    razorpay_order_id: str | None = None
    razorpay_payment_id: str | None = None
    amount: Decimal
    status: PaymentStatus
    created_at: datetime | None = None
