"""
API routes for payment orders and verification.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import get_notifier, get_payment_gateway, require_admin
from app.core.errors import InvalidSignature
from app.core.responses import error_response, success_response
from app.core.security import get_current_user
from app.db.models import PaymentStatus, User
from app.db.session import get_db
from app.schemas.payment import OrderCreate, PaymentOut, PaymentVerify
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaymentGatewayClient
from app.services.payment_service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/order",
    summary="Create Payment Order",
    description="""
Create a payment gateway order.

**FIELDS:**
- amount (number, required): in rupees; converted to paise
- currency (string, optional): default "INR"
- receipt (string, optional): default `rcpt_<timestamp>`
- phone (string, optional): stored in the order notes

Nothing is stored locally. Gateway errors return 502.
""",
)
def create_order(
    order: OrderCreate,
    current_user: User = Depends(get_current_user),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    db: Session = Depends(get_db),
):
    result = PaymentService(db, gateway, None, settings).create_order(
        amount=order.amount,
        currency=order.currency,
        receipt=order.receipt,
        phone=order.phone,
    )
    return success_response(message="Order created successfully", data=result)


@router.post(
    "/verify",
    summary="Verify Payment",
    description="""
Verify the gateway checkout signature for a registration.

- Valid signature: records a successful payment (amount from event pricing)
  and confirms the registration. Repeating the call with the same payment id
  is safe and returns the same result.
- Invalid signature: records a failed payment attempt and returns 400 with
  `data.confirmed = false`; the registration is unchanged.
""",
)
def verify_payment(
    body: PaymentVerify,
    current_user: User = Depends(get_current_user),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    notifier: NotificationDispatcher | None = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    result = PaymentService(db, gateway, notifier, settings).verify_payment(
        registration_id=body.registration_id,
        order_id=body.razorpay_order_id,
        payment_id=body.razorpay_payment_id,
        signature=body.razorpay_signature,
    )
    if not result["confirmed"]:
        return error_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Invalid signature",
            error=InvalidSignature.kind,
            data=result,
        )
    return success_response(message="Payment verified and registration confirmed", data=result)


@router.get("", summary="List Payments (Admin)")
def list_payments(
    status_filter: PaymentStatus | None = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payments = PaymentService(db, None, None, settings).list_payments(
        status=status_filter, skip=skip, limit=limit
    )
    return success_response(
        message="Payments retrieved successfully",
        data={"payments": [PaymentOut.model_validate(p).model_dump(mode="json") for p in payments]},
    )


@router.get("/by-registration/{registration_id}", summary="Payments For Registration (Admin)")
def list_registration_payments(
    registration_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payments = PaymentService(db, None, None, settings).list_for_registration(registration_id)
    return success_response(
        message="Payments retrieved successfully",
        data={"payments": [PaymentOut.model_validate(p).model_dump(mode="json") for p in payments]},
    )


@router.get("/{payment_id}", summary="Get Payment (Admin)")
def get_payment(
    payment_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    payment = PaymentService(db, None, None, settings).get_payment(payment_id)
    return success_response(
        message="Payment retrieved successfully",
        data=PaymentOut.model_validate(payment).model_dump(mode="json"),
    )
