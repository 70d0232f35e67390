"""
API routes for class (club) memberships.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.dependencies import get_notifier, get_payment_gateway
from app.core.errors import InvalidSignature
from app.core.responses import created_response, error_response, success_response
from app.core.security import get_current_user
from app.db.models import User
from app.db.session import get_db
from app.schemas.class_registration import (
    ClassPaymentVerify,
    ClassRegistrationCreate,
    ClassRegistrationOut,
)
from app.schemas.payment import OrderCreate
from app.services.class_registration_service import (
    CLASS_RECEIPT_PREFIX,
    ClassRegistrationService,
)
from app.services.notification_service import NotificationDispatcher
from app.services.payment_gateway import PaymentGatewayClient
from app.services.payment_service import PaymentService

router = APIRouter(prefix="/classes", tags=["Classes"])


@router.post(
    "/register",
    status_code=status.HTTP_201_CREATED,
    summary="Register For Classes",
    description="""
Create a pending class membership. Pay with `/classes/order` and settle with `/classes/verify`.

If `issue_date` is omitted it defaults to today; `end_date` defaults to 30 days later.
""",
)
def register_for_classes(
    data: ClassRegistrationCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    membership = ClassRegistrationService(db).register(current_user, data)
    return created_response(
        message="Class registration created successfully",
        data=ClassRegistrationOut.model_validate(membership).model_dump(mode="json"),
    )


@router.post("/order", summary="Create Class Payment Order")
def create_class_order(
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
        receipt_prefix=CLASS_RECEIPT_PREFIX,
    )
    return success_response(message="Order created successfully", data=result)


@router.post("/verify", summary="Verify Class Payment")
def verify_class_payment(
    body: ClassPaymentVerify,
    current_user: User = Depends(get_current_user),
    gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    notifier: NotificationDispatcher | None = Depends(get_notifier),
    db: Session = Depends(get_db),
):
    """Settle a membership payment. A paid membership is never downgraded."""
    result = ClassRegistrationService(db, gateway, notifier, settings).verify_payment(
        current_user,
        membership_id=body.class_registration_id,
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
    return success_response(message="Class payment verified", data=result)


@router.get("/memberships/{user_id}", summary="List Paid Memberships")
def list_memberships(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    memberships = ClassRegistrationService(db).list_memberships(current_user, user_id)
    return success_response(
        message="Memberships retrieved successfully",
        data={
            "memberships": [
                ClassRegistrationOut.model_validate(m).model_dump(mode="json") for m in memberships
            ]
        },
    )
