"""
Data access layer for Payment rows.
"""

from decimal import Decimal

from sqlalchemy.orm import Session

from app.db.models import Payment, PaymentStatus


class PaymentRepository:
    """Repository for Payment data access operations."""

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, payment_id: int) -> Payment | None:
        return self.db.query(Payment).filter(Payment.id == payment_id).first()

    def find_attempt(
        self, registration_id: int, gateway_payment_id: str, status: PaymentStatus
    ) -> Payment | None:
        """Find a recorded attempt for (registration, gateway payment id, status)."""
        return (
            self.db.query(Payment)
            .filter(
                Payment.registration_id == registration_id,
                Payment.razorpay_payment_id == gateway_payment_id,
                Payment.status == status,
            )
            .first()
        )

    def add(
        self,
        registration_id: int,
        order_id: str,
        gateway_payment_id: str,
        amount: Decimal,
        status: PaymentStatus,
    ) -> Payment:
        payment = Payment(
            registration_id=registration_id,
            razorpay_order_id=order_id,
            razorpay_payment_id=gateway_payment_id,
            amount=amount,
            status=status,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def list_by_registration(self, registration_id: int) -> list[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.registration_id == registration_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .all()
        )

    def list_all(
        self, status: PaymentStatus | None = None, skip: int = 0, limit: int = 100
    ) -> list[Payment]:
        query = self.db.query(Payment)
        if status:
            query = query.filter(Payment.status == status)
        return (
            query.order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset(skip)
            .limit(limit)
            .all()
        )
