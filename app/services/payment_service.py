"""
Payment order creation and verification for event registrations.

Verification is the only place a registration becomes CONFIRMED. The
signature check, idempotency check, payment insert and status change happen
in one transaction; confirmation emails are queued only after it commits and
can never undo it.
"""

import logging
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.errors import NotFound, PersistenceError
from app.db.models import (
    Event,
    Payment,
    PaymentStatus,
    Registration,
    RegistrationStatus,
    RegistrationType,
    Team,
    User,
    UserDetails,
)
from app.repositories.payment_repository import PaymentRepository
from app.repositories.registration_repository import RegistrationRepository
from app.services import email_templates
from app.services.notification_service import (
    PRIORITY_HIGH,
    EmailJob,
    NotificationDispatcher,
    dispatch_quietly,
)
from app.services.payment_gateway import (
    PaymentGatewayClient,
    generate_receipt,
    to_minor_units,
)
from app.services.registration_state import ensure_transition

logger = logging.getLogger(__name__)


def expected_amount(registration: Registration, event: Event) -> Decimal:
    """Amount owed, from event pricing only: per team for team entries, else per person."""
    if registration.registration_type == RegistrationType.TEAM:
        price = event.price_per_team
    else:
        price = event.price_per_person
    return Decimal(str(price)) if price is not None else Decimal("0")


class PaymentService:
    """Service for gateway orders and payment verification."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient,
        notifier: NotificationDispatcher | None,
        settings: Settings,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier
        self.settings = settings
        self.payments = PaymentRepository(db)
        self.registrations = RegistrationRepository(db)

    def create_order(
        self,
        amount,
        currency: str | None = None,
        receipt: str | None = None,
        phone: str | None = None,
        receipt_prefix: str = "rcpt",
    ) -> dict:
        """
        Create a gateway order. Nothing is persisted.

        Returns:
            Gateway order descriptor plus the public key id for checkout

        Raises:
            InvalidInput: Amount is not positive
            UpstreamError: Gateway failure or timeout
        """
        amount_minor = to_minor_units(amount)
        order = self.gateway.create_order(
            amount_minor_units=amount_minor,
            currency=currency or self.settings.default_currency,
            receipt=receipt or generate_receipt(receipt_prefix),
            notes={"phone": phone} if phone else {},
        )
        return {"order": order, "key_id": self.gateway.key_id}

    def verify_payment(
        self,
        registration_id: int,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> dict:
        """
        Verify a checkout signature and reconcile registration and payment.

        Args:
            registration_id: Registration being paid for
            order_id: Gateway order id
            payment_id: Gateway payment id
            signature: Gateway signature over "order_id|payment_id"

        Returns:
            {"confirmed": bool, "registration_id", "status", "amount", "duplicate"}

        Raises:
            NotFound: Registration missing
            InvalidStateTransition: Registration cannot be confirmed (e.g. cancelled)
            PersistenceError: Store failure
        """
        if not self.gateway.verify_signature(order_id, payment_id, signature):
            return self._record_failed_attempt(registration_id, order_id, payment_id)

        try:
            registration = self.registrations.get_for_update(registration_id)
            if not registration:
                raise NotFound("Registration not found")

            existing = self.payments.find_attempt(
                registration_id, payment_id, PaymentStatus.SUCCESS
            )
            if existing:
                self.db.rollback()
                return self._duplicate_result(registration, existing)

            ensure_transition(registration.status, RegistrationStatus.CONFIRMED)

            event = self.db.query(Event).filter(Event.id == registration.event_id).first()
            if not event:
                raise NotFound("Event not found for registration")

            payment = self.payments.add(
                registration_id=registration.id,
                order_id=order_id,
                gateway_payment_id=payment_id,
                amount=expected_amount(registration, event),
                status=PaymentStatus.SUCCESS,
            )
            registration.status = RegistrationStatus.CONFIRMED
            self.db.commit()

        except IntegrityError:
            # A concurrent verification inserted the same success row first
            self.db.rollback()
            existing = self.payments.find_attempt(
                registration_id, payment_id, PaymentStatus.SUCCESS
            )
            if existing:
                registration = self.registrations.get_by_id(registration_id)
                return self._duplicate_result(registration, existing)
            logger.error(f"Integrity error verifying payment {payment_id}")
            raise PersistenceError("Failed to record payment") from None
        except HTTPException:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to verify payment {payment_id}: {e}")
            raise PersistenceError("Failed to record payment") from e

        logger.info(
            f"Payment {payment_id} verified for registration {registration.id}: "
            f"{payment.amount} recorded, registration confirmed"
        )
        self._notify_confirmation(registration, event, payment)

        return {
            "confirmed": True,
            "registration_id": registration.id,
            "status": registration.status.value,
            "amount": payment.amount,
            "duplicate": False,
        }

    def get_payment(self, payment_row_id: int) -> Payment:
        payment = self.payments.get_by_id(payment_row_id)
        if not payment:
            raise NotFound("Payment not found")
        return payment

    def list_for_registration(self, registration_id: int) -> list[Payment]:
        if not self.registrations.get_by_id(registration_id):
            raise NotFound("Registration not found")
        return self.payments.list_by_registration(registration_id)

    def list_payments(
        self, status: PaymentStatus | None = None, skip: int = 0, limit: int = 100
    ) -> list[Payment]:
        return self.payments.list_all(status=status, skip=skip, limit=limit)

    # --- helpers ---

    def _record_failed_attempt(self, registration_id: int, order_id: str, payment_id: str) -> dict:
        """Keep an audit row for a signature mismatch; registration status is untouched."""
        registration = self.registrations.get_by_id(registration_id)
        if not registration:
            raise NotFound("Registration not found")

        logger.warning(
            f"Invalid payment signature for registration {registration_id} "
            f"(order {order_id}, payment {payment_id})"
        )

        try:
            if not self.payments.find_attempt(registration_id, payment_id, PaymentStatus.FAILED):
                self.payments.add(
                    registration_id=registration_id,
                    order_id=order_id,
                    gateway_payment_id=payment_id,
                    amount=Decimal("0"),
                    status=PaymentStatus.FAILED,
                )
            self.db.commit()
        except IntegrityError:
            # Identical failed attempt recorded concurrently
            self.db.rollback()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to record failed payment attempt {payment_id}: {e}")
            raise PersistenceError("Failed to record payment attempt") from e

        return {
            "confirmed": False,
            "registration_id": registration_id,
            "status": registration.status.value,
            "amount": Decimal("0"),
            "duplicate": False,
        }

    def _duplicate_result(self, registration: Registration, payment: Payment) -> dict:
        logger.info(
            f"Payment {payment.razorpay_payment_id} already verified for "
            f"registration {registration.id}; skipping"
        )
        return {
            "confirmed": True,
            "registration_id": registration.id,
            "status": registration.status.value,
            "amount": payment.amount,
            "duplicate": True,
        }

    def _notify_confirmation(self, registration: Registration, event: Event, payment: Payment):
        """Queue participant and admin emails. Failures are logged only."""
        try:
            user = self.db.query(User).filter(User.id == registration.user_id).first()
            details = self.registrations.get_details(registration.user_details_id)
            team = (
                self.db.query(Team).filter(Team.id == registration.team_id).first()
                if registration.team_id
                else None
            )
            context = self._email_context(registration, event, payment, user, details, team)
        except SQLAlchemyError as e:
            logger.error(f"Could not load data for confirmation of {registration.id}: {e}")
            return

        app_name = self.settings.app_name
        if user and user.email:
            subject, html = email_templates.registration_confirmation(app_name, **context)
            dispatch_quietly(
                self.notifier,
                EmailJob(recipient=user.email, subject=subject, html=html, priority=PRIORITY_HIGH),
            )

        if self.settings.admin_emails:
            subject, html = email_templates.admin_registration_notice(app_name, **context)
            dispatch_quietly(
                self.notifier,
                EmailJob(recipient=self.settings.admin_emails, subject=subject, html=html),
            )

    def _email_context(
        self,
        registration: Registration,
        event: Event,
        payment: Payment,
        user: User | None,
        details: UserDetails | None,
        team: Team | None,
    ) -> dict:
        name_parts = [details.first_name, details.last_name] if details else []
        name = " ".join(p for p in name_parts if p) or (user.full_name if user else None)
        return {
            "name": name or (user.username if user else "participant"),
            "email": user.email if user else "",
            "phone": user.phone if user else None,
            "event_id": event.id,
            "event_title": event.title,
            "event_date": event.start_date,
            "location": event.location,
            "registration_id": registration.id,
            "registration_type": registration.registration_type.value,
            "team_name": team.name if team else None,
            "member_count": len(team.members or []) if team else 0,
            "amount": payment.amount,
            "currency": self.settings.default_currency,
            "order_id": payment.razorpay_order_id,
            "payment_id": payment.razorpay_payment_id,
        }
