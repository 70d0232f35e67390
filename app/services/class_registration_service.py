"""
Business logic for class/club memberships.

A membership is created pending, paid through its own gateway order
(``club_rcpt_`` receipts) and settled by signature verification. A verified
membership is never downgraded by a later bad signature.
"""

import logging
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings, settings
from app.core.errors import Forbidden, NotFound, PersistenceError
from app.db.models import ClassRegistration, MembershipStatus, User, UserRole
from app.schemas.class_registration import ClassRegistrationCreate
from app.services import email_templates
from app.services.notification_service import (
    PRIORITY_HIGH,
    EmailJob,
    NotificationDispatcher,
    dispatch_quietly,
)
from app.services.payment_gateway import PaymentGatewayClient

logger = logging.getLogger(__name__)

CLASS_RECEIPT_PREFIX = "club_rcpt"
DEFAULT_MEMBERSHIP_DAYS = 30


class ClassRegistrationService:
    """Service for class membership registration and payment."""

    def __init__(
        self,
        db: Session,
        gateway: PaymentGatewayClient | None = None,
        notifier: NotificationDispatcher | None = None,
        settings: Settings | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier
        self.settings = settings

    def register(self, principal: User, data: ClassRegistrationCreate) -> ClassRegistration:
        """Create a pending membership for the principal."""
        issue_date = data.issue_date or (self.settings or settings).local_today()
        end_date = data.end_date or issue_date + timedelta(days=DEFAULT_MEMBERSHIP_DAYS)

        membership = ClassRegistration(
            user_id=principal.id,
            full_name=data.full_name,
            phone_number=data.phone_number,
            email=data.email,
            age=data.age,
            gender=data.gender,
            amount=data.amount,
            status=MembershipStatus.PENDING,
            issue_date=issue_date,
            end_date=end_date,
        )
        try:
            self.db.add(membership)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to create class registration for user {principal.id}: {e}")
            raise PersistenceError("Failed to create class registration") from e

        logger.info(f"Class registration {membership.id} created for user {principal.id}")
        return membership

    def verify_payment(
        self,
        principal: User,
        membership_id: int,
        order_id: str,
        payment_id: str,
        signature: str,
    ) -> dict:
        """
        Settle a membership payment.

        Returns:
            {"confirmed": bool, "class_registration_id", "status"}

        Raises:
            NotFound: Membership missing
            Forbidden: Membership belongs to someone else
        """
        try:
            membership = (
                self.db.query(ClassRegistration)
                .filter(ClassRegistration.id == membership_id)
                .with_for_update()
                .first()
            )
            if not membership:
                raise NotFound("Class registration not found")
            if principal.role != UserRole.ADMIN and membership.user_id != principal.id:
                raise Forbidden("You can only pay for your own class registration")

            valid = self.gateway.verify_signature(order_id, payment_id, signature)

            if membership.status == MembershipStatus.SUCCESS:
                self.db.rollback()
                duplicate = membership.razorpay_payment_id == payment_id
                logger.info(
                    f"Class registration {membership_id} already paid; "
                    f"{'duplicate verification' if duplicate else 'ignoring new attempt'}"
                )
                return {
                    "confirmed": valid and duplicate,
                    "class_registration_id": membership.id,
                    "status": membership.status.value,
                }

            membership.razorpay_order_id = order_id
            membership.razorpay_payment_id = payment_id
            membership.status = MembershipStatus.SUCCESS if valid else MembershipStatus.FAILED
            self.db.commit()
        except (NotFound, Forbidden):
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Failed to verify class payment {payment_id}: {e}")
            raise PersistenceError("Failed to record class payment") from e

        if valid:
            logger.info(f"Class registration {membership_id} paid ({payment_id})")
            self._notify(membership)
        else:
            logger.warning(f"Invalid signature for class registration {membership_id}")

        return {
            "confirmed": valid,
            "class_registration_id": membership.id,
            "status": membership.status.value,
        }

    def list_memberships(self, principal: User, user_id: int) -> list[ClassRegistration]:
        """Paid memberships of a user, most recent issue date first."""
        if principal.role != UserRole.ADMIN and principal.id != user_id:
            raise Forbidden("You can only view your own memberships")
        return (
            self.db.query(ClassRegistration)
            .filter(
                ClassRegistration.user_id == user_id,
                ClassRegistration.status == MembershipStatus.SUCCESS,
            )
            .order_by(ClassRegistration.issue_date.desc(), ClassRegistration.id.desc())
            .all()
        )

    def list_all(self, status: MembershipStatus | None = None) -> list[ClassRegistration]:
        query = self.db.query(ClassRegistration)
        if status:
            query = query.filter(ClassRegistration.status == status)
        return query.order_by(ClassRegistration.created_at.desc(), ClassRegistration.id.desc()).all()

    def _notify(self, membership: ClassRegistration) -> None:
        subject, html = email_templates.membership_confirmation(
            self.settings.app_name,
            name=membership.full_name,
            membership_id=membership.id,
            amount=membership.amount,
            currency=self.settings.default_currency,
            issue_date=membership.issue_date,
            end_date=membership.end_date,
        )
        dispatch_quietly(
            self.notifier,
            EmailJob(recipient=membership.email, subject=subject, html=html, priority=PRIORITY_HIGH),
        )
