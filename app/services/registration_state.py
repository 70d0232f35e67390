"""
Registration status state machine.

    PENDING --payment verified--> CONFIRMED
    PENDING --explicit failure--> FAILED
    PENDING, CONFIRMED --cancel--> CANCELLED

FAILED and CANCELLED are terminal.
"""

from app.core.errors import InvalidStateTransition
from app.db.models import RegistrationStatus

ALLOWED_TRANSITIONS: dict[RegistrationStatus, frozenset[RegistrationStatus]] = {
    RegistrationStatus.PENDING: frozenset(
        {
            RegistrationStatus.CONFIRMED,
            RegistrationStatus.FAILED,
            RegistrationStatus.CANCELLED,
        }
    ),
    RegistrationStatus.CONFIRMED: frozenset({RegistrationStatus.CANCELLED}),
    RegistrationStatus.FAILED: frozenset(),
    RegistrationStatus.CANCELLED: frozenset(),
}


def can_transition(current: RegistrationStatus, target: RegistrationStatus) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def ensure_transition(current: RegistrationStatus, target: RegistrationStatus) -> None:
    """
    Raises:
        InvalidStateTransition: If ``current -> target`` is not allowed
    """
    if not can_transition(current, target):
        raise InvalidStateTransition(
            f"Cannot change registration status from {current.value} to {target.value}",
            data={"current_status": current.value, "requested_status": target.value},
        )
