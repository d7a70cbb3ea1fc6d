"""Booking status transitions.

Every status change goes through this table, both when enforcing and when
asking which moves are available for a booking.
"""

from galerago import models
from galerago.exceptions import StateError, ValidationError


ALLOWED_TRANSITIONS = {
    models.STATUS_PENDING: {models.STATUS_CONFIRMED, models.STATUS_CANCELLED},
    models.STATUS_CONFIRMED: {models.STATUS_COMPLETED, models.STATUS_CANCELLED},
    models.STATUS_COMPLETED: set(),
    models.STATUS_CANCELLED: set(),
}

# Provider recovery path out of cancellation
REACTIVATION_TARGETS = {models.STATUS_PENDING, models.STATUS_CONFIRMED}


def allowed_transitions(current: str) -> set:
    return set(ALLOWED_TRANSITIONS.get(current, set()))


def validate_status(status: str) -> str:
    if status not in models.BOOKING_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(models.BOOKING_STATUSES)}"
        )
    return status


def check_transition(current: str, target: str) -> None:
    """Raise StateError unless current -> target is allowed."""
    validate_status(target)
    if target not in ALLOWED_TRANSITIONS.get(current, set()):
        raise StateError(
            f"Cannot change booking status from '{current}' to '{target}'",
            current=current,
            target=target,
        )
