"""Booking state machine."""

from sporti.utils.exceptions import ValidationError

BOOKING_STATUSES = ("pending", "confirmed", "rejected", "cancelled", "completed")
TARGET_STATUSES = ("confirmed", "rejected", "cancelled", "completed")
PAYMENT_STATUSES = ("pending", "paid")

# completed -> completed lets an admin re-mark a stay without error
BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "rejected"},
    "confirmed": {"cancelled", "completed"},
    "completed": {"completed"},
    "rejected": set(),
    "cancelled": set(),
}

# Transitions that hand the resource back
RELEASING_STATUSES = {"rejected", "cancelled"}


def assert_booking_transition(current: str, target: str) -> None:
    allowed = BOOKING_TRANSITIONS.get(current, set())
    if target not in allowed:
        raise ValidationError(
            f"Invalid booking transition: {current} → {target}"
        )
