"""
Booking Gate - the status authority for bookings.

Booking statuses: pending → confirmed → completed, with cancelled reachable
from pending or confirmed. completed and cancelled are terminal.

Chat rooms never cache their own activity; callers ask can_activate_room()
with the booking as it is right now.
"""

from ...constants import BookingEvent, BookingStatus
from ...errors import InvalidTransition

EVENT_TARGETS = {
    BookingEvent.CONFIRM_PAYMENT: BookingStatus.CONFIRMED,
    BookingEvent.COMPLETE: BookingStatus.COMPLETED,
    BookingEvent.CANCEL: BookingStatus.CANCELLED,
}

VALID_TRANSITIONS = {
    BookingStatus.PENDING: (BookingStatus.CONFIRMED, BookingStatus.CANCELLED),
    BookingStatus.CONFIRMED: (BookingStatus.COMPLETED, BookingStatus.CANCELLED),
    BookingStatus.COMPLETED: (),  # Terminal state
    BookingStatus.CANCELLED: (),  # Terminal state
}


def can_activate_room(booking) -> bool:
    """A room is open for sending only while its booking is confirmed"""
    return booking is not None and booking.status == BookingStatus.CONFIRMED


def resolve_transition(current_status: str, event: str) -> tuple[str, bool]:
    """
    Work out where `event` takes a booking currently in `current_status`.

    Returns (target_status, changed). Re-applying the event that produced the
    current status is a successful no-op (changed=False) so repeated payment
    confirmations are harmless.

    Raises:
        InvalidTransition: unknown event, or a move the status graph forbids
    """
    target = EVENT_TARGETS.get(event)
    if target is None:
        raise InvalidTransition(current_status, event)

    if current_status == target:
        return target, False

    if target not in VALID_TRANSITIONS.get(current_status, ()):
        raise InvalidTransition(current_status, event)

    return target, True
