import pytest

from counseling.constants import BookingEvent, BookingStatus
from counseling.domain.bookings.gate import can_activate_room, resolve_transition
from counseling.errors import InvalidTransition
from counseling.models import Booking


@pytest.mark.parametrize(
    "status,expected",
    [
        (BookingStatus.PENDING, False),
        (BookingStatus.CONFIRMED, True),
        (BookingStatus.COMPLETED, False),
        (BookingStatus.CANCELLED, False),
    ],
)
def test_room_active_only_while_confirmed(status, expected):
    assert can_activate_room(Booking(status=status)) is expected


def test_no_booking_means_inactive():
    assert can_activate_room(None) is False


@pytest.mark.parametrize(
    "current,event,target",
    [
        (BookingStatus.PENDING, BookingEvent.CONFIRM_PAYMENT, BookingStatus.CONFIRMED),
        (BookingStatus.PENDING, BookingEvent.CANCEL, BookingStatus.CANCELLED),
        (BookingStatus.CONFIRMED, BookingEvent.COMPLETE, BookingStatus.COMPLETED),
        (BookingStatus.CONFIRMED, BookingEvent.CANCEL, BookingStatus.CANCELLED),
    ],
)
def test_allowed_moves(current, event, target):
    assert resolve_transition(current, event) == (target, True)


@pytest.mark.parametrize(
    "current,event",
    [
        (BookingStatus.PENDING, BookingEvent.COMPLETE),
        (BookingStatus.COMPLETED, BookingEvent.CANCEL),
        (BookingStatus.COMPLETED, BookingEvent.CONFIRM_PAYMENT),
        (BookingStatus.CANCELLED, BookingEvent.CONFIRM_PAYMENT),
        (BookingStatus.CANCELLED, BookingEvent.COMPLETE),
    ],
)
def test_forbidden_moves(current, event):
    with pytest.raises(InvalidTransition) as exc:
        resolve_transition(current, event)
    assert exc.value.current_status == current
    assert exc.value.status_code == 409


@pytest.mark.parametrize(
    "status,event",
    [
        (BookingStatus.CONFIRMED, BookingEvent.CONFIRM_PAYMENT),
        (BookingStatus.CANCELLED, BookingEvent.CANCEL),
        (BookingStatus.COMPLETED, BookingEvent.COMPLETE),
    ],
)
def test_repeating_an_applied_event_is_a_no_op(status, event):
    assert resolve_transition(status, event) == (status, False)


def test_unknown_event_is_rejected():
    with pytest.raises(InvalidTransition):
        resolve_transition(BookingStatus.PENDING, "refund")
