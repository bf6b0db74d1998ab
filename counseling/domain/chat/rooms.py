"""Chat Room Manager - one room per booking, activity read from the booking"""

import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...constants import BookingStatus
from ...errors import BookingNotFound, NotAParticipant, RoomNotFound
from ...models import Booking, ChatMessage, ChatRoom, User
from ..bookings.gate import can_activate_room
from ..bookings.repository import BookingRepository
from ..bookings.service import booking_participants
from .repository import ChatRepository

logger = logging.getLogger(__name__)

# Bookings that show up in a user's chat inbox
INBOX_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class Participants(NamedTuple):
    client_id: int
    counselor_user_id: int


@dataclass
class RoomView:
    """A room together with its booking and the activity computed from it"""

    room: ChatRoom
    booking: Booking
    is_active: bool

    @property
    def participants(self) -> Participants:
        return Participants(*booking_participants(self.booking))


def list_participants(room: ChatRoom) -> Participants:
    return Participants(*booking_participants(room.booking))


class ChatRoomManager:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ChatRepository()

    def _view(self, room: ChatRoom, booking: Booking) -> RoomView:
        return RoomView(room=room, booking=booking, is_active=can_activate_room(booking))

    def get_or_create_room(self, booking_id: int, user: Optional[User] = None) -> RoomView:
        """
        The booking's room, created on first access.

        Both participants may open the chat at the same moment; the unique
        booking_id constraint lets exactly one insert win and the loser reads
        the winner's row.
        """
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise BookingNotFound()
        if user is not None and user.id not in booking_participants(booking):
            raise NotAParticipant()

        room = self.repo.get_room_by_booking(self.db, booking_id)
        if room is None:
            try:
                room = self.repo.create_room(self.db, booking_id, can_activate_room(booking))
                logger.info(f"✅ Created chat room {room.id} for booking {booking_id}")
            except IntegrityError:
                self.db.rollback()
                logger.info(f"🔄 Chat room for booking {booking_id} created concurrently, re-fetching")
                room = self.repo.get_room_by_booking(self.db, booking_id)
                if room is None:
                    raise
                booking = self.repo.get_booking(self.db, booking_id)

        return self._view(room, booking)

    def get_room(self, room_id: int, user: Optional[User] = None) -> RoomView:
        room = self.repo.get_room(self.db, room_id)
        if not room:
            raise RoomNotFound()
        if user is not None and user.id not in booking_participants(room.booking):
            raise NotAParticipant()
        return self._view(room, room.booking)

    def list_rooms_for_user(self, user: User) -> list[tuple[RoomView, Optional[ChatMessage]]]:
        """The user's chat inbox: one room per active or past booking, newest session first"""
        counselor = BookingRepository.get_counselor_by_user_id(self.db, user.id)
        bookings = self.repo.get_bookings_with_chat(
            self.db, user.id, counselor.id if counselor else None, INBOX_STATUSES
        )

        views = []
        for booking in bookings:
            if booking.chat_room is not None:
                views.append(self._view(booking.chat_room, booking))
            else:
                views.append(self.get_or_create_room(booking.id))

        latest = self.repo.get_last_messages(self.db, [v.room.id for v in views])
        return [(view, latest.get(view.room.id)) for view in views]
