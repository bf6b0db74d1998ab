"""Chat repository - Database operations for rooms and messages"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Booking, ChatMessage, ChatRoom, Counselor


class ChatRepository:
    """Repository for chat room and message database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        """Booking as stored right now, overwriting anything cached in the session"""
        return (
            db.query(Booking)
            .options(joinedload(Booking.client), joinedload(Booking.counselor).joinedload(Counselor.user))
            .filter(Booking.id == booking_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_room(db: Session, room_id: int) -> Optional[ChatRoom]:
        """Room with its booking re-read from the database"""
        return (
            db.query(ChatRoom)
            .options(
                joinedload(ChatRoom.booking).joinedload(Booking.counselor).joinedload(Counselor.user),
                joinedload(ChatRoom.booking).joinedload(Booking.client),
            )
            .filter(ChatRoom.id == room_id)
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_room_by_booking(db: Session, booking_id: int) -> Optional[ChatRoom]:
        return db.query(ChatRoom).filter(ChatRoom.booking_id == booking_id).first()

    @staticmethod
    def create_room(db: Session, booking_id: int, is_active: bool) -> ChatRoom:
        """Insert a room and commit; raises IntegrityError if the booking already has one"""
        room = ChatRoom(booking_id=booking_id, is_active=is_active)
        db.add(room)
        db.commit()
        db.refresh(room)
        return room

    @staticmethod
    def get_last_message(db: Session, room_id: int) -> Optional[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.room_id == room_id)
            .order_by(ChatMessage.sequence.desc())
            .first()
        )

    @staticmethod
    def get_last_messages(db: Session, room_ids: list[int]) -> dict[int, ChatMessage]:
        """Latest message per room, for inbox previews"""
        if not room_ids:
            return {}
        latest = (
            db.query(ChatMessage.room_id, func.max(ChatMessage.sequence).label("sequence"))
            .filter(ChatMessage.room_id.in_(room_ids))
            .group_by(ChatMessage.room_id)
            .subquery()
        )
        messages = (
            db.query(ChatMessage)
            .join(
                latest,
                (ChatMessage.room_id == latest.c.room_id) & (ChatMessage.sequence == latest.c.sequence),
            )
            .all()
        )
        return {m.room_id: m for m in messages}

    @staticmethod
    def get_message_by_client_id(db: Session, room_id: int, client_message_id: str) -> Optional[ChatMessage]:
        return (
            db.query(ChatMessage)
            .filter(ChatMessage.room_id == room_id, ChatMessage.client_message_id == client_message_id)
            .first()
        )

    @staticmethod
    def get_messages(
        db: Session, room_id: int, since_sequence: int = 0, limit: Optional[int] = None
    ) -> list[ChatMessage]:
        """Messages with sequence > since_sequence, ascending"""
        query = (
            db.query(ChatMessage)
            .filter(ChatMessage.room_id == room_id, ChatMessage.sequence > since_sequence)
            .order_by(ChatMessage.sequence.asc())
        )
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    @staticmethod
    def get_bookings_with_chat(
        db: Session, user_id: int, counselor_id: Optional[int], statuses: tuple[str, ...]
    ) -> list[Booking]:
        """Bookings in the given statuses where the user is client or counselor"""
        query = db.query(Booking).options(
            joinedload(Booking.client),
            joinedload(Booking.counselor).joinedload(Counselor.user),
            joinedload(Booking.chat_room),
        )
        if counselor_id is not None:
            query = query.filter((Booking.client_id == user_id) | (Booking.counselor_id == counselor_id))
        else:
            query = query.filter(Booking.client_id == user_id)
        return query.filter(Booking.status.in_(statuses)).order_by(Booking.scheduled_at.desc()).all()
