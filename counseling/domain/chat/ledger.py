"""
Message Ledger - append-only, totally ordered messages per room.

Sequence numbers are assigned as max(sequence) + 1 under the room's lock and
backed by a (room_id, sequence) unique constraint, so two messages in a room
can never share an order position even with several processes writing.
created_at is display only and never goes backwards within a room.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...errors import (
    ClientMessageIdConflict,
    EmptyMessage,
    NotAParticipant,
    RoomInactive,
    RoomNotFound,
)
from ...models import ChatMessage
from ...shared.clock import utcnow
from ..bookings.gate import can_activate_room
from .fanout import RealtimeHub
from .repository import ChatRepository
from .rooms import list_participants
from .schemas import MessageResponse

logger = logging.getLogger(__name__)

MAX_APPEND_ATTEMPTS = 5


@dataclass
class AppendResult:
    message: ChatMessage
    # False when a retry with a known client_message_id returned the stored message
    created: bool


def to_message_response(message: ChatMessage) -> MessageResponse:
    return MessageResponse(
        id=message.id,
        roomId=message.room_id,
        senderId=message.sender_id,
        body=message.body,
        attachmentUrl=message.attachment_url,
        sequence=message.sequence,
        clientMessageId=message.client_message_id,
        createdAt=message.created_at,
    )


def message_payload(message: ChatMessage) -> dict:
    """JSON-ready form pushed to realtime subscribers"""
    return to_message_response(message).model_dump(mode="json")


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip():
        return None
    return value


class MessageLedger:
    def __init__(self, db: Session, hub: RealtimeHub):
        self.db = db
        self.hub = hub
        self.repo = ChatRepository()

    def append(
        self,
        room_id: int,
        sender_id: int,
        body: Optional[str] = None,
        attachment_url: Optional[str] = None,
        client_message_id: Optional[str] = None,
    ) -> AppendResult:
        """
        Store a message and push it to live subscribers.

        Raises:
            RoomNotFound: no such room
            NotAParticipant: sender is neither the client nor the counselor
            EmptyMessage: no text and no attachment
            RoomInactive: the booking is not confirmed (session closed)
            ClientMessageIdConflict: client_message_id already used by the other participant
        """
        room = self.repo.get_room(self.db, room_id)
        if not room:
            raise RoomNotFound()
        if sender_id not in list_participants(room):
            raise NotAParticipant()

        body = _clean(body)
        attachment_url = _clean(attachment_url)
        if body is None and attachment_url is None:
            raise EmptyMessage()

        if client_message_id:
            existing = self._stored_send(room_id, sender_id, client_message_id)
            if existing:
                logger.info(f"🔁 Duplicate send {client_message_id} in room {room_id}, returning stored message")
                return AppendResult(existing, False)

        if not can_activate_room(room.booking):
            raise RoomInactive()

        last_error = None
        for _ in range(MAX_APPEND_ATTEMPTS):
            with self.hub.room_lock(room_id):
                # The booking may have been cancelled or completed while we waited
                booking = self.repo.get_booking(self.db, room.booking_id)
                if not can_activate_room(booking):
                    logger.info(f"🔒 Room {room_id} closed before message from user {sender_id} was stored")
                    raise RoomInactive()

                last = self.repo.get_last_message(self.db, room_id)
                now = utcnow()
                message = ChatMessage(
                    room_id=room_id,
                    sender_id=sender_id,
                    body=body,
                    attachment_url=attachment_url,
                    sequence=(last.sequence if last else 0) + 1,
                    client_message_id=client_message_id,
                    created_at=max(now, last.created_at) if last else now,
                )
                self.db.add(message)
                try:
                    self.db.commit()
                except IntegrityError as e:
                    # Another writer took this sequence, or the same key landed first
                    self.db.rollback()
                    last_error = e
                    if client_message_id:
                        existing = self._stored_send(room_id, sender_id, client_message_id)
                        if existing:
                            return AppendResult(existing, False)
                    logger.info(f"🔄 Sequence conflict in room {room_id}, retrying append")
                    continue

                self.db.refresh(message)
                delivered = self.hub.publish(room_id, message_payload(message))
                logger.info(
                    f"✅ Message {message.sequence} appended to room {room_id} "
                    f"(pushed to {delivered} subscriber(s))"
                )
                return AppendResult(message, True)

        logger.error(f"❌ Could not append to room {room_id} after {MAX_APPEND_ATTEMPTS} attempts")
        raise last_error

    def _stored_send(self, room_id: int, sender_id: int, client_message_id: str) -> Optional[ChatMessage]:
        """The message already stored under this key, if it belongs to the same sender"""
        existing = self.repo.get_message_by_client_id(self.db, room_id, client_message_id)
        if existing and existing.sender_id != sender_id:
            logger.warning(
                f"⚠️ User {sender_id} reused client message id {client_message_id} "
                f"of user {existing.sender_id} in room {room_id}"
            )
            raise ClientMessageIdConflict()
        return existing

    def history(
        self, room_id: int, since_sequence: Optional[int] = None, limit: Optional[int] = None
    ) -> list[ChatMessage]:
        """
        Messages after since_sequence in ascending sequence order. Readable
        whether or not the room is active.
        """
        if not self.repo.get_room(self.db, room_id):
            raise RoomNotFound()
        return self.repo.get_messages(self.db, room_id, since_sequence or 0, limit)
