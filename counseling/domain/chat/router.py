"""Chat router - rooms, message history, sending and realtime subscription"""

import json
import logging
from typing import Optional

import anyio
from fastapi import (
    APIRouter,
    Depends,
    File,
    HTTPException,
    Query,
    Response,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from sqlalchemy.orm import Session
from starlette.requests import HTTPConnection
from starlette.websockets import WebSocketState

from ...auth import get_current_user, get_websocket_user
from ...config import CHAT_RATE_LIMIT, CHAT_RATE_WINDOW_SECONDS
from ...database import get_db
from ...errors import DomainError, RoomInactive
from ...models import ChatMessage, User
from ...rate_limiter import create_user_rate_limiter
from ...storage import (
    ALLOWED_ATTACHMENT_TYPES,
    MAX_ATTACHMENT_BYTES,
    AttachmentStore,
    get_attachment_store,
)
from .fanout import RealtimeHub
from .ledger import MessageLedger, message_payload, to_message_response
from .rooms import ChatRoomManager, RoomView
from .schemas import (
    AttachmentResponse,
    InboxEntry,
    MessageCreate,
    MessageListResponse,
    MessageResponse,
    ParticipantsResponse,
    RoomResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["Chat"])

DEFAULT_PAGE_SIZE = 100
MAX_PAGE_SIZE = 500

chat_send_limit = create_user_rate_limiter(
    limit=CHAT_RATE_LIMIT, window_seconds=CHAT_RATE_WINDOW_SECONDS, key_prefix="chat_send"
)


def get_hub(connection: HTTPConnection) -> RealtimeHub:
    return connection.app.state.hub


def get_room_manager(db: Session = Depends(get_db)) -> ChatRoomManager:
    return ChatRoomManager(db)


def get_ledger(db: Session = Depends(get_db), hub: RealtimeHub = Depends(get_hub)) -> MessageLedger:
    return MessageLedger(db, hub)


def to_room_response(view: RoomView) -> RoomResponse:
    participants = view.participants
    return RoomResponse(
        id=view.room.id,
        bookingId=view.booking.id,
        bookingStatus=view.booking.status,
        isActive=view.is_active,
        participants=ParticipantsResponse(
            clientId=participants.client_id, counselorUserId=participants.counselor_user_id
        ),
        createdAt=view.room.created_at,
        updatedAt=view.room.updated_at,
    )


def to_message_list(messages: list[ChatMessage], since_sequence: int, limit: int) -> MessageListResponse:
    return MessageListResponse(
        messages=[to_message_response(m) for m in messages],
        lastSequence=messages[-1].sequence if messages else since_sequence,
        hasMore=len(messages) == limit,
    )


@router.get("/rooms", response_model=list[InboxEntry])
async def list_rooms(
    current_user: User = Depends(get_current_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
):
    """Chat inbox: rooms of the user's pending, confirmed and completed bookings"""
    entries = []
    for view, last_message in rooms.list_rooms_for_user(current_user):
        if view.booking.client_id == current_user.id:
            other = view.booking.counselor.user
        else:
            other = view.booking.client
        entries.append(
            InboxEntry(
                room=to_room_response(view),
                scheduledAt=view.booking.scheduled_at,
                serviceType=view.booking.service_type,
                otherParty=(other.name or other.email) if other else None,
                lastMessage=to_message_response(last_message) if last_message else None,
            )
        )
    return entries


@router.get("/bookings/{booking_id}/room", response_model=RoomResponse)
async def get_booking_room(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
):
    """Open (or create) the chat room of a booking"""
    return to_room_response(rooms.get_or_create_room(booking_id, current_user))


@router.get("/rooms/{room_id}", response_model=RoomResponse)
async def get_room(
    room_id: int,
    current_user: User = Depends(get_current_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
):
    return to_room_response(rooms.get_room(room_id, current_user))


@router.get("/rooms/{room_id}/messages", response_model=MessageListResponse)
async def get_messages(
    room_id: int,
    since_sequence: int = Query(0, ge=0),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
    ledger: MessageLedger = Depends(get_ledger),
):
    """Message history after since_sequence, oldest first; readable after the session closes"""
    rooms.get_room(room_id, current_user)
    messages = ledger.history(room_id, since_sequence, limit)
    return to_message_list(messages, since_sequence, limit)


@router.post("/rooms/{room_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message(
    room_id: int,
    data: MessageCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    ledger: MessageLedger = Depends(get_ledger),
    _: None = Depends(chat_send_limit),
):
    result = ledger.append(
        room_id,
        current_user.id,
        body=data.body,
        attachment_url=data.attachmentUrl,
        client_message_id=data.clientMessageId,
    )
    if not result.created:
        response.status_code = status.HTTP_200_OK
    return to_message_response(result.message)


@router.post("/rooms/{room_id}/attachments", response_model=AttachmentResponse, status_code=201)
async def upload_attachment(
    room_id: int,
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
    store: AttachmentStore = Depends(get_attachment_store),
):
    """Upload a file for a chat message; send its URL with POST /messages afterwards"""
    view = rooms.get_room(room_id, current_user)
    if not view.is_active:
        raise RoomInactive()

    if file.content_type not in ALLOWED_ATTACHMENT_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Invalid file type. Only images (PNG, JPEG, WebP, GIF, HEIC) and PDF files are allowed.",
        )

    data = await file.read()
    if len(data) > MAX_ATTACHMENT_BYTES:
        raise HTTPException(status_code=413, detail="File too large. Maximum size is 10MB.")
    if not data:
        raise HTTPException(status_code=400, detail="Empty file")

    logger.info(f"📤 Uploading attachment for room {room_id} from user {current_user.id}")
    stored = store.upload(room_id, data, file.content_type, file.filename)
    return AttachmentResponse(url=stored.url, key=stored.key, contentType=stored.content_type, size=stored.size)


@router.websocket("/rooms/{room_id}/ws")
async def room_socket(
    websocket: WebSocket,
    room_id: int,
    since_sequence: Optional[int] = Query(None, ge=0),
    current_user: User = Depends(get_websocket_user),
    rooms: ChatRoomManager = Depends(get_room_manager),
    ledger: MessageLedger = Depends(get_ledger),
    hub: RealtimeHub = Depends(get_hub),
):
    """
    Realtime stream of a room's messages.

    The subscription is registered before history is replayed, so anything
    appended meanwhile is buffered and nothing falls in between; duplicates
    are dropped by sequence number.

    Server frames:
        {"type": "message", "message": {...}}
        {"type": "live", "lastSequence": N}   after the history replay
        {"type": "pong"}                      reply to {"type": "ping"}
        {"type": "error", "detail": ...}      the client sent a frame that is not JSON
    """
    try:
        rooms.get_room(room_id, current_user)
    except DomainError as e:
        logger.warning(f"⚠️ WebSocket for room {room_id} refused for user {current_user.id}: {e.message}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    subscription = hub.subscribe(room_id, current_user.id)
    try:
        last_sequence = since_sequence or 0
        for message in ledger.history(room_id, last_sequence):
            await websocket.send_json({"type": "message", "message": message_payload(message)})
            last_sequence = message.sequence
        subscription.mark_live(last_sequence)
        await websocket.send_json({"type": "live", "lastSequence": last_sequence})

        async def pump():
            try:
                while True:
                    payload = await subscription.next()
                    if payload is None:
                        break
                    await websocket.send_json({"type": "message", "message": payload})
            except WebSocketDisconnect:
                pass
            task_group.cancel_scope.cancel()

        async def listen():
            try:
                while True:
                    frame = await websocket.receive()
                    if frame["type"] == "websocket.disconnect":
                        break
                    try:
                        data = json.loads(frame.get("text") or "")
                    except ValueError:
                        await websocket.send_json({"type": "error", "detail": "Frames must be JSON text"})
                        continue
                    if isinstance(data, dict) and data.get("type") == "ping":
                        await websocket.send_json({"type": "pong"})
            except WebSocketDisconnect:
                pass
            task_group.cancel_scope.cancel()

        # Whichever side ends first (stream closed or client gone) stops the other
        async with anyio.create_task_group() as task_group:
            task_group.start_soon(pump)
            task_group.start_soon(listen)

        if subscription.overflowed and websocket.client_state == WebSocketState.CONNECTED:
            logger.warning(f"⚠️ User {current_user.id} fell behind in room {room_id}, closing socket")
            await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason="Subscriber fell behind")
    except WebSocketDisconnect:
        pass
    finally:
        hub.unsubscribe(subscription)
