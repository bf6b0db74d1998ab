"""Chat domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ParticipantsResponse(BaseModel):
    clientId: int
    counselorUserId: int


class RoomResponse(BaseModel):
    id: int
    bookingId: int
    bookingStatus: str
    # Computed from the booking on every read
    isActive: bool
    participants: ParticipantsResponse
    createdAt: datetime
    updatedAt: datetime


class MessageCreate(BaseModel):
    body: Optional[str] = Field(None, max_length=5000)
    attachmentUrl: Optional[str] = Field(None, max_length=1000)
    # Client-generated key; retrying with the same key returns the stored message
    clientMessageId: Optional[str] = Field(None, min_length=1, max_length=64)

    @field_validator("attachmentUrl")
    @classmethod
    def validate_attachment_url(cls, v):
        if v is None or not v.strip():
            return v
        if not v.startswith(("https://", "http://")):
            raise ValueError("attachmentUrl must be an http(s) URL")
        return v


class MessageResponse(BaseModel):
    id: int
    roomId: int
    senderId: int
    body: Optional[str] = None
    attachmentUrl: Optional[str] = None
    sequence: int
    clientMessageId: Optional[str] = None
    createdAt: datetime


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]
    # Highest sequence returned; pass back as since_sequence to continue
    lastSequence: int
    hasMore: bool


class InboxEntry(BaseModel):
    room: RoomResponse
    scheduledAt: datetime
    serviceType: str
    otherParty: Optional[str] = None
    lastMessage: Optional[MessageResponse] = None


class AttachmentResponse(BaseModel):
    url: str
    key: str
    contentType: str
    size: int
