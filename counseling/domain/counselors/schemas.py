"""Counselor domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...constants import SessionType

MAX_SPECIALTIES = 20


def _clean_specialties(v):
    if v is None:
        return v
    cleaned = []
    for item in v:
        item = item.strip().lower()
        if item and item not in cleaned:
            cleaned.append(item)
    if len(cleaned) > MAX_SPECIALTIES:
        raise ValueError(f"At most {MAX_SPECIALTIES} specialties are allowed")
    return cleaned


class CounselorCreate(BaseModel):
    """Schema for a user setting up their counselor profile"""

    bio: Optional[str] = Field(None, max_length=5000)
    specialties: list[str] = Field(default_factory=list)
    profileImage: Optional[str] = Field(None, max_length=500)
    hourlyRate: Optional[int] = Field(None, ge=0)

    @field_validator("specialties")
    @classmethod
    def normalize_specialties(cls, v):
        return _clean_specialties(v)


class CounselorUpdate(BaseModel):
    """Schema for updating the caller's profile - all fields optional"""

    bio: Optional[str] = Field(None, max_length=5000)
    specialties: Optional[list[str]] = None
    profileImage: Optional[str] = Field(None, max_length=500)
    hourlyRate: Optional[int] = Field(None, ge=0)
    isActive: Optional[bool] = None

    @field_validator("specialties")
    @classmethod
    def normalize_specialties(cls, v):
        return _clean_specialties(v)


class CounselorResponse(BaseModel):
    id: int
    userId: int
    name: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None
    specialties: list[str] = []
    profileImage: Optional[str] = None
    hourlyRate: Optional[int] = None
    isActive: bool
    rating: float
    reviewCount: int
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class FavoriteResponse(BaseModel):
    id: int
    counselor: CounselorResponse
    createdAt: datetime


class ClientOverviewResponse(BaseModel):
    """One client of a counselor, summarised over their bookings"""

    clientId: int
    name: Optional[str] = None
    email: Optional[str] = None
    totalBookings: int
    completedSessions: int
    upcomingSessions: int
    lastSessionAt: Optional[datetime] = None
    nextSessionAt: Optional[datetime] = None


class SessionNoteFields(BaseModel):
    durationMinutes: Optional[int] = Field(None, ge=15, le=180)
    sessionType: Optional[str] = None
    moodBefore: Optional[int] = Field(None, ge=1, le=10)
    moodAfter: Optional[int] = Field(None, ge=1, le=10)
    summary: Optional[str] = Field(None, max_length=10000)
    keyTopics: Optional[list[str]] = None
    clientGoals: Optional[list[str]] = None
    progressNotes: Optional[str] = Field(None, max_length=10000)
    homeworkAssigned: Optional[str] = Field(None, max_length=5000)
    nextSessionFocus: Optional[str] = Field(None, max_length=5000)
    effectiveness: Optional[int] = Field(None, ge=1, le=10)
    requiresFollowup: Optional[bool] = None
    crisisFlag: Optional[bool] = None
    confidentialNotes: Optional[str] = Field(None, max_length=10000)

    @field_validator("sessionType")
    @classmethod
    def validate_session_type(cls, v):
        if v is not None and v not in SessionType.ALL:
            raise ValueError(f"sessionType must be one of: {', '.join(SessionType.ALL)}")
        return v


class SessionNoteCreate(SessionNoteFields):
    """Schema for a counselor's notes on one booked session"""

    bookingId: int


class SessionNoteUpdate(SessionNoteFields):
    """Schema for updating a session note - all fields optional"""


class SessionNoteResponse(BaseModel):
    id: int
    bookingId: int
    counselorId: int
    clientId: int
    clientName: Optional[str] = None
    sessionDate: datetime
    durationMinutes: int
    sessionType: str
    moodBefore: Optional[int] = None
    moodAfter: Optional[int] = None
    summary: Optional[str] = None
    keyTopics: list[str] = []
    clientGoals: list[str] = []
    progressNotes: Optional[str] = None
    homeworkAssigned: Optional[str] = None
    nextSessionFocus: Optional[str] = None
    effectiveness: Optional[int] = None
    requiresFollowup: bool
    crisisFlag: bool
    confidentialNotes: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime
