"""Counselor service - Business logic for profiles, favorites, client overview and session notes"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...constants import BookingStatus, service_duration_minutes
from ...models import Counselor, FavoriteCounselor, SessionNote, User
from ...shared.clock import utcnow
from ..bookings.repository import BookingRepository
from .repository import CounselorRepository, SessionNoteRepository
from .schemas import CounselorCreate, CounselorUpdate, SessionNoteCreate, SessionNoteUpdate

logger = logging.getLogger(__name__)


@dataclass
class ClientOverview:
    client: User
    total_bookings: int = 0
    completed_sessions: int = 0
    upcoming_sessions: int = 0
    last_session_at: Optional[datetime] = None
    next_session_at: Optional[datetime] = None


class CounselorService:
    """Service layer for counselor business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = CounselorRepository()

    # ------------------------------------------------------------------
    # Profiles
    # ------------------------------------------------------------------

    def list_counselors(self, specialty: Optional[str] = None) -> list[Counselor]:
        """Active counselors by rating; specialty matches case-insensitively"""
        counselors = self.repo.get_active_counselors(self.db)
        if specialty:
            wanted = specialty.strip().lower()
            counselors = [c for c in counselors if wanted in (c.specialties or [])]
        return counselors

    def get_counselor(self, counselor_id: int) -> Counselor:
        counselor = self.repo.get_counselor(self.db, counselor_id)
        if not counselor:
            raise HTTPException(status_code=404, detail="Counselor not found")
        return counselor

    def get_own_profile(self, user: User) -> Counselor:
        counselor = self.repo.get_by_user_id(self.db, user.id)
        if not counselor:
            raise HTTPException(status_code=404, detail="You do not have a counselor profile")
        return counselor

    def create_profile(self, data: CounselorCreate, user: User) -> Counselor:
        if self.repo.get_by_user_id(self.db, user.id):
            raise HTTPException(status_code=409, detail="Counselor profile already exists")
        try:
            counselor = self.repo.create_counselor(
                self.db,
                user.id,
                bio=data.bio,
                specialties=data.specialties,
                profile_image=data.profileImage,
                hourly_rate=data.hourlyRate,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="Counselor profile already exists") from e
        logger.info(f"✅ User {user.id} created counselor profile {counselor.id}")
        return self.repo.get_counselor(self.db, counselor.id)

    def update_profile(self, data: CounselorUpdate, user: User) -> Counselor:
        counselor = self.get_own_profile(user)
        fields = {
            "bio": "bio",
            "specialties": "specialties",
            "profileImage": "profile_image",
            "hourlyRate": "hourly_rate",
            "isActive": "is_active",
        }
        for name, value in data.model_dump(exclude_unset=True).items():
            if name == "isActive" and value is None:
                continue
            setattr(counselor, fields[name], value)
        self.db.commit()
        self.db.refresh(counselor)
        logger.info(f"✅ Counselor {counselor.id} updated profile")
        return counselor

    # ------------------------------------------------------------------
    # Favorites
    # ------------------------------------------------------------------

    def list_favorites(self, user: User) -> list[FavoriteCounselor]:
        return self.repo.get_favorites(self.db, user.id)

    def add_favorite(self, counselor_id: int, user: User) -> tuple[FavoriteCounselor, bool]:
        """Returns (favorite, created); adding twice keeps the first entry"""
        self.get_counselor(counselor_id)
        existing = self.repo.get_favorite(self.db, user.id, counselor_id)
        if existing:
            return existing, False

        favorite = FavoriteCounselor(user_id=user.id, counselor_id=counselor_id)
        self.db.add(favorite)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return self.repo.get_favorite(self.db, user.id, counselor_id), False
        self.db.refresh(favorite)
        logger.info(f"⭐ User {user.id} saved counselor {counselor_id}")
        return favorite, True

    def remove_favorite(self, counselor_id: int, user: User) -> None:
        favorite = self.repo.get_favorite(self.db, user.id, counselor_id)
        if not favorite:
            raise HTTPException(status_code=404, detail="Counselor is not in your favorites")
        self.db.delete(favorite)
        self.db.commit()
        logger.info(f"🗑️ User {user.id} removed counselor {counselor_id} from favorites")

    # ------------------------------------------------------------------
    # Client overview
    # ------------------------------------------------------------------

    def list_clients(self, user: User, now: Optional[datetime] = None) -> list[ClientOverview]:
        """
        The counselor's clients with booking counts and session dates.

        Cancelled bookings are not counted; clients seen most recently come
        first, then clients who have only upcoming sessions.
        """
        counselor = self.repo.get_by_user_id(self.db, user.id)
        if not counselor:
            raise HTTPException(status_code=403, detail="Only counselors have clients")
        now = now or utcnow()

        overview: dict[int, ClientOverview] = {}
        for booking in self.repo.get_counselor_bookings(self.db, counselor.id):
            if booking.status == BookingStatus.CANCELLED:
                continue
            entry = overview.setdefault(booking.client_id, ClientOverview(client=booking.client))
            entry.total_bookings += 1
            if booking.status == BookingStatus.COMPLETED:
                entry.completed_sessions += 1
                if entry.last_session_at is None or booking.scheduled_at > entry.last_session_at:
                    entry.last_session_at = booking.scheduled_at
            elif booking.scheduled_at >= now:
                entry.upcoming_sessions += 1
                if entry.next_session_at is None or booking.scheduled_at < entry.next_session_at:
                    entry.next_session_at = booking.scheduled_at

        clients = sorted(overview.values(), key=lambda e: e.next_session_at or datetime.max)
        return sorted(clients, key=lambda e: e.last_session_at or datetime.min, reverse=True)


# Request field -> SessionNote column
NOTE_FIELDS = {
    "durationMinutes": "duration_minutes",
    "sessionType": "session_type",
    "moodBefore": "mood_before",
    "moodAfter": "mood_after",
    "summary": "summary",
    "keyTopics": "key_topics",
    "clientGoals": "client_goals",
    "progressNotes": "progress_notes",
    "homeworkAssigned": "homework_assigned",
    "nextSessionFocus": "next_session_focus",
    "effectiveness": "effectiveness",
    "requiresFollowup": "requires_followup",
    "crisisFlag": "crisis_flag",
    "confidentialNotes": "confidential_notes",
}

# Notes are written for sessions that took place or are about to
NOTABLE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class SessionNoteService:
    """Private per-session notes kept by the booking's counselor"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = SessionNoteRepository()
        self.counselors = CounselorRepository()

    def _require_counselor(self, user: User) -> Counselor:
        counselor = self.counselors.get_by_user_id(self.db, user.id)
        if not counselor:
            raise HTTPException(status_code=403, detail="Only counselors can keep session notes")
        return counselor

    def _owned_note(self, note: Optional[SessionNote], counselor: Counselor) -> SessionNote:
        if not note:
            raise HTTPException(status_code=404, detail="Session note not found")
        if note.counselor_id != counselor.id:
            raise HTTPException(status_code=403, detail="This note belongs to another counselor")
        return note

    def create_note(self, data: SessionNoteCreate, user: User) -> SessionNote:
        counselor = self._require_counselor(user)
        booking = BookingRepository.get_booking(self.db, data.bookingId)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        if booking.counselor_id != counselor.id:
            raise HTTPException(status_code=403, detail="Only the booking's counselor can write notes")
        if booking.status not in NOTABLE_STATUSES:
            raise HTTPException(status_code=400, detail=f"Cannot write notes for a {booking.status} booking")
        if self.repo.get_by_booking(self.db, booking.id):
            raise HTTPException(status_code=409, detail="This session already has notes")

        note = SessionNote(
            booking_id=booking.id,
            counselor_id=counselor.id,
            client_id=booking.client_id,
            session_date=booking.scheduled_at,
            duration_minutes=service_duration_minutes(booking.service_type),
        )
        self._apply(note, data)
        self.db.add(note)
        try:
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise HTTPException(status_code=409, detail="This session already has notes") from e

        logger.info(f"📝 Counselor {counselor.id} wrote notes for booking {booking.id}")
        if note.crisis_flag:
            logger.warning(f"🚨 Crisis flagged in notes for booking {booking.id}")
        return self.repo.get_note(self.db, note.id)

    def update_note(self, note_id: int, data: SessionNoteUpdate, user: User) -> SessionNote:
        counselor = self._require_counselor(user)
        note = self._owned_note(self.repo.get_note(self.db, note_id), counselor)
        was_flagged = note.crisis_flag
        self._apply(note, data)
        self.db.commit()
        self.db.refresh(note)
        logger.info(f"📝 Counselor {counselor.id} updated notes {note.id}")
        if note.crisis_flag and not was_flagged:
            logger.warning(f"🚨 Crisis flagged in notes for booking {note.booking_id}")
        return note

    def get_note_for_booking(self, booking_id: int, user: User) -> SessionNote:
        counselor = self._require_counselor(user)
        return self._owned_note(self.repo.get_by_booking(self.db, booking_id), counselor)

    def list_notes(self, user: User, client_id: Optional[int] = None) -> list[SessionNote]:
        counselor = self._require_counselor(user)
        return self.repo.get_for_counselor(self.db, counselor.id, client_id)

    @staticmethod
    def _apply(note: SessionNote, data) -> None:
        # Explicit nulls keep the stored value; flags and lists are never cleared to None
        for name, value in data.model_dump(exclude_unset=True).items():
            if name in NOTE_FIELDS and value is not None:
                setattr(note, NOTE_FIELDS[name], value)
