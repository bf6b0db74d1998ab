"""Counselor repository - Database operations for profiles, favorites and session notes"""

from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, Counselor, FavoriteCounselor, SessionNote


class CounselorRepository:
    """Repository for counselor database operations"""

    @staticmethod
    def get_counselor(db: Session, counselor_id: int) -> Optional[Counselor]:
        return (
            db.query(Counselor)
            .options(joinedload(Counselor.user))
            .filter(Counselor.id == counselor_id)
            .first()
        )

    @staticmethod
    def get_by_user_id(db: Session, user_id: int) -> Optional[Counselor]:
        return (
            db.query(Counselor)
            .options(joinedload(Counselor.user))
            .filter(Counselor.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_active_counselors(db: Session) -> list[Counselor]:
        """Active counselors, best rated first"""
        return (
            db.query(Counselor)
            .options(joinedload(Counselor.user))
            .filter(Counselor.is_active.is_(True))
            .order_by(Counselor.rating.desc(), Counselor.review_count.desc(), Counselor.id)
            .all()
        )

    @staticmethod
    def create_counselor(db: Session, user_id: int, **fields) -> Counselor:
        counselor = Counselor(user_id=user_id, **fields)
        db.add(counselor)
        db.commit()
        db.refresh(counselor)
        return counselor

    @staticmethod
    def get_favorite(db: Session, user_id: int, counselor_id: int) -> Optional[FavoriteCounselor]:
        return (
            db.query(FavoriteCounselor)
            .filter(FavoriteCounselor.user_id == user_id, FavoriteCounselor.counselor_id == counselor_id)
            .first()
        )

    @staticmethod
    def get_favorites(db: Session, user_id: int) -> list[FavoriteCounselor]:
        return (
            db.query(FavoriteCounselor)
            .options(joinedload(FavoriteCounselor.counselor).joinedload(Counselor.user))
            .filter(FavoriteCounselor.user_id == user_id)
            .order_by(FavoriteCounselor.created_at.desc(), FavoriteCounselor.id.desc())
            .all()
        )

    @staticmethod
    def get_counselor_bookings(db: Session, counselor_id: int) -> list[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.client))
            .filter(Booking.counselor_id == counselor_id)
            .order_by(Booking.scheduled_at)
            .all()
        )


class SessionNoteRepository:
    """Repository for session note database operations"""

    @staticmethod
    def get_note(db: Session, note_id: int) -> Optional[SessionNote]:
        return (
            db.query(SessionNote)
            .options(joinedload(SessionNote.client))
            .filter(SessionNote.id == note_id)
            .first()
        )

    @staticmethod
    def get_by_booking(db: Session, booking_id: int) -> Optional[SessionNote]:
        return (
            db.query(SessionNote)
            .options(joinedload(SessionNote.client))
            .filter(SessionNote.booking_id == booking_id)
            .first()
        )

    @staticmethod
    def get_for_counselor(db: Session, counselor_id: int, client_id: Optional[int] = None) -> list[SessionNote]:
        """A counselor's notes, latest session first"""
        query = (
            db.query(SessionNote)
            .options(joinedload(SessionNote.client))
            .filter(SessionNote.counselor_id == counselor_id)
        )
        if client_id is not None:
            query = query.filter(SessionNote.client_id == client_id)
        return query.order_by(SessionNote.session_date.desc(), SessionNote.id.desc()).all()
