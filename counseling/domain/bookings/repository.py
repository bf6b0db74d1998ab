"""Booking repository - Database operations for bookings"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.orm import Session, joinedload

from ...constants import BookingStatus, ReminderStatus
from ...models import Booking, ChatRoom, Counselor, CounselorSchedule, ReminderJob
from ...shared.clock import utcnow


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def get_booking(db: Session, booking_id: int) -> Optional[Booking]:
        """Get a booking with both parties loaded"""
        return (
            db.query(Booking)
            .options(joinedload(Booking.client), joinedload(Booking.counselor).joinedload(Counselor.user))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_counselor(db: Session, counselor_id: int) -> Optional[Counselor]:
        return db.query(Counselor).filter(Counselor.id == counselor_id).first()

    @staticmethod
    def get_counselor_by_user_id(db: Session, user_id: int) -> Optional[Counselor]:
        return db.query(Counselor).filter(Counselor.user_id == user_id).first()

    @staticmethod
    def get_bookings_for_user(
        db: Session,
        user_id: int,
        counselor_id: Optional[int] = None,
        status: Optional[str] = None,
    ) -> list[Booking]:
        """Bookings the user made, plus those made with them when they are a counselor"""
        query = db.query(Booking).options(
            joinedload(Booking.client), joinedload(Booking.counselor).joinedload(Counselor.user)
        )
        if counselor_id is not None:
            query = query.filter((Booking.client_id == user_id) | (Booking.counselor_id == counselor_id))
        else:
            query = query.filter(Booking.client_id == user_id)

        if status and status != "all":
            query = query.filter(Booking.status == status)

        return query.order_by(Booking.scheduled_at.desc()).all()

    @staticmethod
    def create_booking(db: Session, **booking_data) -> Booking:
        booking = Booking(status=BookingStatus.PENDING, **booking_data)
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def get_slot_holding_bookings(
        db: Session, counselor_id: int, window_start: datetime, window_end: datetime
    ) -> list[Booking]:
        """Pending/confirmed bookings of a counselor starting inside [window_start, window_end)"""
        return (
            db.query(Booking)
            .filter(
                Booking.counselor_id == counselor_id,
                Booking.status.in_(BookingStatus.HOLDS_SLOT),
                Booking.scheduled_at >= window_start,
                Booking.scheduled_at < window_end,
            )
            .all()
        )

    @staticmethod
    def get_schedules_for_date(db: Session, counselor_id: int, day: date) -> list[CounselorSchedule]:
        return (
            db.query(CounselorSchedule)
            .filter(CounselorSchedule.counselor_id == counselor_id, CounselorSchedule.date == day)
            .order_by(CounselorSchedule.start_time.asc())
            .all()
        )

    @staticmethod
    def guarded_status_update(db: Session, booking_id: int, expected_status: str, new_status: str) -> bool:
        """
        Move a booking from expected_status to new_status in one statement.
        Returns False when the row was not in expected_status any more.
        Does not commit.
        """
        result = db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == expected_status)
            .values(status=new_status, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def sync_room_snapshot(db: Session, booking_id: int, is_active: bool) -> None:
        """Keep the stored room flag in step with the booking. Does not commit."""
        db.execute(
            update(ChatRoom)
            .where(ChatRoom.booking_id == booking_id)
            .values(is_active=is_active, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )

    @staticmethod
    def add_reminder_jobs(db: Session, booking_id: int, schedule: dict[str, datetime]) -> None:
        """Queue reminder jobs. Does not commit."""
        for reminder_type, scheduled_at in schedule.items():
            db.add(
                ReminderJob(
                    booking_id=booking_id,
                    reminder_type=reminder_type,
                    scheduled_at=scheduled_at,
                    status=ReminderStatus.PENDING,
                )
            )

    @staticmethod
    def fail_pending_reminders(db: Session, booking_id: int, reason: str) -> int:
        """Mark pending reminders of a booking failed. Does not commit."""
        result = db.execute(
            update(ReminderJob)
            .where(ReminderJob.booking_id == booking_id, ReminderJob.status == ReminderStatus.PENDING)
            .values(status=ReminderStatus.FAILED, error_message=reason, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    @staticmethod
    def get_confirmed_bookings_before(db: Session, cutoff: datetime) -> list[Booking]:
        """Confirmed bookings scheduled before cutoff (candidates for completion)"""
        return (
            db.query(Booking)
            .filter(Booking.status == BookingStatus.CONFIRMED, Booking.scheduled_at <= cutoff)
            .order_by(Booking.scheduled_at.asc())
            .all()
        )
