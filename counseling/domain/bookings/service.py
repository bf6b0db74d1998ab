"""Booking service - Business logic for bookings and their lifecycle"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...config import SESSION_COMPLETION_GRACE_MINUTES
from ...constants import (
    REMINDER_LEAD_MINUTES,
    SERVICES,
    BookingEvent,
    BookingStatus,
    service_duration_minutes,
    service_price,
)
from ...errors import BookingNotFound, InvalidTransition, NotAParticipant, SlotUnavailable
from ...models import Booking, User
from ...shared.clock import utcnow
from .gate import resolve_transition
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)

# Longest session in the catalogue; bounds the overlap search window
MAX_SESSION_MINUTES = max(s["duration_minutes"] for s in SERVICES.values())


@dataclass
class TransitionResult:
    booking: Booking
    previous_status: str
    changed: bool


def booking_participants(booking: Booking) -> tuple[int, int]:
    """(client user id, counselor user id), read from the booking every time"""
    return booking.client_id, booking.counselor.user_id


def reminder_schedule(scheduled_at: datetime, now: datetime) -> dict[str, datetime]:
    """Reminder send times for a session, dropping any already in the past"""
    schedule = {}
    for reminder_type, lead_minutes in REMINDER_LEAD_MINUTES.items():
        send_at = scheduled_at - timedelta(minutes=lead_minutes)
        if send_at > now:
            schedule[reminder_type] = send_at
    return schedule


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()

    def get_booking(self, booking_id: int) -> Booking:
        booking = self.repo.get_booking(self.db, booking_id)
        if not booking:
            raise BookingNotFound()
        return booking

    def get_booking_for_participant(self, booking_id: int, user: User) -> Booking:
        booking = self.get_booking(booking_id)
        if user.id not in booking_participants(booking):
            raise NotAParticipant()
        return booking

    def list_bookings(self, user: User, status: Optional[str] = None) -> list[Booking]:
        counselor = self.repo.get_counselor_by_user_id(self.db, user.id)
        return self.repo.get_bookings_for_user(
            self.db, user.id, counselor.id if counselor else None, status
        )

    # ------------------------------------------------------------------
    # Availability
    # ------------------------------------------------------------------

    def is_slot_bookable(
        self,
        counselor_id: int,
        scheduled_at: datetime,
        service_type: str,
        now: Optional[datetime] = None,
    ) -> bool:
        """
        A slot is bookable when the counselor is active, the start lies in the
        future, the whole session fits inside one published available window
        on that date, and no pending/confirmed booking overlaps it.
        """
        counselor = self.repo.get_counselor(self.db, counselor_id)
        if not counselor or not counselor.is_active:
            return False

        now = now or utcnow()
        if scheduled_at <= now:
            return False

        session_end = scheduled_at + timedelta(minutes=service_duration_minutes(service_type))

        windows = self.repo.get_schedules_for_date(self.db, counselor_id, scheduled_at.date())
        fits_window = any(
            slot.is_available
            and datetime.combine(slot.date, slot.start_time) <= scheduled_at
            and session_end <= datetime.combine(slot.date, slot.end_time)
            for slot in windows
        )
        if not fits_window:
            return False

        nearby = self.repo.get_slot_holding_bookings(
            self.db,
            counselor_id,
            scheduled_at - timedelta(minutes=MAX_SESSION_MINUTES),
            session_end,
        )
        for other in nearby:
            other_end = other.scheduled_at + timedelta(
                minutes=service_duration_minutes(other.service_type)
            )
            if other.scheduled_at < session_end and scheduled_at < other_end:
                return False

        return True

    def create_booking(self, data: BookingCreate, user: User) -> Booking:
        """Create a pending booking against an open slot"""
        logger.info(f"📥 Booking request from user {user.id} for counselor {data.counselorId}")

        counselor = self.repo.get_counselor(self.db, data.counselorId)
        if not counselor or not counselor.is_active:
            raise HTTPException(status_code=404, detail="Counselor not found")
        if counselor.user_id == user.id:
            raise HTTPException(status_code=400, detail="Counselors cannot book themselves")
        if data.scheduledAt <= utcnow():
            raise HTTPException(status_code=400, detail="Scheduled time must be in the future")

        if not self.is_slot_bookable(data.counselorId, data.scheduledAt, data.serviceType):
            logger.warning(
                f"⚠️ Slot {data.scheduledAt.isoformat()} unavailable for counselor {data.counselorId}"
            )
            raise SlotUnavailable()

        booking = self.repo.create_booking(
            self.db,
            client_id=user.id,
            counselor_id=counselor.id,
            service_type=data.serviceType,
            scheduled_at=data.scheduledAt,
            amount=service_price(data.serviceType),
            notes=data.notes,
        )
        logger.info(f"✅ Booking {booking.id} created (pending)")
        return booking

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def transition(self, booking_id: int, event: str) -> TransitionResult:
        """
        Apply a lifecycle event through the Booking Gate.

        The status write is a guarded single-row UPDATE committed together with
        its follow-up rows (room flag, reminder jobs). If another writer moved
        the booking first, the event is re-evaluated against the new status.
        """
        booking = None
        for _ in range(len(BookingStatus.ALL)):
            booking = self.get_booking(booking_id)
            previous_status = booking.status
            target, changed = resolve_transition(previous_status, event)
            if not changed:
                logger.info(f"ℹ️ Booking {booking_id} already {target}; '{event}' is a no-op")
                return TransitionResult(booking, previous_status, False)

            try:
                if not self.repo.guarded_status_update(self.db, booking_id, previous_status, target):
                    self.db.rollback()
                    logger.info(f"🔄 Booking {booking_id} changed concurrently, re-evaluating '{event}'")
                    continue

                self.repo.sync_room_snapshot(self.db, booking_id, target == BookingStatus.CONFIRMED)
                if target == BookingStatus.CONFIRMED:
                    self.repo.add_reminder_jobs(
                        self.db, booking_id, reminder_schedule(booking.scheduled_at, utcnow())
                    )
                else:
                    self.repo.fail_pending_reminders(self.db, booking_id, f"booking {target}")
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.error(f"❌ Failed to move booking {booking_id} {previous_status} → {target}: {e}")
                raise

            self.db.refresh(booking)
            logger.info(f"✅ Booking {booking_id} transitioned: {previous_status} → {target}")
            return TransitionResult(booking, previous_status, True)

        raise InvalidTransition(booking.status, event)

    def cancel_booking(self, booking_id: int, user: User) -> TransitionResult:
        self.get_booking_for_participant(booking_id, user)
        return self.transition(booking_id, BookingEvent.CANCEL)

    def complete_booking(self, booking_id: int, user: User) -> TransitionResult:
        booking = self.get_booking_for_participant(booking_id, user)
        if booking.counselor.user_id != user.id:
            raise HTTPException(status_code=403, detail="Only the counselor can complete a session")
        return self.transition(booking_id, BookingEvent.COMPLETE)

    def complete_past_sessions(
        self, now: Optional[datetime] = None, grace_minutes: int = SESSION_COMPLETION_GRACE_MINUTES
    ) -> dict:
        """
        Complete confirmed bookings whose session window closed more than
        grace_minutes ago. Run periodically by the worker.
        """
        now = now or utcnow()
        grace = timedelta(minutes=grace_minutes)
        summary = {"checked": 0, "completed": 0, "skipped": 0, "completed_ids": []}

        for booking in self.repo.get_confirmed_bookings_before(self.db, now - grace):
            summary["checked"] += 1
            session_end = booking.scheduled_at + timedelta(
                minutes=service_duration_minutes(booking.service_type)
            )
            if session_end + grace > now:
                continue
            try:
                result = self.transition(booking.id, BookingEvent.COMPLETE)
            except InvalidTransition as e:
                # Cancelled between the query and the update
                summary["skipped"] += 1
                logger.info(f"ℹ️ Skipped auto-completion of booking {booking.id}: {e}")
                continue
            if result.changed:
                summary["completed"] += 1
                summary["completed_ids"].append(booking.id)

        if summary["completed"]:
            logger.info(f"📊 Session completion summary: {summary}")
        return summary
