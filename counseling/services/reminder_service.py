"""
Session reminder delivery.

Reminder jobs are queued when a booking is confirmed (24h and 1h before the
session) and sent here by the worker's cron. A job whose booking has since
left the confirmed state is failed instead of sent.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ..constants import BookingStatus, ReminderStatus
from ..email_service import Mailer
from ..models import Booking, Counselor, ReminderJob
from ..shared.clock import utcnow
from .notification_service import build_booking_notice

logger = logging.getLogger(__name__)

# Finished jobs are kept this long for inspection
REMINDER_RETENTION_DAYS = 3


def get_due_reminders(db: Session, now: datetime) -> list[ReminderJob]:
    return (
        db.query(ReminderJob)
        .options(
            joinedload(ReminderJob.booking).joinedload(Booking.client),
            joinedload(ReminderJob.booking).joinedload(Booking.counselor).joinedload(Counselor.user),
        )
        .filter(ReminderJob.status == ReminderStatus.PENDING, ReminderJob.scheduled_at <= now)
        .order_by(ReminderJob.scheduled_at.asc())
        .all()
    )


def purge_finished_reminders(db: Session, now: datetime) -> int:
    cutoff = now - timedelta(days=REMINDER_RETENTION_DAYS)
    deleted = (
        db.query(ReminderJob)
        .filter(ReminderJob.status != ReminderStatus.PENDING, ReminderJob.updated_at < cutoff)
        .delete(synchronize_session=False)
    )
    db.commit()
    return deleted


async def send_due_reminders(db: Session, mailer: Mailer, now: Optional[datetime] = None) -> dict:
    """Send every pending reminder that is due; returns a summary"""
    now = now or utcnow()
    summary = {"due": 0, "sent": 0, "failed": 0, "skipped": 0, "purged": 0}

    for job in get_due_reminders(db, now):
        summary["due"] += 1
        booking = job.booking

        if booking.status != BookingStatus.CONFIRMED:
            job.status = ReminderStatus.FAILED
            job.error_message = f"booking {booking.status}"
            job.updated_at = utcnow()
            db.commit()
            summary["skipped"] += 1
            logger.info(f"ℹ️ Reminder {job.id} skipped, booking {booking.id} is {booking.status}")
            continue

        notice = build_booking_notice(booking)
        errors = []
        recipients = (
            (notice["client_email"], notice["client_name"]),
            (notice["counselor_email"], notice["counselor_name"]),
        )
        for email, name in recipients:
            try:
                await mailer.send_session_reminder(email, name, notice, job.reminder_type)
            except Exception as e:
                errors.append(f"{email}: {e}")
                logger.error(f"❌ Failed to send {job.reminder_type} reminder {job.id} to {email}: {e}")

        if len(errors) == len(recipients):
            job.status = ReminderStatus.FAILED
            job.error_message = "; ".join(errors)[:1000]
            summary["failed"] += 1
        else:
            job.status = ReminderStatus.SENT
            job.sent_at = utcnow()
            job.error_message = "; ".join(errors)[:1000] if errors else None
            summary["sent"] += 1
            logger.info(f"✅ {job.reminder_type} reminder sent for booking {booking.id}")
        job.updated_at = utcnow()
        db.commit()

    summary["purged"] = purge_finished_reminders(db, now)
    if summary["due"] or summary["purged"]:
        logger.info(f"📊 Reminder run summary: {summary}")
    return summary
