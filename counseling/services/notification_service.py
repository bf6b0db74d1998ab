"""
Booking Notification Service
Emails both parties about booking lifecycle events.

Notices are plain dicts built while the request's session is still open, so
background tasks never touch ORM objects after the session is closed.
Sending is best-effort: failures are logged and reported, never raised.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Request

from ..config import (
    BANK_ACCOUNT_HOLDER,
    BANK_ACCOUNT_NUMBER,
    BANK_ACCOUNT_TYPE,
    BANK_BRANCH_NAME,
    BANK_NAME,
    BANK_TRANSFER_DEADLINE_DAYS,
)
from ..constants import BookingStatus, service_name
from ..email_service import Mailer
from ..shared.clock import utcnow

logger = logging.getLogger(__name__)


def format_datetime(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def build_booking_notice(booking) -> dict:
    """Snapshot of the booking fields emails need"""
    counselor_user = booking.counselor.user
    return {
        "booking_id": booking.id,
        "status": booking.status,
        "service_type": booking.service_type,
        "service_name": service_name(booking.service_type),
        "scheduled_at_display": format_datetime(booking.scheduled_at),
        "amount": booking.amount,
        "client_name": booking.client.name or booking.client.email,
        "client_email": booking.client.email,
        "counselor_name": counselor_user.name or counselor_user.email,
        "counselor_email": counselor_user.email,
    }


def bank_details() -> dict:
    return {
        "bank_name": BANK_NAME,
        "branch_name": BANK_BRANCH_NAME,
        "account_type": BANK_ACCOUNT_TYPE,
        "account_number": BANK_ACCOUNT_NUMBER,
        "account_holder": BANK_ACCOUNT_HOLDER,
    }


async def _send_to_parties(notice: dict, notification_type: str, send) -> dict:
    """Call send(email, name) for the client and the counselor"""
    result = {"sent": [], "errors": {}}
    recipients = (
        (notice["client_email"], notice["client_name"]),
        (notice["counselor_email"], notice["counselor_name"]),
    )
    for email, name in recipients:
        if not email:
            logger.debug(f"⚠️ No email address for {notification_type} notification to {name}")
            continue
        try:
            await send(email, name)
            result["sent"].append(email)
            logger.info(f"✅ {notification_type} email sent to {email}")
        except Exception as e:
            result["errors"][email] = str(e)
            logger.error(f"❌ Failed to send {notification_type} email to {email}: {e}")
    return result


async def notify_booking_confirmed(mailer: Mailer, notice: dict) -> dict:
    async def send(email, name):
        await mailer.send_booking_confirmed(email, name, notice)

    return await _send_to_parties(notice, "booking confirmed", send)


async def notify_booking_cancelled(mailer: Mailer, notice: dict) -> dict:
    async def send(email, name):
        await mailer.send_booking_cancelled(email, name, notice)

    return await _send_to_parties(notice, "booking cancelled", send)


async def notify_bank_transfer_instructions(
    mailer: Mailer, notice: dict, now: Optional[datetime] = None
) -> bool:
    """Send transfer instructions to the client only"""
    deadline = (now or utcnow()) + timedelta(days=BANK_TRANSFER_DEADLINE_DAYS)
    try:
        await mailer.send_bank_transfer_instructions(
            notice["client_email"], notice, bank_details(), deadline.strftime("%Y-%m-%d")
        )
        logger.info(f"✅ Bank transfer instructions sent for booking {notice['booking_id']}")
        return True
    except Exception as e:
        logger.error(
            f"❌ Failed to send bank transfer instructions for booking {notice['booking_id']}: {e}"
        )
        return False


async def notify_transition(mailer: Mailer, notice: dict) -> Optional[dict]:
    """Email the parties about the status a booking just reached"""
    if notice["status"] == BookingStatus.CONFIRMED:
        return await notify_booking_confirmed(mailer, notice)
    if notice["status"] == BookingStatus.CANCELLED:
        return await notify_booking_cancelled(mailer, notice)
    return None


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer
