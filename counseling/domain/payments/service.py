"""Payment service - records payments and confirms bookings through the Booking Gate"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...constants import BookingEvent, BookingStatus, PaymentMethod, PaymentStatus
from ...models import Booking, Payment, User
from ..bookings.repository import BookingRepository
from ..bookings.service import BookingService, TransitionResult
from .repository import PaymentRepository
from .schemas import PaymentCreate, PaymentWebhookEvent

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED_EVENTS = ("PAYMENT.CAPTURE.COMPLETED", "payment.capture.completed")


@dataclass
class PaymentOutcome:
    payment: Payment
    booking: Booking
    transition: Optional[TransitionResult] = None


class PaymentService:
    """Service layer for payment business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = PaymentRepository()
        self.bookings = BookingService(db)

    def _confirm(self, booking_id: int) -> TransitionResult:
        return self.bookings.transition(booking_id, BookingEvent.CONFIRM_PAYMENT)

    def create_payment(self, data: PaymentCreate, user: User) -> PaymentOutcome:
        """
        Record the client's chosen payment for a pending booking.
        Free bookings are confirmed straight away.
        """
        booking = self.bookings.get_booking_for_participant(data.bookingId, user)
        if booking.client_id != user.id:
            raise HTTPException(status_code=403, detail="Only the client can pay for a booking")
        if booking.status != BookingStatus.PENDING:
            raise HTTPException(status_code=409, detail=f"Booking is already {booking.status}")
        if data.amount != booking.amount:
            raise HTTPException(
                status_code=400,
                detail=f"Amount {data.amount} does not match the booking amount {booking.amount}",
            )

        existing = self.repo.get_pending_payment(self.db, booking.id, data.method)
        if existing:
            logger.info(f"ℹ️ Reusing pending {data.method} payment {existing.id} for booking {booking.id}")
            return PaymentOutcome(existing, booking)

        payment = self.repo.create_payment(
            self.db,
            booking_id=booking.id,
            amount=booking.amount,
            method=data.method,
            status=PaymentStatus.PENDING,
        )
        if booking.amount == 0:
            self.repo.mark_completed(payment)
        self.db.commit()
        self.db.refresh(payment)
        logger.info(f"✅ Payment {payment.id} recorded for booking {booking.id} ({data.method})")

        transition = self._confirm(booking.id) if payment.status == PaymentStatus.COMPLETED else None
        return PaymentOutcome(payment, booking, transition)

    def record_capture(self, event: PaymentWebhookEvent) -> PaymentOutcome:
        """
        Apply a gateway capture notification. Deliveries may repeat; a
        transaction id already recorded confirms nothing new.
        """
        booking = self.bookings.get_booking(event.bookingId)

        payment = self.repo.get_by_transaction_id(self.db, event.transactionId)
        if payment is None:
            if event.amount != booking.amount:
                logger.error(
                    f"❌ Captured amount {event.amount} does not match booking {booking.id} amount {booking.amount}"
                )
                raise HTTPException(status_code=400, detail="Captured amount does not match booking")

            payment = self.repo.get_pending_payment(self.db, booking.id, PaymentMethod.PAYPAL)
            if payment is None:
                payment = self.repo.create_payment(
                    self.db,
                    booking_id=booking.id,
                    amount=event.amount,
                    method=PaymentMethod.PAYPAL,
                    status=PaymentStatus.PENDING,
                )
            self.repo.mark_completed(payment, event.transactionId)
            try:
                self.db.commit()
            except IntegrityError:
                # Concurrent delivery of the same capture
                self.db.rollback()
                payment = self.repo.get_by_transaction_id(self.db, event.transactionId)
                if payment is None:
                    raise
            self.db.refresh(payment)
            logger.info(f"✅ Capture {event.transactionId} recorded as payment {payment.id}")
        elif payment.booking_id != booking.id:
            logger.error(f"❌ Transaction {event.transactionId} belongs to booking {payment.booking_id}")
            raise HTTPException(status_code=409, detail="Transaction belongs to another booking")
        else:
            logger.info(f"🔁 Capture {event.transactionId} already recorded")

        return PaymentOutcome(payment, booking, self._confirm(booking.id))

    def confirm_bank_transfer(self, payment_id: int, user: User) -> PaymentOutcome:
        """Counselor confirms a bank transfer arrived"""
        payment = self.repo.get_payment(self.db, payment_id)
        if not payment:
            raise HTTPException(status_code=404, detail="Payment not found")
        if payment.method != PaymentMethod.BANK_TRANSFER:
            raise HTTPException(status_code=400, detail="Only bank transfers are confirmed manually")

        booking = self.bookings.get_booking(payment.booking_id)
        if booking.counselor.user_id != user.id:
            raise HTTPException(status_code=403, detail="Only the counselor can confirm a bank transfer")

        if payment.status != PaymentStatus.COMPLETED:
            self.repo.mark_completed(payment)
            self.db.commit()
            self.db.refresh(payment)
            logger.info(f"✅ Bank transfer {payment.id} confirmed by counselor {user.id}")

        return PaymentOutcome(payment, booking, self._confirm(booking.id))

    def list_payments(self, user: User) -> list[Payment]:
        counselor = BookingRepository.get_counselor_by_user_id(self.db, user.id)
        return self.repo.get_payments_for_user(self.db, user.id, counselor.id if counselor else None)
