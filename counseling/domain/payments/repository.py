"""Payment repository - Database operations for payments"""

from typing import Optional

from sqlalchemy.orm import Session

from ...constants import PaymentStatus
from ...models import Booking, Payment
from ...shared.clock import utcnow


class PaymentRepository:
    """Repository for payment database operations"""

    @staticmethod
    def get_payment(db: Session, payment_id: int) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.id == payment_id).first()

    @staticmethod
    def get_by_transaction_id(db: Session, transaction_id: str) -> Optional[Payment]:
        return db.query(Payment).filter(Payment.transaction_id == transaction_id).first()

    @staticmethod
    def get_pending_payment(db: Session, booking_id: int, method: Optional[str] = None) -> Optional[Payment]:
        query = db.query(Payment).filter(
            Payment.booking_id == booking_id, Payment.status == PaymentStatus.PENDING
        )
        if method:
            query = query.filter(Payment.method == method)
        return query.order_by(Payment.created_at.desc()).first()

    @staticmethod
    def create_payment(db: Session, **payment_data) -> Payment:
        """Add a payment row. Does not commit."""
        payment = Payment(**payment_data)
        db.add(payment)
        return payment

    @staticmethod
    def mark_completed(payment: Payment, transaction_id: Optional[str] = None) -> None:
        """Does not commit."""
        payment.status = PaymentStatus.COMPLETED
        if transaction_id:
            payment.transaction_id = transaction_id
        payment.updated_at = utcnow()

    @staticmethod
    def get_payments_for_user(db: Session, user_id: int, counselor_id: Optional[int] = None) -> list[Payment]:
        query = db.query(Payment).join(Booking, Payment.booking_id == Booking.id)
        if counselor_id is not None:
            query = query.filter((Booking.client_id == user_id) | (Booking.counselor_id == counselor_id))
        else:
            query = query.filter(Booking.client_id == user_id)
        return query.order_by(Payment.created_at.desc()).all()
