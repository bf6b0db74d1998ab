"""Review service - Business logic for counselor reviews"""

import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...constants import BookingStatus
from ...models import Counselor, Review, User
from ..bookings.repository import BookingRepository
from ..bookings.service import BookingService
from .repository import ReviewRepository
from .schemas import ReviewCreate

logger = logging.getLogger(__name__)


class ReviewService:
    """Service layer for review business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReviewRepository()
        self.bookings = BookingService(db)

    def create_review(self, data: ReviewCreate, user: User) -> Review:
        """One review per completed booking, written by its client"""
        booking = self.bookings.get_booking_for_participant(data.bookingId, user)
        if booking.client_id != user.id:
            raise HTTPException(status_code=403, detail="Only the client can review a session")
        if booking.status != BookingStatus.COMPLETED:
            raise HTTPException(status_code=400, detail="Only completed sessions can be reviewed")
        if self.repo.get_by_booking(self.db, booking.id):
            raise HTTPException(status_code=409, detail="This session has already been reviewed")

        review = Review(
            user_id=user.id,
            counselor_id=booking.counselor_id,
            booking_id=booking.id,
            rating=data.rating,
            comment=data.comment,
        )
        self.db.add(review)
        try:
            self.db.flush()
            self._refresh_counselor_rating(booking.counselor)
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"⚠️ Duplicate review for booking {booking.id}")
            raise HTTPException(status_code=409, detail="This session has already been reviewed") from e

        self.db.refresh(review)
        logger.info(f"✅ Review {review.id} added for counselor {booking.counselor_id} ({data.rating}★)")
        return review

    def _refresh_counselor_rating(self, counselor: Counselor) -> None:
        rating, count = self.repo.get_rating_stats(self.db, counselor.id)
        counselor.rating = round(rating, 2)
        counselor.review_count = count

    def get_counselor_reviews(self, counselor_id: int) -> tuple[Counselor, list[Review]]:
        counselor = BookingRepository.get_counselor(self.db, counselor_id)
        if not counselor:
            raise HTTPException(status_code=404, detail="Counselor not found")
        return counselor, self.repo.get_for_counselor(self.db, counselor_id)
