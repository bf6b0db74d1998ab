"""Review repository - Database operations for reviews"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Review


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_by_booking(db: Session, booking_id: int) -> Optional[Review]:
        return db.query(Review).filter(Review.booking_id == booking_id).first()

    @staticmethod
    def get_for_counselor(db: Session, counselor_id: int) -> list[Review]:
        return (
            db.query(Review)
            .options(joinedload(Review.user))
            .filter(Review.counselor_id == counselor_id)
            .order_by(Review.created_at.desc(), Review.id.desc())
            .all()
        )

    @staticmethod
    def get_rating_stats(db: Session, counselor_id: int) -> tuple[float, int]:
        """(mean rating, review count) for a counselor"""
        mean, count = (
            db.query(func.avg(Review.rating), func.count(Review.id))
            .filter(Review.counselor_id == counselor_id)
            .one()
        )
        return float(mean or 0.0), int(count or 0)
