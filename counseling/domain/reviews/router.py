"""Review router - API endpoints for counselor reviews"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import Review, User
from .schemas import CounselorReviewsResponse, ReviewCreate, ReviewResponse
from .service import ReviewService

router = APIRouter(prefix="/reviews", tags=["Reviews"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Dependency to get review service"""
    return ReviewService(db)


def to_review_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        bookingId=review.booking_id,
        counselorId=review.counselor_id,
        userId=review.user_id,
        userName=review.user.name if review.user else None,
        rating=review.rating,
        comment=review.comment,
        createdAt=review.created_at,
    )


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return to_review_response(service.create_review(data, current_user))


@router.get("/counselors/{counselor_id}", response_model=CounselorReviewsResponse)
async def get_counselor_reviews(
    counselor_id: int,
    service: ReviewService = Depends(get_review_service),
):
    """Public list of a counselor's reviews, newest first"""
    counselor, reviews = service.get_counselor_reviews(counselor_id)
    return CounselorReviewsResponse(
        counselorId=counselor.id,
        rating=counselor.rating,
        reviewCount=counselor.review_count,
        reviews=[to_review_response(r) for r in reviews],
    )
