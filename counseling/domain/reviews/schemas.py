"""Review domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ReviewCreate(BaseModel):
    bookingId: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewResponse(BaseModel):
    id: int
    bookingId: int
    counselorId: int
    userId: int
    userName: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    createdAt: datetime


class CounselorReviewsResponse(BaseModel):
    counselorId: int
    rating: float
    reviewCount: int
    reviews: list[ReviewResponse]
