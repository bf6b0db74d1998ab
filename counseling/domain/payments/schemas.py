"""Payment domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ...constants import PaymentMethod
from ..bookings.schemas import TransitionResponse


class PaymentCreate(BaseModel):
    """Schema for a client recording how they pay for a booking"""

    bookingId: int
    method: str
    amount: int = Field(..., ge=0)

    @field_validator("method")
    @classmethod
    def validate_method(cls, v):
        if v not in PaymentMethod.ALL:
            raise ValueError(f"method must be one of: {', '.join(PaymentMethod.ALL)}")
        return v


class PaymentResponse(BaseModel):
    id: int
    bookingId: int
    amount: int
    method: str
    status: str
    transactionId: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime


class PaymentResult(BaseModel):
    payment: PaymentResponse
    # Present when recording the payment moved the booking
    transition: Optional[TransitionResponse] = None


class PaymentWebhookEvent(BaseModel):
    """Capture notification forwarded by the payment gateway"""

    event: str
    bookingId: int
    transactionId: str = Field(..., min_length=1, max_length=255)
    amount: int = Field(..., ge=0)


class WebhookAck(BaseModel):
    received: bool = True
    applied: bool
    bookingStatus: Optional[str] = None
