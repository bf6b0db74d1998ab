"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ...constants import ServiceType
from ...shared.clock import to_naive_utc


class BookingCreate(BaseModel):
    """Schema for a client booking request"""

    counselorId: int
    serviceType: str
    scheduledAt: datetime
    notes: Optional[str] = Field(None, max_length=2000)

    @field_validator("serviceType")
    @classmethod
    def validate_service_type(cls, v):
        if v not in ServiceType.ALL:
            raise ValueError(f"serviceType must be one of: {', '.join(ServiceType.ALL)}")
        return v

    @field_validator("scheduledAt")
    @classmethod
    def normalize_scheduled_at(cls, v):
        return to_naive_utc(v)


class PartyResponse(BaseModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class BookingResponse(BaseModel):
    """Schema for booking response"""

    model_config = ConfigDict(from_attributes=True)

    id: int
    clientId: int
    counselorId: int
    counselorUserId: Optional[int] = None
    serviceType: str
    scheduledAt: datetime
    status: str
    amount: int
    notes: Optional[str] = None
    client: Optional[PartyResponse] = None
    counselor: Optional[PartyResponse] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class TransitionResponse(BaseModel):
    booking: BookingResponse
    previousStatus: str
    changed: bool


class AvailabilityResponse(BaseModel):
    counselorId: int
    scheduledAt: datetime
    serviceType: str
    bookable: bool
