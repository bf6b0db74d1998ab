"""Booking router - API endpoints for bookings"""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...constants import ServiceType
from ...database import get_db
from ...email_service import Mailer
from ...models import Booking, User
from ...services.notification_service import build_booking_notice, get_mailer, notify_transition
from ...shared.clock import to_naive_utc
from .schemas import (
    AvailabilityResponse,
    BookingCreate,
    BookingResponse,
    PartyResponse,
    TransitionResponse,
)
from .service import BookingService, TransitionResult

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bookings", tags=["Bookings"])


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency to get booking service"""
    return BookingService(db)


def to_booking_response(booking: Booking) -> BookingResponse:
    counselor_user = booking.counselor.user if booking.counselor else None
    return BookingResponse(
        id=booking.id,
        clientId=booking.client_id,
        counselorId=booking.counselor_id,
        counselorUserId=booking.counselor.user_id if booking.counselor else None,
        serviceType=booking.service_type,
        scheduledAt=booking.scheduled_at,
        status=booking.status,
        amount=booking.amount,
        notes=booking.notes,
        client=PartyResponse(id=booking.client.id, name=booking.client.name, email=booking.client.email)
        if booking.client
        else None,
        counselor=PartyResponse(id=booking.counselor_id, name=counselor_user.name, email=counselor_user.email)
        if counselor_user
        else None,
        createdAt=booking.created_at,
        updatedAt=booking.updated_at,
    )


def transition_response(
    result: TransitionResult, background_tasks: BackgroundTasks, mailer: Mailer
) -> TransitionResponse:
    """Shape a transition result and queue its emails when the status really changed"""
    if result.changed:
        background_tasks.add_task(notify_transition, mailer, build_booking_notice(result.booking))
    return TransitionResponse(
        booking=to_booking_response(result.booking),
        previousStatus=result.previous_status,
        changed=result.changed,
    )


@router.post("", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Book a session with a counselor (starts pending until payment)"""
    booking = service.create_booking(data, current_user)
    return to_booking_response(service.get_booking(booking.id))


@router.get("", response_model=list[BookingResponse])
async def list_bookings(
    status: Optional[str] = Query(None, description="Filter by booking status"),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Bookings the user made, and as a counselor, bookings made with them"""
    return [to_booking_response(b) for b in service.list_bookings(current_user, status)]


@router.get("/availability", response_model=AvailabilityResponse)
async def check_availability(
    counselorId: int,
    scheduledAt: datetime,
    serviceType: str = Query(ServiceType.SINGLE),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    scheduled_at = to_naive_utc(scheduledAt)
    bookable = serviceType in ServiceType.ALL and service.is_slot_bookable(
        counselorId, scheduled_at, serviceType
    )
    return AvailabilityResponse(
        counselorId=counselorId,
        scheduledAt=scheduled_at,
        serviceType=serviceType,
        bookable=bookable,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    return to_booking_response(service.get_booking_for_participant(booking_id, current_user))


@router.post("/{booking_id}/cancel", response_model=TransitionResponse)
async def cancel_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
    mailer: Mailer = Depends(get_mailer),
):
    """Cancel a pending or confirmed booking (either participant)"""
    result = service.cancel_booking(booking_id, current_user)
    return transition_response(result, background_tasks, mailer)


@router.post("/{booking_id}/complete", response_model=TransitionResponse)
async def complete_booking(
    booking_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
    mailer: Mailer = Depends(get_mailer),
):
    """Mark a confirmed session as completed (counselor only)"""
    result = service.complete_booking(booking_id, current_user)
    return transition_response(result, background_tasks, mailer)
