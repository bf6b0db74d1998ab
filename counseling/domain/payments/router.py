"""Payment router - API endpoints for payments and the gateway webhook"""

import json
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ... import config
from ...auth import get_current_user
from ...constants import PaymentMethod
from ...database import get_db
from ...email_service import Mailer
from ...errors import InvalidTransition
from ...models import Payment, User
from ...services.notification_service import (
    build_booking_notice,
    get_mailer,
    notify_bank_transfer_instructions,
)
from ...webhook_security import verify_payment_webhook
from ..bookings.router import transition_response
from .schemas import PaymentCreate, PaymentResponse, PaymentResult, PaymentWebhookEvent, WebhookAck
from .service import CAPTURE_COMPLETED_EVENTS, PaymentOutcome, PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_payment_service(db: Session = Depends(get_db)) -> PaymentService:
    """Dependency to get payment service"""
    return PaymentService(db)


def to_payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        id=payment.id,
        bookingId=payment.booking_id,
        amount=payment.amount,
        method=payment.method,
        status=payment.status,
        transactionId=payment.transaction_id,
        createdAt=payment.created_at,
        updatedAt=payment.updated_at,
    )


def to_payment_result(outcome: PaymentOutcome, background_tasks: BackgroundTasks, mailer: Mailer) -> PaymentResult:
    return PaymentResult(
        payment=to_payment_response(outcome.payment),
        transition=transition_response(outcome.transition, background_tasks, mailer)
        if outcome.transition
        else None,
    )


@router.post("", response_model=PaymentResult, status_code=201)
async def create_payment(
    data: PaymentCreate,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
    mailer: Mailer = Depends(get_mailer),
):
    """Record a PayPal or bank transfer payment for a pending booking"""
    outcome = service.create_payment(data, current_user)
    if data.method == PaymentMethod.BANK_TRANSFER and outcome.transition is None:
        background_tasks.add_task(
            notify_bank_transfer_instructions, mailer, build_booking_notice(outcome.booking)
        )
    return to_payment_result(outcome, background_tasks, mailer)


@router.get("", response_model=list[PaymentResponse])
async def list_payments(
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return [to_payment_response(p) for p in service.list_payments(current_user)]


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    service: PaymentService = Depends(get_payment_service),
    mailer: Mailer = Depends(get_mailer),
):
    """Capture notifications from the payment gateway (HMAC signed)"""
    raw_body = await verify_payment_webhook(request, config.PAYMENT_WEBHOOK_SECRET)

    try:
        event = PaymentWebhookEvent.model_validate(json.loads(raw_body))
    except (ValueError, ValidationError) as e:
        logger.error(f"❌ Malformed payment webhook payload: {e}")
        raise HTTPException(status_code=400, detail="Malformed webhook payload") from e

    if event.event not in CAPTURE_COMPLETED_EVENTS:
        logger.info(f"ℹ️ Ignoring payment webhook event {event.event}")
        return WebhookAck(applied=False)

    try:
        outcome = service.record_capture(event)
    except InvalidTransition as e:
        # Money was captured for a booking that can no longer be confirmed
        logger.error(f"❌ Capture {event.transactionId} for booking {event.bookingId} not applied: {e.message}")
        return WebhookAck(applied=False, bookingStatus=e.current_status)

    transition_response(outcome.transition, background_tasks, mailer)
    return WebhookAck(applied=outcome.transition.changed, bookingStatus=outcome.transition.booking.status)


@router.post("/{payment_id}/confirm-bank-transfer", response_model=PaymentResult)
async def confirm_bank_transfer(
    payment_id: int,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
    mailer: Mailer = Depends(get_mailer),
):
    """Counselor marks a bank transfer as received, confirming the booking"""
    outcome = service.confirm_bank_transfer(payment_id, current_user)
    return to_payment_result(outcome, background_tasks, mailer)
