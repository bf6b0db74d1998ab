"""Schedule router - API endpoints for counselor availability"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import CounselorSchedule, User
from .schemas import SlotCreate, SlotResponse
from .service import ScheduleService

router = APIRouter(prefix="/schedules", tags=["Schedules"])


def get_schedule_service(db: Session = Depends(get_db)) -> ScheduleService:
    return ScheduleService(db)


def to_slot_response(slot: CounselorSchedule) -> SlotResponse:
    return SlotResponse(
        id=slot.id,
        counselorId=slot.counselor_id,
        date=slot.date,
        startTime=slot.start_time,
        endTime=slot.end_time,
        isAvailable=slot.is_available,
        createdAt=slot.created_at,
    )


@router.post("", response_model=SlotResponse, status_code=201)
async def create_slot(
    data: SlotCreate,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    """Publish an availability window (times are UTC)"""
    return to_slot_response(service.create_slot(data, current_user))


@router.get("/counselors/{counselor_id}", response_model=list[SlotResponse])
async def list_slots(
    counselor_id: int,
    date_from: Optional[date] = Query(None, alias="from"),
    date_to: Optional[date] = Query(None, alias="to"),
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    return [to_slot_response(s) for s in service.list_slots(counselor_id, date_from, date_to)]


@router.delete("/{slot_id}", status_code=204)
async def delete_slot(
    slot_id: int,
    current_user: User = Depends(get_current_user),
    service: ScheduleService = Depends(get_schedule_service),
):
    service.delete_slot(slot_id, current_user)
