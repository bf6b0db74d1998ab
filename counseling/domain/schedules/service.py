"""Schedule service - counselors publish the windows clients can book"""

import logging
from datetime import date
from typing import Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Counselor, CounselorSchedule, User
from ..bookings.repository import BookingRepository
from .repository import ScheduleRepository
from .schemas import SlotCreate

logger = logging.getLogger(__name__)


class ScheduleService:
    def __init__(self, db: Session):
        self.db = db
        self.repo = ScheduleRepository()

    def _require_counselor(self, user: User) -> Counselor:
        counselor = BookingRepository.get_counselor_by_user_id(self.db, user.id)
        if not counselor:
            raise HTTPException(status_code=403, detail="Only counselors can manage availability")
        return counselor

    def create_slot(self, data: SlotCreate, user: User) -> CounselorSchedule:
        counselor = self._require_counselor(user)
        if self.repo.get_overlapping(self.db, counselor.id, data.date, data.startTime, data.endTime):
            raise HTTPException(status_code=409, detail="Slot overlaps an existing slot")

        slot = self.repo.create_slot(
            self.db,
            counselor_id=counselor.id,
            date=data.date,
            start_time=data.startTime,
            end_time=data.endTime,
            is_available=data.isAvailable,
        )
        logger.info(f"✅ Counselor {counselor.id} published slot {slot.id} on {slot.date}")
        return slot

    def list_slots(
        self, counselor_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> list[CounselorSchedule]:
        if not BookingRepository.get_counselor(self.db, counselor_id):
            raise HTTPException(status_code=404, detail="Counselor not found")
        return self.repo.get_slots(self.db, counselor_id, date_from, date_to)

    def delete_slot(self, slot_id: int, user: User) -> None:
        counselor = self._require_counselor(user)
        slot = self.repo.get_slot(self.db, slot_id)
        if not slot:
            raise HTTPException(status_code=404, detail="Slot not found")
        if slot.counselor_id != counselor.id:
            raise HTTPException(status_code=403, detail="You can only delete your own slots")
        self.repo.delete_slot(self.db, slot)
        logger.info(f"🗑️ Counselor {counselor.id} removed slot {slot_id}")
