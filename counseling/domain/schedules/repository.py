"""Schedule repository - Database operations for availability slots"""

from datetime import date, time
from typing import Optional

from sqlalchemy.orm import Session

from ...models import CounselorSchedule


class ScheduleRepository:
    """Repository for counselor schedule database operations"""

    @staticmethod
    def get_slot(db: Session, slot_id: int) -> Optional[CounselorSchedule]:
        return db.query(CounselorSchedule).filter(CounselorSchedule.id == slot_id).first()

    @staticmethod
    def get_overlapping(
        db: Session, counselor_id: int, day: date, start: time, end: time
    ) -> Optional[CounselorSchedule]:
        return (
            db.query(CounselorSchedule)
            .filter(
                CounselorSchedule.counselor_id == counselor_id,
                CounselorSchedule.date == day,
                CounselorSchedule.start_time < end,
                CounselorSchedule.end_time > start,
            )
            .first()
        )

    @staticmethod
    def get_slots(
        db: Session, counselor_id: int, date_from: Optional[date] = None, date_to: Optional[date] = None
    ) -> list[CounselorSchedule]:
        query = db.query(CounselorSchedule).filter(CounselorSchedule.counselor_id == counselor_id)
        if date_from:
            query = query.filter(CounselorSchedule.date >= date_from)
        if date_to:
            query = query.filter(CounselorSchedule.date <= date_to)
        return query.order_by(CounselorSchedule.date.asc(), CounselorSchedule.start_time.asc()).all()

    @staticmethod
    def create_slot(db: Session, **slot_data) -> CounselorSchedule:
        slot = CounselorSchedule(**slot_data)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    @staticmethod
    def delete_slot(db: Session, slot: CounselorSchedule) -> None:
        db.delete(slot)
        db.commit()
