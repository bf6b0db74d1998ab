"""Schedule domain schemas - counselor availability slots"""

import datetime as dt

from pydantic import BaseModel, model_validator


class SlotCreate(BaseModel):
    date: dt.date
    startTime: dt.time
    endTime: dt.time
    isAvailable: bool = True

    @model_validator(mode="after")
    def validate_window(self):
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class SlotResponse(BaseModel):
    id: int
    counselorId: int
    date: dt.date
    startTime: dt.time
    endTime: dt.time
    isAvailable: bool
    createdAt: dt.datetime
