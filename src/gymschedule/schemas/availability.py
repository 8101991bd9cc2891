from datetime import datetime

from pydantic import BaseModel, Field

from gymschedule.scheduling.types import DayOfWeek

TIME_PATTERN = r"^\d{1,2}:\d{2}$"


class WeeklySlotBase(BaseModel):
    day_of_week: DayOfWeek
    start_time: str = Field(pattern=TIME_PATTERN, examples=["09:00"])
    end_time: str = Field(pattern=TIME_PATTERN, examples=["10:00"])


class WeeklySlotCreate(WeeklySlotBase):
    pass


class WeeklyAvailabilityReplace(BaseModel):
    slots: list[WeeklySlotCreate]


class WeeklySlotRead(WeeklySlotBase):
    id: int
    trainer_id: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SyncResult(BaseModel):
    added: int
