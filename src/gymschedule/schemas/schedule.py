from datetime import datetime

from pydantic import BaseModel, Field

from gymschedule.scheduling.types import DayOfWeek
from gymschedule.schemas.availability import TIME_PATTERN


class ScheduleSlotRead(BaseModel):
    id: int
    trainer_id: int
    day_of_week: DayOfWeek
    start_time: str
    end_time: str
    is_available: bool
    note: str
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ScheduleSlotUpdate(BaseModel):
    day_of_week: DayOfWeek | None = None
    start_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    end_time: str | None = Field(default=None, pattern=TIME_PATTERN)
    is_available: bool | None = None
    note: str | None = None
