from datetime import date, datetime

from pydantic import BaseModel, Field

from gymschedule.scheduling.types import RegistrationStatus


class RegistrationCreate(BaseModel):
    trainer_id: int
    service_id: int
    schedule_slot_id: int
    start_date: date
    number_of_sessions: int = Field(ge=1)
    notes: str | None = None
    customer_id: int | None = None  # Required for staff, must be omitted or self for customers


class RegistrationStatusUpdate(BaseModel):
    status: RegistrationStatus
    rejection_reason: str | None = None


class RegistrationSessionsUpdate(BaseModel):
    completed_sessions: int = Field(ge=0)


class RegistrationRead(BaseModel):
    id: int
    customer_id: int
    trainer_id: int
    service_id: int
    schedule_slot_id: int | None
    status: RegistrationStatus
    start_date: date
    end_date: datetime | None = None
    number_of_sessions: int
    completed_sessions: int
    total_price: float
    notes: str | None = None
    rejection_reason: str | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
