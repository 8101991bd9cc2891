from gymschedule.schemas.availability import (
    SyncResult,
    WeeklyAvailabilityReplace,
    WeeklySlotCreate,
    WeeklySlotRead,
)
from gymschedule.schemas.registration import (
    RegistrationCreate,
    RegistrationRead,
    RegistrationSessionsUpdate,
    RegistrationStatusUpdate,
)
from gymschedule.schemas.schedule import ScheduleSlotRead, ScheduleSlotUpdate
from gymschedule.schemas.system import StatusResponse

__all__ = [
    "RegistrationCreate",
    "RegistrationRead",
    "RegistrationSessionsUpdate",
    "RegistrationStatusUpdate",
    "ScheduleSlotRead",
    "ScheduleSlotUpdate",
    "StatusResponse",
    "SyncResult",
    "WeeklyAvailabilityReplace",
    "WeeklySlotCreate",
    "WeeklySlotRead",
]
