"""Enumerations shared by the scheduling core."""

from enum import Enum

from gymschedule.scheduling.errors import ValidationError


class DayOfWeek(str, Enum):
    MONDAY = "Monday"
    TUESDAY = "Tuesday"
    WEDNESDAY = "Wednesday"
    THURSDAY = "Thursday"
    FRIDAY = "Friday"
    SATURDAY = "Saturday"
    SUNDAY = "Sunday"


DAY_INDEX: dict[str, int] = {day.value: i for i, day in enumerate(DayOfWeek)}


class RegistrationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset(
    {RegistrationStatus.REJECTED, RegistrationStatus.COMPLETED, RegistrationStatus.CANCELED}
)
# Registrations in these states hold their schedule slot.
ACTIVE_STATUSES = frozenset({RegistrationStatus.PENDING, RegistrationStatus.APPROVED})


def parse_day(value: str | DayOfWeek) -> DayOfWeek:
    """Coerce a day name to DayOfWeek; names are exact English day names."""
    try:
        return DayOfWeek(value)
    except ValueError:
        raise ValidationError(
            f"Invalid day of week '{value}'",
            details={"allowed": [d.value for d in DayOfWeek]},
        ) from None
