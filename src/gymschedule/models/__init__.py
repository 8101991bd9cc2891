from gymschedule.models.customer import Customer
from gymschedule.models.registration import Registration
from gymschedule.models.schedule import ScheduleSlot
from gymschedule.models.service import Service
from gymschedule.models.trainer import Trainer, WeeklySlot

__all__ = [
    "Customer",
    "Registration",
    "ScheduleSlot",
    "Service",
    "Trainer",
    "WeeklySlot",
]
