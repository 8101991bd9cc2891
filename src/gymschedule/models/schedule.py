from datetime import datetime

from sqlalchemy import ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from gymschedule.database import Base, utcnow


class ScheduleSlot(Base):
    """Normalized, individually bookable availability row."""

    __tablename__ = "schedule_slots"
    __table_args__ = (
        UniqueConstraint("trainer_id", "day_of_week", "start_time", name="uq_schedule_slot_start"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    trainer_id: Mapped[int] = mapped_column(ForeignKey("trainers.id", ondelete="CASCADE"))
    day_of_week: Mapped[str] = mapped_column(String(9))  # Monday..Sunday
    start_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    end_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    is_available: Mapped[bool] = mapped_column(default=True)  # False while booked or blocked
    note: Mapped[str] = mapped_column(Text, default="")
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
