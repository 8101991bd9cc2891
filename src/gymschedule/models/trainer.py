from datetime import datetime

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from gymschedule.database import Base, utcnow


class Trainer(Base):
    __tablename__ = "trainers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    active: Mapped[bool] = mapped_column(default=True)  # Inactive trainers take no bookings
    created_at: Mapped[datetime] = mapped_column(default=utcnow)


class WeeklySlot(Base):
    """An entry of a trainer's declared recurring availability."""

    __tablename__ = "weekly_slots"

    id: Mapped[int] = mapped_column(primary_key=True)
    trainer_id: Mapped[int] = mapped_column(ForeignKey("trainers.id", ondelete="CASCADE"))
    day_of_week: Mapped[str] = mapped_column(String(9))  # Monday..Sunday
    start_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    end_time: Mapped[str] = mapped_column(String(5))  # HH:MM
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
