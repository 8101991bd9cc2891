from datetime import date, datetime

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from gymschedule.database import Base, utcnow


class Registration(Base):
    __tablename__ = "registrations"

    id: Mapped[int] = mapped_column(primary_key=True)
    customer_id: Mapped[int] = mapped_column(ForeignKey("customers.id"))
    trainer_id: Mapped[int] = mapped_column(ForeignKey("trainers.id"))
    service_id: Mapped[int] = mapped_column(ForeignKey("services.id"))
    schedule_slot_id: Mapped[int | None] = mapped_column(
        ForeignKey("schedule_slots.id", ondelete="SET NULL")
    )  # Nulled if the slot is deleted after the registration ends
    status: Mapped[str] = mapped_column(
        String(20), default="pending"
    )  # pending, approved, rejected, completed, canceled
    start_date: Mapped[date]
    end_date: Mapped[datetime | None] = mapped_column(default=None)  # Set on terminal outcome
    number_of_sessions: Mapped[int]
    completed_sessions: Mapped[int] = mapped_column(default=0)
    total_price: Mapped[float]
    notes: Mapped[str | None] = mapped_column(Text, default=None)
    rejection_reason: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow)
