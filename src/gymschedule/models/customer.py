from datetime import date, datetime

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from gymschedule.database import Base, utcnow


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    membership_type: Mapped[str] = mapped_column(
        String(20), default="basic"
    )  # basic, standard, premium
    membership_end_date: Mapped[date]  # Bookings rejected once this is in the past
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
