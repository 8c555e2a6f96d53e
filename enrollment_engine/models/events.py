from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from enrollment_engine.core.clock import as_utc
from enrollment_engine.database.db import Base

if TYPE_CHECKING:
    from enrollment_engine.models.enrollments import Enrollment


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (CheckConstraint("max_capacity > 0", name="ck_events_max_capacity_positive"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    is_published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    auto_enroll_all: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    enrollments: Mapped[list["Enrollment"]] = relationship(back_populates="event")

    def has_started(self, now: datetime) -> bool:
        return as_utc(now) >= as_utc(self.start_time)
