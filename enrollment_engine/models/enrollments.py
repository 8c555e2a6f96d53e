import enum
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from enrollment_engine.database.db import Base
from enrollment_engine.models.profiles import Profile

if TYPE_CHECKING:
    from enrollment_engine.models.events import Event


class EnrollmentStatus(str, enum.Enum):
    CONFIRMED = "confirmed"
    WAITLIST = "waitlist"
    CANCELLED = "cancelled"


class Enrollment(Base):
    __tablename__ = "enrollments"
    # One record per (event, user); a cancelled record is reused on re-enrollment
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_enrollments_event_user"),
        Index("ix_enrollments_event_status", "event_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    waitlist_position: Mapped[int | None] = mapped_column(Integer, nullable=True)
    registered_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    event: Mapped["Event"] = relationship(back_populates="enrollments")
    profile: Mapped[Profile | None] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status != EnrollmentStatus.CANCELLED.value
