import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from enrollment_engine.database.db import Base


class NotificationReason(str, enum.Enum):
    WAITLIST_PROMOTED = "waitlist_promoted"
    EVENT_STARTING_SOON = "event_starting_soon"


class Notification(Base):
    __tablename__ = "notifications"
    # Idempotency key: at most one notification per (user, event, reason)
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", "reason", name="uq_notifications_user_event_reason"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("profiles.id"), nullable=False)
    event_id: Mapped[int] = mapped_column(ForeignKey("events.id"), nullable=False)
    reason: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
