import enum
from datetime import datetime

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from enrollment_engine.database.db import Base


class Role(str, enum.Enum):
    USER = "user"
    STAFF = "staff"
    ADMIN = "admin"


# Roles allowed to run administrative enrollment operations
STAFF_ROLES = frozenset({Role.STAFF.value, Role.ADMIN.value})


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=Role.USER.value)
    name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
