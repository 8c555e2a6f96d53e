from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from enrollment_engine.models.enrollments import EnrollmentStatus
from enrollment_engine.schemas.events import EventOut


class EnrollOut(BaseModel):
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    enrollment_id: int
    message: str


class CancelOut(BaseModel):
    cancelled: bool


class AdminAddRequest(BaseModel):
    user_id: int = Field(ge=1)


class AdminAddOut(BaseModel):
    enrollment_id: int
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    message: str


class AdminRemoveOut(BaseModel):
    deleted: bool


class ProfileSummary(BaseModel):
    id: int
    role: str
    name: Optional[str] = None
    email: Optional[str] = None

    class Config:
        from_attributes = True


class EnrollmentOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    registered_at: datetime
    checked_in_at: Optional[datetime] = None
    profile: Optional[ProfileSummary] = None

    class Config:
        from_attributes = True


class RosterOut(BaseModel):
    event: EventOut
    enrollments: list[EnrollmentOut]


class MyEnrollmentOut(BaseModel):
    id: int
    status: EnrollmentStatus
    waitlist_position: Optional[int] = None
    registered_at: datetime
    event: EventOut

    class Config:
        from_attributes = True


def admission_message(status: EnrollmentStatus, waitlist_position: Optional[int]) -> str:
    if status is EnrollmentStatus.WAITLIST:
        return f"You are on the waitlist (position {waitlist_position})"
    return "Enrollment confirmed!"
