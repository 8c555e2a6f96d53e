from datetime import datetime

from pydantic import BaseModel, Field


# ---------- Event ----------
class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    max_capacity: int = Field(ge=1)
    start_time: datetime
    is_published: bool = False


class EventOut(BaseModel):
    id: int
    title: str
    max_capacity: int
    is_published: bool
    start_time: datetime
    auto_enroll_all: bool

    class Config:
        from_attributes = True


class EventStatsOut(BaseModel):
    event_id: int
    max_capacity: int
    confirmed_count: int
    waitlist_count: int
    available_slots: int


# ---------- Admin operations ----------
class CapacityUpdate(BaseModel):
    max_capacity: int = Field(ge=1)


class CapacityChangeOut(BaseModel):
    promoted_count: int


class AutoEnrollUpdate(BaseModel):
    enabled: bool


class AutoEnrollOut(BaseModel):
    enrolled_count: int
