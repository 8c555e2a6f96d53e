from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class NotificationOut(BaseModel):
    id: int
    event_id: int
    reason: str
    title: str
    body: str
    action_url: Optional[str] = None
    read_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class MarkReadRequest(BaseModel):
    ids: Optional[list[int]] = None
    mark_all: bool = False


class MarkReadOut(BaseModel):
    updated: int
