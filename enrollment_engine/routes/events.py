from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from enrollment_engine.core.exceptions import EventNotFoundError
from enrollment_engine.database.db import get_db
from enrollment_engine.models.events import Event
from enrollment_engine.routes.deps import get_current_user, require_staff
from enrollment_engine.schemas.events import (
    AutoEnrollOut,
    AutoEnrollUpdate,
    CapacityChangeOut,
    CapacityUpdate,
    EventCreate,
    EventOut,
    EventStatsOut,
)
from enrollment_engine.services.enrollments import (
    Caller,
    change_capacity,
    get_event_stats,
    toggle_auto_enroll_all,
)

router = APIRouter(prefix="/event", tags=["events"])


@router.post("", response_model=EventOut)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_staff),
):
    event = Event(
        title=payload.title,
        max_capacity=payload.max_capacity,
        start_time=payload.start_time,
        is_published=payload.is_published,
        auto_enroll_all=False,
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


@router.get("/{event_id}/stats", response_model=EventStatsOut)
def event_stats(event_id: int, db: Session = Depends(get_db)):
    stats = get_event_stats(db, event_id)
    if not stats:
        raise EventNotFoundError()
    return stats


@router.patch("/{event_id}/capacity", response_model=CapacityChangeOut)
def update_capacity(
    event_id: int,
    payload: CapacityUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = change_capacity(db, actor=caller, event_id=event_id, new_max=payload.max_capacity)
    result.raise_for_error()
    return CapacityChangeOut(promoted_count=result.count)


@router.patch("/{event_id}/auto-enroll", response_model=AutoEnrollOut)
def update_auto_enroll(
    event_id: int,
    payload: AutoEnrollUpdate,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = toggle_auto_enroll_all(db, actor=caller, event_id=event_id, enabled=payload.enabled)
    result.raise_for_error()
    return AutoEnrollOut(enrolled_count=result.count)
