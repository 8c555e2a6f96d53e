from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from enrollment_engine.core.exceptions import EventNotFoundError
from enrollment_engine.database.db import get_db
from enrollment_engine.models.events import Event
from enrollment_engine.routes.deps import get_current_user, require_staff
from enrollment_engine.schemas.enrollments import (
    AdminAddOut,
    AdminAddRequest,
    AdminRemoveOut,
    RosterOut,
    admission_message,
)
from enrollment_engine.services.enrollments import (
    Caller,
    admin_add,
    admin_remove,
    list_event_enrollments,
)

router = APIRouter(prefix="/admin/event", tags=["admin"])


@router.get("/{event_id}/enrollments", response_model=RosterOut)
def event_roster(
    event_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require_staff),
):
    enrollments = list_event_enrollments(db, event_id)
    if enrollments is None:
        raise EventNotFoundError()
    return {"event": db.get(Event, event_id), "enrollments": enrollments}


@router.post("/{event_id}/enrollments", response_model=AdminAddOut)
def add_participant(
    event_id: int,
    payload: AdminAddRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = admin_add(db, actor=caller, event_id=event_id, user_id=payload.user_id)
    result.raise_for_error()
    return AdminAddOut(
        enrollment_id=result.enrollment_id,
        status=result.status,
        waitlist_position=result.waitlist_position,
        message=admission_message(result.status, result.waitlist_position),
    )


@router.delete("/{event_id}/enrollments/{enrollment_id}", response_model=AdminRemoveOut)
def remove_participant(
    event_id: int,
    enrollment_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = admin_remove(db, actor=caller, event_id=event_id, enrollment_id=enrollment_id)
    result.raise_for_error()
    return AdminRemoveOut(deleted=True)
