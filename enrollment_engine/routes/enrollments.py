from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from enrollment_engine.database.db import get_db
from enrollment_engine.models.enrollments import EnrollmentStatus
from enrollment_engine.routes.deps import get_current_user
from enrollment_engine.schemas.enrollments import (
    CancelOut,
    EnrollOut,
    MyEnrollmentOut,
    admission_message,
)
from enrollment_engine.services.enrollments import Caller, cancel, enroll, list_user_enrollments

router = APIRouter(tags=["enrollments"])


@router.post("/event/{event_id}/enroll", response_model=EnrollOut)
def enroll_in_event(
    event_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = enroll(db, event_id=event_id, user_id=caller.id)
    result.raise_for_error()
    return EnrollOut(
        status=result.status,
        waitlist_position=result.waitlist_position,
        enrollment_id=result.enrollment_id,
        message=admission_message(result.status, result.waitlist_position),
    )


@router.delete("/event/{event_id}/enroll", response_model=CancelOut)
def cancel_enrollment(
    event_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    result = cancel(db, event_id=event_id, user_id=caller.id)
    result.raise_for_error()
    return CancelOut(cancelled=True)


@router.get("/me/enrollments", response_model=list[MyEnrollmentOut])
def my_enrollments(
    status: Literal["all", "confirmed", "waitlist"] = "all",
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    status_filter = None if status == "all" else EnrollmentStatus(status)
    return list_user_enrollments(db, user_id=caller.id, status=status_filter)
