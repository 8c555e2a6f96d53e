from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from enrollment_engine.database.db import get_db
from enrollment_engine.routes.deps import get_current_user
from enrollment_engine.schemas.notifications import MarkReadOut, MarkReadRequest, NotificationOut
from enrollment_engine.services.enrollments import Caller
from enrollment_engine.services.notifications import list_notifications, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=list[NotificationOut])
def my_notifications(db: Session = Depends(get_db), caller: Caller = Depends(get_current_user)):
    return list_notifications(db, caller.id)


@router.patch("", response_model=MarkReadOut)
def mark_notifications_read(
    payload: MarkReadRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_current_user),
):
    updated = mark_read(db, caller.id, ids=payload.ids, mark_all=payload.mark_all)
    return MarkReadOut(updated=updated)
