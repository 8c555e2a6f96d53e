from sqlalchemy import select
from sqlalchemy.orm import Session

from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.profiles import Role


def user_headers(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id), "X-User-Role": Role.USER.value}


def statuses(db: Session, event_id: int) -> dict[int, str]:
    """user_id -> status for every enrollment of the event."""
    db.expire_all()
    rows = db.scalars(select(Enrollment).where(Enrollment.event_id == event_id)).all()
    return {row.user_id: row.status for row in rows}


def waitlist_order(db: Session, event_id: int) -> list[tuple[int, int]]:
    """(user_id, position) pairs of the waitlist, in position order."""
    db.expire_all()
    rows = db.scalars(
        select(Enrollment)
        .where(
            Enrollment.event_id == event_id,
            Enrollment.status == EnrollmentStatus.WAITLIST.value,
        )
        .order_by(Enrollment.waitlist_position)
    ).all()
    return [(row.user_id, row.waitlist_position) for row in rows]


def confirmed_users(db: Session, event_id: int) -> set[int]:
    return {user_id for user_id, status in statuses(db, event_id).items() if status == "confirmed"}
