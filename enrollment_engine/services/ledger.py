"""
Capacity bookkeeping for an event.

Counts are only meaningful for a write when they are read inside the
same per-event critical section as that write.
"""
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.events import Event


def _count_status(db: Session, event_id: int, status: EnrollmentStatus) -> int:
    count = db.scalar(
        select(func.count(Enrollment.id)).where(
            Enrollment.event_id == event_id,
            Enrollment.status == status.value,
        )
    )
    return int(count or 0)


def confirmed_count(db: Session, event_id: int) -> int:
    return _count_status(db, event_id, EnrollmentStatus.CONFIRMED)


def waitlist_count(db: Session, event_id: int) -> int:
    return _count_status(db, event_id, EnrollmentStatus.WAITLIST)


def available_slots(max_capacity: int, confirmed: int) -> int:
    """Free seats; never negative, even when a lowered cap left the event overbooked."""
    return max(0, max_capacity - confirmed)


def event_available_slots(db: Session, event: Event) -> int:
    return available_slots(event.max_capacity, confirmed_count(db, event.id))
