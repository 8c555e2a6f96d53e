"""
FIFO ordering of waitlisted enrollments.

Queue order is ``(registered_at, id)``. ``waitlist_position`` is a dense
1..K projection of that order and has to be rewritten with
:func:`renumber` after anything leaves the queue.
"""
from datetime import datetime, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from enrollment_engine.core.clock import as_utc, utcnow
from enrollment_engine.core.exceptions import InvariantViolation
from enrollment_engine.core.logging import get_logger
from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.services.ledger import waitlist_count

logger = get_logger(__name__)


def _waitlisted(event_id: int):
    return select(Enrollment).where(
        Enrollment.event_id == event_id,
        Enrollment.status == EnrollmentStatus.WAITLIST.value,
    )


def next_position(db: Session, event_id: int) -> int:
    """Position for a new entrant appended to the tail."""
    return waitlist_count(db, event_id) + 1


def next_registration_time(db: Session, event_id: int) -> datetime:
    """
    ``registered_at`` for a record written now: the current time, but
    always strictly after every stamp already recorded for the event, so a
    new entrant sorts last even when clocks tie or step backwards.
    """
    db.flush()
    now = utcnow()
    latest = db.scalar(select(func.max(Enrollment.registered_at)).where(Enrollment.event_id == event_id))
    if latest is None:
        return now
    return max(now, as_utc(latest) + timedelta(microseconds=1))


def renumber(db: Session, event_id: int) -> int:
    """Rewrite positions to 1..K in registration order. Returns K."""
    db.flush()
    entries = db.scalars(
        _waitlisted(event_id).order_by(Enrollment.registered_at.asc(), Enrollment.id.asc())
    ).all()

    changed = 0
    for position, entry in enumerate(entries, start=1):
        if entry.waitlist_position != position:
            entry.waitlist_position = position
            changed += 1
    if changed:
        db.flush()
        logger.debug("Renumbered waitlist of event %s: %s of %s positions moved", event_id, changed, len(entries))
    return len(entries)


def top_n_of_queue(db: Session, event_id: int, n: int) -> list[Enrollment]:
    if n <= 0:
        return []
    stmt = (
        _waitlisted(event_id)
        .order_by(
            Enrollment.waitlist_position.asc(),
            Enrollment.registered_at.asc(),
            Enrollment.id.asc(),
        )
        .limit(n)
    )
    return list(db.scalars(stmt).all())


def top_of_queue(db: Session, event_id: int) -> Enrollment | None:
    head = top_n_of_queue(db, event_id, 1)
    return head[0] if head else None


def verify_dense(db: Session, event_id: int) -> None:
    """Raise InvariantViolation unless positions are exactly 1..K in queue order."""
    db.flush()
    entries = db.scalars(
        _waitlisted(event_id).order_by(Enrollment.registered_at.asc(), Enrollment.id.asc())
    ).all()
    positions = [entry.waitlist_position for entry in entries]
    expected = list(range(1, len(entries) + 1))
    if positions != expected:
        raise InvariantViolation(
            f"Waitlist of event {event_id} is not dense: expected {expected}, found {positions}"
        )
