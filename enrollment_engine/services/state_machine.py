"""
Enrollment lifecycle.

    none ──(slots > 0)──> confirmed ──> cancelled
    none ──(slots = 0)──> waitlist ───> cancelled
                          waitlist ───> confirmed   (promotion only)

``cancelled`` is terminal for the record's current admission. Enrolling
again over a cancelled record starts a new admission on the same row:
fresh ``registered_at``, cleared check-in, status decided by the same
capacity guard as a first enrollment.
"""
from datetime import datetime

from sqlalchemy.orm import Session

from enrollment_engine.core.exceptions import AlreadyEnrolledError, InvariantViolation
from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.events import Event
from enrollment_engine.services import ledger, waitlist

CONFIRMED = EnrollmentStatus.CONFIRMED
WAITLIST = EnrollmentStatus.WAITLIST
CANCELLED = EnrollmentStatus.CANCELLED

# None stands for "no active admission"
ALLOWED_TRANSITIONS: dict[EnrollmentStatus | None, frozenset[EnrollmentStatus]] = {
    None: frozenset({CONFIRMED, WAITLIST}),
    CONFIRMED: frozenset({CANCELLED}),
    WAITLIST: frozenset({CONFIRMED, CANCELLED}),
    CANCELLED: frozenset(),
}


def check_transition(current: EnrollmentStatus | None, target: EnrollmentStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        source = current.value if current else "none"
        raise InvariantViolation(f"Illegal enrollment transition {source} -> {target.value}")


def _status(enrollment: Enrollment) -> EnrollmentStatus:
    return EnrollmentStatus(enrollment.status)


def admit(
    db: Session,
    *,
    event: Event,
    user_id: int,
    existing: Enrollment | None = None,
    ignore_capacity: bool = False,
) -> Enrollment:
    """
    Start an admission for ``user_id``: confirmed when a seat is free,
    otherwise appended to the waitlist tail.

    ``existing`` is the user's record for this event, if any. An active
    record is rejected with ALREADY_ENROLLED; a cancelled one is reused.
    ``ignore_capacity`` confirms unconditionally (auto-enroll-all).
    """
    if existing is not None and existing.is_active:
        raise AlreadyEnrolledError()

    if ignore_capacity or ledger.event_available_slots(db, event) > 0:
        target, position = CONFIRMED, None
    else:
        target, position = WAITLIST, waitlist.next_position(db, event.id)
    check_transition(None, target)

    registered_at: datetime = waitlist.next_registration_time(db, event.id)
    if existing is None:
        enrollment = Enrollment(
            event_id=event.id,
            user_id=user_id,
            status=target.value,
            waitlist_position=position,
            registered_at=registered_at,
        )
        db.add(enrollment)
    else:
        enrollment = existing
        enrollment.status = target.value
        enrollment.waitlist_position = position
        enrollment.registered_at = registered_at
        enrollment.checked_in_at = None
    db.flush()
    return enrollment


def cancel(db: Session, enrollment: Enrollment) -> EnrollmentStatus:
    """Mark the enrollment cancelled and return the status it left."""
    previous = _status(enrollment)
    check_transition(previous, CANCELLED)
    enrollment.status = CANCELLED.value
    enrollment.waitlist_position = None
    db.flush()
    return previous


def promote(db: Session, enrollment: Enrollment) -> None:
    check_transition(_status(enrollment), CONFIRMED)
    enrollment.status = CONFIRMED.value
    enrollment.waitlist_position = None
    db.flush()
