"""
Admission coordinator.

The only place that mutates enrollment records. Every operation runs
inside a per-event critical section (Redis lock + row lock on the event)
spanning read -> decide -> write -> promote -> renumber -> commit, so two
requests for the last seat can never both be confirmed. Operations on
different events never wait on each other.
"""
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterator, Optional

import redis
from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from enrollment_engine.core.clock import utcnow
from enrollment_engine.core.config import config, get_redis_url
from enrollment_engine.core.exceptions import (
    ERRORS_BY_KIND,
    AdmissionError,
    EnrollmentNotFoundError,
    ErrorKind,
    EventBusyError,
    EventNotFoundError,
    EventNotPublishedError,
    EventStartedError,
    ProfileNotFoundError,
    UnauthorizedError,
)
from enrollment_engine.core.logging import get_logger
from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.events import Event
from enrollment_engine.models.profiles import STAFF_ROLES, Profile, Role
from enrollment_engine.services import ledger, notifications, state_machine, waitlist

logger = get_logger(__name__)


def get_redis_client():
    """Get Redis client for locking."""
    return redis.from_url(get_redis_url(), decode_responses=True)


@dataclass(frozen=True)
class Caller:
    """Identity handed over by the authentication layer."""

    id: int
    role: str = Role.USER.value

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES


@dataclass
class AdmissionResult:
    ok: bool
    status: Optional[EnrollmentStatus] = None
    waitlist_position: Optional[int] = None
    enrollment_id: Optional[int] = None
    promoted_user_ids: list[int] = field(default_factory=list)
    count: int = 0
    error: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, exc: AdmissionError) -> "AdmissionResult":
        return cls(ok=False, error=exc.kind, message=exc.message)

    def raise_for_error(self) -> None:
        if not self.ok and self.error is not None:
            raise ERRORS_BY_KIND[self.error](self.message)


@contextmanager
def event_critical_section(db: Session, event_id: int) -> Iterator[Event]:
    """
    Serialize everything that reads or writes capacity for one event.

    Yields the locked Event row and commits on a clean exit. Raises
    EventBusyError when the lock is not acquired within
    EVENT_LOCK_BLOCKING_TIMEOUT seconds.
    """
    redis_client = get_redis_client()
    lock_key = f"event_lock:{event_id}"
    lock = redis_client.lock(
        lock_key,
        timeout=config.EVENT_LOCK_TIMEOUT,
        blocking_timeout=config.EVENT_LOCK_BLOCKING_TIMEOUT,
    )

    if not lock.acquire(blocking=True):
        logger.warning("Timed out waiting for %s", lock_key)
        raise EventBusyError()

    try:
        event = db.scalar(
            select(Event)
            .where(Event.id == event_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if event is None:
            raise EventNotFoundError()
        yield event
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError:  # type: ignore
            logger.error("%s expired before release; operation exceeded EVENT_LOCK_TIMEOUT", lock_key)


def _require_staff(actor: Caller) -> None:
    if not actor.is_staff:
        raise UnauthorizedError()


def _find_record(db: Session, event_id: int, user_id: int) -> Optional[Enrollment]:
    """The user's enrollment row for the event, whatever its status."""
    return db.scalar(
        select(Enrollment).where(
            Enrollment.event_id == event_id,
            Enrollment.user_id == user_id,
        )
    )


def _admit_user(db: Session, event: Event, user_id: int, now: Optional[datetime]) -> Enrollment:
    if db.get(Profile, user_id) is None:
        raise ProfileNotFoundError()
    if not event.is_published:
        raise EventNotPublishedError()
    if event.has_started(now or utcnow()):
        raise EventStartedError()

    existing = _find_record(db, event.id, user_id)
    enrollment = state_machine.admit(db, event=event, user_id=user_id, existing=existing)
    if enrollment.status == EnrollmentStatus.WAITLIST.value:
        waitlist.verify_dense(db, event.id)
    return enrollment


def _promote(db: Session, event: Event, slots: int) -> list[int]:
    """Confirm the first ``slots`` waitlisted users in FIFO order."""
    promoted = waitlist.top_n_of_queue(db, event.id, slots)
    for enrollment in promoted:
        state_machine.promote(db, enrollment)
    waitlist.renumber(db, event.id)
    waitlist.verify_dense(db, event.id)
    return [enrollment.user_id for enrollment in promoted]


def _release_seat(db: Session, event: Event, enrollment: Enrollment) -> list[int]:
    """Cancel ``enrollment`` and refill the seat or close the waitlist gap it leaves."""
    previous = state_machine.cancel(db, enrollment)
    if previous is EnrollmentStatus.CONFIRMED:
        # Overbooked after a capacity decrease: the freed seat does not reopen one
        slots = min(1, ledger.event_available_slots(db, event))
        return _promote(db, event, slots)
    waitlist.renumber(db, event.id)
    waitlist.verify_dense(db, event.id)
    return []


def _after_promotion(db: Session, event_id: int, promoted: list[int]) -> None:
    if promoted:
        notifications.dispatch_promotions(db, event_id, promoted)


def enroll(
    db: Session,
    *,
    event_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> AdmissionResult:
    """Enroll ``user_id`` as confirmed, or on the waitlist when the event is full."""
    try:
        with event_critical_section(db, event_id) as event:
            enrollment = _admit_user(db, event, user_id, now)
            result = AdmissionResult(
                ok=True,
                status=EnrollmentStatus(enrollment.status),
                waitlist_position=enrollment.waitlist_position,
                enrollment_id=enrollment.id,
            )
    except AdmissionError as exc:
        logger.info("Enrollment of user %s in event %s rejected: %s", user_id, event_id, exc.error_code)
        return AdmissionResult.failure(exc)

    logger.info(
        "User %s enrolled in event %s as %s (position=%s)",
        user_id, event_id, result.status.value, result.waitlist_position,
    )
    return result


def cancel(db: Session, *, event_id: int, user_id: int) -> AdmissionResult:
    """Cancel the user's own enrollment; a freed seat goes to the head of the waitlist."""
    try:
        with event_critical_section(db, event_id) as event:
            enrollment = _find_record(db, event.id, user_id)
            if enrollment is None or not enrollment.is_active:
                raise EnrollmentNotFoundError()
            enrollment_id = enrollment.id
            promoted = _release_seat(db, event, enrollment)
    except AdmissionError as exc:
        logger.info("Cancellation of user %s in event %s rejected: %s", user_id, event_id, exc.error_code)
        return AdmissionResult.failure(exc)

    logger.info("User %s cancelled enrollment in event %s, promoted=%s", user_id, event_id, promoted)
    _after_promotion(db, event_id, promoted)
    return AdmissionResult(
        ok=True,
        status=EnrollmentStatus.CANCELLED,
        enrollment_id=enrollment_id,
        promoted_user_ids=promoted,
    )


def admin_add(
    db: Session,
    *,
    actor: Caller,
    event_id: int,
    user_id: int,
    now: Optional[datetime] = None,
) -> AdmissionResult:
    """Seat a participant on behalf of staff. Same guards and capacity rule as ``enroll``."""
    try:
        _require_staff(actor)
        with event_critical_section(db, event_id) as event:
            enrollment = _admit_user(db, event, user_id, now)
            result = AdmissionResult(
                ok=True,
                status=EnrollmentStatus(enrollment.status),
                waitlist_position=enrollment.waitlist_position,
                enrollment_id=enrollment.id,
            )
    except AdmissionError as exc:
        logger.info("Admin %s could not add user %s to event %s: %s", actor.id, user_id, event_id, exc.error_code)
        return AdmissionResult.failure(exc)

    logger.info(
        "Admin %s added user %s to event %s as %s (enrollment=%s)",
        actor.id, user_id, event_id, result.status.value, result.enrollment_id,
    )
    return result


def admin_remove(db: Session, *, actor: Caller, event_id: int, enrollment_id: int) -> AdmissionResult:
    try:
        _require_staff(actor)
        with event_critical_section(db, event_id) as event:
            enrollment = db.get(Enrollment, enrollment_id)
            if enrollment is None or enrollment.event_id != event.id or not enrollment.is_active:
                raise EnrollmentNotFoundError()
            user_id = enrollment.user_id
            promoted = _release_seat(db, event, enrollment)
    except AdmissionError as exc:
        logger.info(
            "Admin %s could not remove enrollment %s from event %s: %s",
            actor.id, enrollment_id, event_id, exc.error_code,
        )
        return AdmissionResult.failure(exc)

    logger.info(
        "Admin %s removed enrollment %s (user %s) from event %s, promoted=%s",
        actor.id, enrollment_id, user_id, event_id, promoted,
    )
    _after_promotion(db, event_id, promoted)
    return AdmissionResult(
        ok=True,
        status=EnrollmentStatus.CANCELLED,
        enrollment_id=enrollment_id,
        promoted_user_ids=promoted,
    )


def change_capacity(db: Session, *, actor: Caller, event_id: int, new_max: int) -> AdmissionResult:
    """
    Set ``max_capacity``. Raising it promotes waitlisted users into the new
    seats in FIFO order. Lowering it never demotes anybody: the event stays
    overbooked until enough confirmed users cancel.

    ``new_max`` below 1 is a caller error, not a rejected admission: it
    raises ValueError before any lock is taken. The HTTP schema rejects
    such values with 422 before they get here.
    """
    if new_max < 1:
        raise ValueError("max_capacity must be a positive integer")

    try:
        _require_staff(actor)
        with event_critical_section(db, event_id) as event:
            old_max = event.max_capacity
            event.max_capacity = new_max
            db.flush()
            promoted: list[int] = []
            if new_max > old_max:
                promoted = _promote(db, event, ledger.event_available_slots(db, event))
    except AdmissionError as exc:
        logger.info("Admin %s could not change capacity of event %s: %s", actor.id, event_id, exc.error_code)
        return AdmissionResult.failure(exc)

    logger.info(
        "Admin %s changed capacity of event %s from %s to %s, promoted=%s",
        actor.id, event_id, old_max, new_max, promoted,
    )
    _after_promotion(db, event_id, promoted)
    return AdmissionResult(ok=True, promoted_user_ids=promoted, count=len(promoted))


def toggle_auto_enroll_all(db: Session, *, actor: Caller, event_id: int, enabled: bool) -> AdmissionResult:
    """
    Switch auto-enroll-all. When enabled, every profile without an active
    enrollment is confirmed regardless of capacity; profiles already
    confirmed or waitlisted are left alone, so re-running creates nothing new.
    """
    try:
        _require_staff(actor)
        with event_critical_section(db, event_id) as event:
            event.auto_enroll_all = enabled
            enrolled = _auto_enroll_everyone(db, event) if enabled else 0
    except AdmissionError as exc:
        logger.info("Admin %s could not toggle auto-enroll on event %s: %s", actor.id, event_id, exc.error_code)
        return AdmissionResult.failure(exc)

    logger.info("Admin %s set auto_enroll_all=%s on event %s, enrolled=%s", actor.id, enabled, event_id, enrolled)
    return AdmissionResult(ok=True, count=enrolled)


def _auto_enroll_everyone(db: Session, event: Event) -> int:
    records = {
        enrollment.user_id: enrollment
        for enrollment in db.scalars(select(Enrollment).where(Enrollment.event_id == event.id))
    }
    enrolled = 0
    for profile_id in db.scalars(select(Profile.id).order_by(Profile.id)).all():
        existing = records.get(profile_id)
        if existing is not None and existing.is_active:
            continue
        state_machine.admit(db, event=event, user_id=profile_id, existing=existing, ignore_capacity=True)
        enrolled += 1
    return enrolled


def get_event_stats(db: Session, event_id: int) -> dict:
    event = db.get(Event, event_id)
    if not event:
        return {}

    confirmed = ledger.confirmed_count(db, event_id)
    return {
        "event_id": event.id,
        "max_capacity": event.max_capacity,
        "confirmed_count": confirmed,
        "waitlist_count": ledger.waitlist_count(db, event_id),
        "available_slots": ledger.available_slots(event.max_capacity, confirmed),
    }


def list_event_enrollments(db: Session, event_id: int) -> Optional[list[Enrollment]]:
    """Roster of an event (all statuses) in registration order, or None if the event is unknown."""
    if db.get(Event, event_id) is None:
        return None
    stmt = (
        select(Enrollment)
        .where(Enrollment.event_id == event_id)
        .options(selectinload(Enrollment.profile))
        .order_by(Enrollment.registered_at.asc(), Enrollment.id.asc())
    )
    return list(db.scalars(stmt).all())


def list_user_enrollments(
    db: Session,
    *,
    user_id: int,
    status: Optional[EnrollmentStatus] = None,
) -> list[Enrollment]:
    """The user's active enrollments, most recent first."""
    stmt = (
        select(Enrollment)
        .where(
            Enrollment.user_id == user_id,
            Enrollment.status != EnrollmentStatus.CANCELLED.value,
        )
        .options(selectinload(Enrollment.event))
        .order_by(Enrollment.registered_at.desc(), Enrollment.id.desc())
    )
    if status is not None:
        stmt = stmt.where(Enrollment.status == status.value)
    return list(db.scalars(stmt).all())
