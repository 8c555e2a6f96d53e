"""
Notification dispatch.

Every notification is keyed by ``(user_id, event_id, reason)``; recording
the same key twice is a no-op, so callers may dispatch freely after a
retry or a duplicated trigger.
"""
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from enrollment_engine.core.clock import utcnow
from enrollment_engine.core.config import config
from enrollment_engine.core.logging import get_logger
from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.events import Event
from enrollment_engine.models.notifications import Notification, NotificationReason

logger = get_logger(__name__)


def _event_url(event_id: int) -> str:
    return f"/events/{event_id}"


def notify(
    db: Session,
    *,
    user_id: int,
    event_id: int,
    reason: NotificationReason,
    title: str,
    body: str,
    action_url: Optional[str] = None,
) -> bool:
    """Record a notification unless one with the same key exists. Returns True if recorded."""
    existing = db.scalar(
        select(Notification.id).where(
            Notification.user_id == user_id,
            Notification.event_id == event_id,
            Notification.reason == reason.value,
        )
    )
    if existing is not None:
        logger.debug("Notification %s for user %s on event %s already recorded", reason.value, user_id, event_id)
        return False

    db.add(
        Notification(
            user_id=user_id,
            event_id=event_id,
            reason=reason.value,
            title=title,
            body=body,
            action_url=action_url,
        )
    )
    try:
        db.commit()
    except IntegrityError:
        # A concurrent dispatcher recorded the same key first
        db.rollback()
        return False
    return True


def dispatch_promotions(db: Session, event_id: int, user_ids: Iterable[int]) -> int:
    """
    Tell promoted users they got a seat. Runs after the admission has
    committed and the event lock is released; a failure here is logged
    and never undoes the promotion.
    """
    user_ids = list(user_ids)
    if not user_ids:
        return 0

    event = db.get(Event, event_id)
    event_title = event.title if event else f"event #{event_id}"

    recorded = 0
    for user_id in user_ids:
        try:
            if notify(
                db,
                user_id=user_id,
                event_id=event_id,
                reason=NotificationReason.WAITLIST_PROMOTED,
                title="A seat opened up for you",
                body=f"Good news! You moved off the waitlist and your enrollment in {event_title} is confirmed.",
                action_url=_event_url(event_id),
            ):
                recorded += 1
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Could not record promotion notification for user %s on event %s", user_id, event_id)

    logger.info("Promotion notifications for event %s: %s recorded, %s requested", event_id, recorded, len(user_ids))
    return recorded


def notify_upcoming_events(
    db: Session,
    now: Optional[datetime] = None,
    window_minutes: Optional[int] = None,
) -> int:
    """Remind confirmed participants of published events starting within the window."""
    now = now or utcnow()
    window_minutes = window_minutes or config.UPCOMING_EVENT_WINDOW_MINUTES
    window_end = now + timedelta(minutes=window_minutes)

    events = db.scalars(
        select(Event).where(
            Event.is_published.is_(True),
            Event.start_time >= now,
            Event.start_time <= window_end,
        )
    ).all()

    created = 0
    for event in events:
        user_ids = db.scalars(
            select(Enrollment.user_id).where(
                Enrollment.event_id == event.id,
                Enrollment.status == EnrollmentStatus.CONFIRMED.value,
            )
        ).all()
        for user_id in user_ids:
            if notify(
                db,
                user_id=user_id,
                event_id=event.id,
                reason=NotificationReason.EVENT_STARTING_SOON,
                title="Event starting soon",
                body=f"{event.title} is about to start. See you there!",
                action_url=_event_url(event.id),
            ):
                created += 1

    logger.info("Upcoming event reminders: %s events in window, %s notifications created", len(events), created)
    return created


def list_notifications(db: Session, user_id: int, limit: int = 50) -> list[Notification]:
    stmt = (
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(db.scalars(stmt).all())


def mark_read(
    db: Session,
    user_id: int,
    ids: Optional[list[int]] = None,
    mark_all: bool = False,
) -> int:
    """Mark the user's unread notifications as read. Returns how many changed."""
    if not mark_all and not ids:
        return 0

    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=utcnow())
    )
    if not mark_all:
        stmt = stmt.where(Notification.id.in_(ids))
    res = db.execute(stmt)
    db.commit()
    return int(res.rowcount or 0)  # type: ignore
