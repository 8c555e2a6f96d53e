from enrollment_engine.core.celery_config import celery_app
from enrollment_engine.database.db import SessionLocal
from enrollment_engine.services.notifications import notify_upcoming_events


@celery_app.task(bind=True)
def notify_upcoming_events_task(self, window_minutes: int | None = None) -> int:
    """Remind confirmed participants of events about to start (scheduled by Celery beat)."""
    db = SessionLocal()
    try:
        return notify_upcoming_events(db, window_minutes=window_minutes)
    finally:
        db.close()
