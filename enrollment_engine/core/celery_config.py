from celery import Celery

from enrollment_engine.core.config import config, get_redis_url


def make_celery(app_name: str = "enrollment_engine") -> Celery:
    redis_url = get_redis_url()
    celery = Celery(app_name, broker=redis_url, backend=redis_url)
    celery.conf.task_serializer = "json"
    celery.conf.result_serializer = "json"
    celery.conf.accept_content = ["json"]
    celery.conf.result_persistent = False
    celery.conf.task_track_started = True
    celery.conf.timezone = "UTC"
    celery.conf.enable_utc = True
    celery.conf.beat_schedule = {
        "notify-upcoming-events": {
            "task": "enrollment_engine.tasks.notify_upcoming_events_task",
            "schedule": config.REMINDER_INTERVAL_MINUTES * 60.0,
        },
    }
    return celery


celery_app = make_celery()
