"""
Test the per-event Redis lock around admission decisions.
"""
import pytest
from sqlalchemy.orm import Session

from enrollment_engine.core.config import config
from enrollment_engine.core.exceptions import EventBusyError, EventNotFoundError
from enrollment_engine.models.events import Event
from enrollment_engine.services.enrollments import event_critical_section


class TestEventCriticalSection:
    """Test lock acquisition, release and the transaction it wraps."""

    def test_lock_is_held_inside_and_released_after(self, db_session: Session, make_event, fake_redis):
        event = make_event()

        with event_critical_section(db_session, event.id) as locked:
            assert locked.id == event.id
            # Lock should be held
            another_lock = fake_redis.lock(f"event_lock:{event.id}", timeout=5)
            assert another_lock.acquire(blocking=False) is False

        assert another_lock.acquire(blocking=False) is True
        another_lock.release()

    def test_commits_on_clean_exit(self, db_session: Session, session_factory, make_event):
        event = make_event(max_capacity=2)

        with event_critical_section(db_session, event.id) as locked:
            locked.max_capacity = 7

        other = session_factory()
        try:
            assert other.get(Event, event.id).max_capacity == 7
        finally:
            other.close()

    def test_rolls_back_and_releases_on_error(self, db_session: Session, make_event, fake_redis):
        event = make_event(max_capacity=2)

        with pytest.raises(RuntimeError):
            with event_critical_section(db_session, event.id) as locked:
                locked.max_capacity = 9
                raise RuntimeError("boom")

        db_session.expire_all()
        assert db_session.get(Event, event.id).max_capacity == 2
        lock = fake_redis.lock(f"event_lock:{event.id}", timeout=5)
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_unknown_event_releases_lock(self, db_session: Session, fake_redis):
        with pytest.raises(EventNotFoundError):
            with event_critical_section(db_session, 424242):
                pass

        lock = fake_redis.lock("event_lock:424242", timeout=5)
        assert lock.acquire(blocking=False) is True
        lock.release()

    def test_busy_when_lock_held(self, db_session: Session, make_event, fake_redis, monkeypatch):
        event = make_event()
        monkeypatch.setattr(config, "EVENT_LOCK_BLOCKING_TIMEOUT", 0.1)
        holder = fake_redis.lock(f"event_lock:{event.id}", timeout=10)
        assert holder.acquire(blocking=False) is True

        try:
            with pytest.raises(EventBusyError):
                with event_critical_section(db_session, event.id):
                    pytest.fail("entered a section whose lock is held elsewhere")
        finally:
            holder.release()

    def test_locks_are_per_event(self, db_session: Session, make_event, fake_redis, monkeypatch):
        first = make_event(title="First")
        second = make_event(title="Second")
        monkeypatch.setattr(config, "EVENT_LOCK_BLOCKING_TIMEOUT", 0.1)
        holder = fake_redis.lock(f"event_lock:{first.id}", timeout=10)
        assert holder.acquire(blocking=False) is True

        try:
            with event_critical_section(db_session, second.id) as locked:
                assert locked.id == second.id
        finally:
            holder.release()

    def test_expired_lock_is_logged_not_raised(self, db_session: Session, make_event, fake_redis, caplog):
        event = make_event()

        with caplog.at_level("ERROR"):
            with event_critical_section(db_session, event.id):
                # Simulate the lock expiring mid-operation
                fake_redis.delete(f"event_lock:{event.id}")

        assert "expired before release" in caplog.text
