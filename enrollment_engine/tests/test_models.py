"""
Test database models (Event, Profile, Enrollment and Notification).
"""
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from enrollment_engine.core.clock import utcnow
from enrollment_engine.models.enrollments import Enrollment, EnrollmentStatus
from enrollment_engine.models.events import Event
from enrollment_engine.models.notifications import Notification, NotificationReason
from enrollment_engine.models.profiles import Profile, Role


class TestEventModel:
    """Test the Event model."""

    def test_create_event(self, db_session: Session):
        """Test creating an event."""
        start = utcnow() + timedelta(days=1)
        event = Event(title="Test Event", max_capacity=100, start_time=start)
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)

        assert event.id is not None
        assert event.title == "Test Event"
        assert event.max_capacity == 100
        assert event.is_published is False
        assert event.auto_enroll_all is False
        assert event.created_at is not None

    def test_capacity_must_be_positive(self, db_session: Session):
        """The database rejects a zero capacity."""
        db_session.add(Event(title="Empty", max_capacity=0, start_time=utcnow()))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_has_started(self, make_event):
        """Start time is compared in UTC even after a SQLite round trip."""
        start = utcnow() + timedelta(hours=2)
        event = make_event(start_time=start)

        assert event.has_started(start - timedelta(seconds=1)) is False
        assert event.has_started(start) is True
        assert event.has_started(start + timedelta(minutes=1)) is True

    def test_event_relationship_with_enrollments(self, db_session: Session, make_event, make_profiles):
        """Test the relationship between Event and Enrollment."""
        event = make_event()
        a, b = make_profiles(2)
        for user_id in (a, b):
            db_session.add(
                Enrollment(
                    event_id=event.id,
                    user_id=user_id,
                    status=EnrollmentStatus.CONFIRMED.value,
                    registered_at=utcnow(),
                )
            )
        db_session.commit()

        db_session.refresh(event)

        assert len(event.enrollments) == 2
        assert all(e.event_id == event.id for e in event.enrollments)


class TestProfileModel:
    """Test the Profile model."""

    def test_email_is_unique(self, db_session: Session):
        db_session.add(Profile(role=Role.USER.value, name="One", email="same@example.com"))
        db_session.add(Profile(role=Role.USER.value, name="Two", email="same@example.com"))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()


class TestEnrollmentModel:
    """Test the Enrollment model."""

    def test_create_enrollment(self, db_session: Session, make_event, make_profiles):
        """Test creating a waitlisted enrollment."""
        event = make_event()
        (user_id,) = make_profiles(1)

        enrollment = Enrollment(
            event_id=event.id,
            user_id=user_id,
            status=EnrollmentStatus.WAITLIST.value,
            waitlist_position=1,
            registered_at=utcnow(),
        )
        db_session.add(enrollment)
        db_session.commit()
        db_session.refresh(enrollment)

        assert enrollment.id is not None
        assert enrollment.waitlist_position == 1
        assert enrollment.checked_in_at is None
        assert enrollment.updated_at is not None
        assert enrollment.is_active is True
        assert enrollment.profile.id == user_id
        assert enrollment.event.title == event.title

    def test_one_record_per_event_and_user(self, db_session: Session, make_event, make_profiles):
        """A second row for the same (event, user) is rejected by the database."""
        event = make_event()
        (user_id,) = make_profiles(1)
        for status in (EnrollmentStatus.CANCELLED, EnrollmentStatus.CONFIRMED):
            db_session.add(
                Enrollment(event_id=event.id, user_id=user_id, status=status.value, registered_at=utcnow())
            )

        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_cancelled_is_not_active(self, db_session: Session, make_event, make_profiles):
        event = make_event()
        (user_id,) = make_profiles(1)
        enrollment = Enrollment(
            event_id=event.id,
            user_id=user_id,
            status=EnrollmentStatus.CANCELLED.value,
            registered_at=utcnow(),
        )

        assert enrollment.is_active is False


class TestNotificationModel:
    """Test the Notification model."""

    def test_one_notification_per_reason(self, db_session: Session, make_event, make_profiles):
        event = make_event()
        (user_id,) = make_profiles(1)

        def _note(reason: NotificationReason) -> Notification:
            return Notification(
                user_id=user_id, event_id=event.id, reason=reason.value, title="t", body="b"
            )

        db_session.add(_note(NotificationReason.WAITLIST_PROMOTED))
        db_session.add(_note(NotificationReason.EVENT_STARTING_SOON))
        db_session.commit()

        db_session.add(_note(NotificationReason.WAITLIST_PROMOTED))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()
