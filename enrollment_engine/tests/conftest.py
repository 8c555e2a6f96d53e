import itertools
import os
import tempfile
from datetime import timedelta
from pathlib import Path

# Settings are read at import time, so point the app at a scratch database first
_TEST_DIR = Path(tempfile.mkdtemp(prefix="enrollment-engine-tests-"))
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DIR / 'app.db'}")
os.environ.setdefault("EVENT_LOCK_BLOCKING_TIMEOUT", "15")

import fakeredis
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.session import Session

from enrollment_engine.core.clock import utcnow
from enrollment_engine.database.db import Base, get_db
from enrollment_engine.main import app
from enrollment_engine.models.events import Event
from enrollment_engine.models.profiles import Profile, Role
from enrollment_engine.services.enrollments import Caller

# File-backed SQLite so that concurrent sessions get their own connections
SQLALCHEMY_DATABASE_URL = f"sqlite:///{_TEST_DIR / 'test.db'}"
engine: Engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

_emails = itertools.count(1)


@pytest.fixture(autouse=True)
def setup_database():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


# Override the database dependency
def override_get_db():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture
def session_factory():
    return TestingSessionLocal


@pytest.fixture
def db_session():
    db: Session = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_redis():
    client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield client
    client.flushall()


@pytest.fixture(autouse=True)
def redis_client(fake_redis, monkeypatch: pytest.MonkeyPatch):
    """Route the per-event lock through fakeredis."""
    monkeypatch.setattr("enrollment_engine.services.enrollments.get_redis_client", lambda: fake_redis)
    return fake_redis


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_event(db_session: Session):
    def _make(
        max_capacity: int = 2,
        *,
        title: str = "Campfire Night",
        is_published: bool = True,
        start_time=None,
        auto_enroll_all: bool = False,
    ) -> Event:
        event = Event(
            title=title,
            max_capacity=max_capacity,
            is_published=is_published,
            start_time=start_time or utcnow() + timedelta(days=7),
            auto_enroll_all=auto_enroll_all,
        )
        db_session.add(event)
        db_session.commit()
        db_session.refresh(event)
        return event

    return _make


@pytest.fixture
def make_profiles(db_session: Session):
    def _make(count: int, role: Role = Role.USER) -> list[int]:
        profiles = []
        for _ in range(count):
            n = next(_emails)
            profiles.append(Profile(role=role.value, name=f"Scout {n}", email=f"scout{n}@example.com"))
        db_session.add_all(profiles)
        db_session.commit()
        return [profile.id for profile in profiles]

    return _make


@pytest.fixture
def admin(make_profiles) -> Caller:
    (admin_id,) = make_profiles(1, role=Role.ADMIN)
    return Caller(id=admin_id, role=Role.ADMIN.value)


@pytest.fixture
def admin_headers(admin: Caller) -> dict[str, str]:
    return {"X-User-Id": str(admin.id), "X-User-Role": admin.role}
