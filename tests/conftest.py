"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database; blob storage is stubbed.
"""
import os

# Must be set before ddride.config is imported
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["API_KEY"] = "test-api-key"

import base64
import itertools
from datetime import datetime
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ddride.db.database import Base
from ddride.db.models import Assignment, Baseline, Event, Group, User
from ddride.dependencies import get_db
from ddride.services.storage_service import storage_service
from ddride.services.trust_service import trust_service
from ddride.services.verification_service import verification_service
from ddride.services.session_service import session_service

STORED_URL = "http://storage.test/verification-images/photo.jpg"
IMAGE_B64 = base64.b64encode(b"\xff\xd8\xff\xe0 not really a jpeg").decode()

BASELINE_REACTION_MS = 400.0
BASELINE_PHRASE_SEC = 3.0


@pytest.fixture(name="session")
def session_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    db = TestingSession()
    yield db
    db.close()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(name="client")
def client_fixture(session):
    from ddride.main import app

    def get_db_override():
        yield session

    app.dependency_overrides[get_db] = get_db_override
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def stored_photos():
    """Replace the HTTP upload with a fixed URL"""
    with patch.object(storage_service, "store", return_value=STORED_URL) as mock_store:
        yield mock_store


@pytest.fixture
def make_group(session):
    counter = itertools.count(1)

    def _make_group(name=None):
        n = next(counter)
        group = Group(name=name or f"Group {n}", access_code=f"GRP{n:03d}")
        session.add(group)
        session.commit()
        session.refresh(group)
        return group

    return _make_group


@pytest.fixture
def group(make_group):
    return make_group(name="Alpha Beta Gamma")


@pytest.fixture
def make_user(session, group):
    """Users join the default group unless given another one, or grouped=False"""
    counter = itertools.count(1)

    def _make_user(name=None, role="member", phone_number=None, in_group=None, grouped=True):
        n = next(counter)
        user = User(
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            role=role,
            phone_number=phone_number,
            group_id=(in_group or group).id if grouped else None
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def admin(make_user):
    return make_user(name="Admin", role="admin")


@pytest.fixture
def make_event(session, admin, group):
    counter = itertools.count(1)

    def _make_event(status="active", date_time=None, in_group=None):
        event = Event(
            group_id=(in_group or group).id,
            name=f"Event {next(counter)}",
            location_text="Community Hall",
            date_time=date_time or datetime(2026, 11, 1, 19, 0),
            status=status,
            created_by_user_id=admin.id
        )
        session.add(event)
        session.commit()
        session.refresh(event)
        return event

    return _make_event


@pytest.fixture
def event(make_event):
    return make_event()


@pytest.fixture
def make_driver(session, make_user):
    """Opted-in driver with a baseline, assigned to the given events"""

    def _make_driver(*events, name=None, in_group=None):
        user = make_user(name=name, in_group=in_group)
        trust_service.opt_in(session, user.id, {"car_make": "Honda", "car_model": "Civic", "car_plate": "DD-1"})
        session.add(Baseline(
            user_id=user.id,
            reaction_latency_ms=BASELINE_REACTION_MS,
            phrase_duration_sec=BASELINE_PHRASE_SEC,
            image_ref=STORED_URL
        ))
        for ev in events:
            session.add(Assignment(event_id=ev.id, user_id=user.id, status="assigned"))
        session.commit()
        return user

    return _make_driver


@pytest.fixture
def attempt(session):
    """Record an attempt; passes by default"""

    def _attempt(user, event=None, reaction_ms=450.0, phrase_sec=3.5):
        return verification_service.record_attempt(
            db=session,
            user_id=user.id,
            reaction_latency_ms=reaction_ms,
            phrase_duration_sec=phrase_sec,
            image_base64=IMAGE_B64,
            content_type="image/jpeg",
            event_id=event.id if event is not None else None
        )

    return _attempt


@pytest.fixture
def make_active_driver(session, make_driver, attempt):
    """Driver who verified and started a session for the event"""

    def _make_active_driver(event, name=None):
        user = make_driver(event, name=name)
        result = attempt(user, event)
        session_service.start_session(session, user.id, result["attempt"].id)
        return user

    return _make_active_driver
