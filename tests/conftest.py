"""
Shared fixtures: a throwaway SQLite registry per test
"""

import pytest
from datetime import datetime
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import app.models  # noqa: F401
from app.core.db import Base
from app.models import Event, Guest, User
from app.utils.security import hash_password, rate_limiter

class RecordingBroadcaster:
    """Stands in for WebSocketManager; keeps every broadcast"""

    def __init__(self):
        self.messages = []

    def broadcast(self, event_code, message):
        self.messages.append((event_code, message))

    def of_type(self, message_type):
        return [message for _, message in self.messages if message["type"] == message_type]

@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so several connections can share it"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test_checkin.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()

@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session(session_factory):
    """Create test database session"""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()

@pytest.fixture(autouse=True)
def reset_rate_limiter():
    rate_limiter.clear()
    yield
    rate_limiter.clear()

@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()

@pytest.fixture
def sample_event(db_session):
    """Create a sample event for testing"""
    event = Event(
        name="Community Iftar",
        date=datetime(2026, 3, 15, 18, 30),
        venue="School Hall",
        public_code="IFTAR26",
        is_active=True
    )
    db_session.add(event)
    db_session.commit()
    db_session.refresh(event)
    return event

@pytest.fixture
def sample_guests(db_session, sample_event):
    """A handful of guests with known tokens"""
    guests = [
        Guest(event_id=sample_event.id, token="abc123", name="Amina", category="student"),
        Guest(event_id=sample_event.id, token="def456", name="Omar Haddad", category="parent"),
        Guest(event_id=sample_event.id, token="fam789", name="The Rahman Family", category="family", family_size=4),
        Guest(event_id=sample_event.id, token="vip001", name="Dr. Salma", category="vip", table_number="1"),
    ]
    for guest in guests:
        db_session.add(guest)
    db_session.commit()
    return {guest.token: guest for guest in guests}

@pytest.fixture
def volunteer(db_session):
    user = User(
        username="yusuf",
        display_name="Yusuf",
        password_hash=hash_password("volunteer-pass"),
        role="volunteer"
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user

@pytest.fixture
def admin_user(db_session):
    user = User(
        username="admin",
        display_name="Administrator",
        password_hash=hash_password("admin-pass"),
        role="admin"
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user
