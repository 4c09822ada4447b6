import os

# Settings are read at import time, so the environment must be ready first
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_rento_app.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

import datetime
import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from unittest.mock import AsyncMock

from rento.main import app
from rento.database import Base, get_db
from rento.config import settings
from rento.rate_limits import write_limiter, read_limiter
from rento.alert_dispatcher import AlertDispatcher
from rento import models

# --- Test Database Setup ---
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_rento.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# --- Database Management Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def setup_db():
    """Creates and drops the test database tables."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Provides a database session whose work is rolled back after each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the background tasks and the Redis-backed limiter started on app lifespan.
    """
    mocker.patch("rento.main.run_outbox_poller", new_callable=AsyncMock)
    mocker.patch("rento.main.run_push_consumer", new_callable=AsyncMock)
    mocker.patch("rento.main.run_booking_scheduler", new_callable=AsyncMock)
    mocker.patch("rento.main.FastAPILimiter.init", new_callable=AsyncMock)


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session):
    """Provides a TestClient bound to the test session."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[write_limiter] = lambda: None
    app.dependency_overrides[read_limiter] = lambda: None

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()


# --- Auth helpers ---
def create_test_token(user_id: str, email: str | None = None) -> str:
    """Creates a JWT the way the identity provider would."""
    payload = {"sub": user_id}
    if email:
        payload["email"] = email
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return f"Bearer {token}"


def auth_headers_for(user_id: str) -> dict:
    return {"Authorization": create_test_token(user_id, email=f"{user_id}@example.com")}


@pytest.fixture
def owner_headers():
    return auth_headers_for("owner-1")


@pytest.fixture
def renter_headers():
    return auth_headers_for("renter-1")


# --- Domain helpers ---
class RecordingDispatcher(AlertDispatcher):
    """Keeps every alert in memory instead of queueing it."""

    def __init__(self):
        self.alerts = []

    def schedule_local_notification(self, user_id, title, body, notification_id, data):
        self.alerts.append({
            "user_id": user_id,
            "title": title,
            "body": body,
            "notification_id": notification_id,
            "data": data,
        })


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def make_item(db_session):
    def _make_item(owner_id="owner-1", price=50.0, title="Camping Tent", is_available=True):
        item = models.RentalItem(
            owner_id=owner_id,
            title=title,
            description="Sleeps four",
            price=price,
            category="Outdoors",
            location="Berlin",
            is_available=is_available,
        )
        db_session.add(item)
        db_session.commit()
        db_session.refresh(item)
        return item
    return _make_item


@pytest.fixture
def make_booking(db_session):
    def _make_booking(item, renter_id="renter-1", status=models.BookingStatus.PENDING,
                      start_date=datetime.date(2024, 1, 1), end_date=datetime.date(2024, 1, 4)):
        booking = models.Booking(
            item_id=item.id,
            renter_id=renter_id,
            start_date=start_date,
            end_date=end_date,
            total_price=(end_date - start_date).days * item.price,
            status=status,
        )
        db_session.add(booking)
        db_session.commit()
        db_session.refresh(booking)
        return booking
    return _make_booking


@pytest.fixture
def make_profile(db_session):
    def _make_profile(user_id, name=None, push_token=None):
        profile = models.Profile(id=user_id, email=f"{user_id}@example.com", name=name, push_token=push_token)
        db_session.add(profile)
        db_session.commit()
        return profile
    return _make_profile


def notifications_for(db_session, user_id):
    return db_session.query(models.Notification).filter(models.Notification.user_id == user_id).all()
