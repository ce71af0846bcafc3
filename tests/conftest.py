# Settings are read at import time, so the environment goes first
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_reservations.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ["RATE_LIMIT_ENABLED"] = "false"

# Imports for testing tools
import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from unittest.mock import AsyncMock

# Import your application code
from reservations.main import app
from reservations.database import Base, build_engine, get_db
from reservations.models import UserRole
from reservations import models
from reservations.schemas import Principal

# --- Test Database Setup ---
SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]

engine = build_engine(SQLALCHEMY_DATABASE_URL)
# Service commits become savepoint releases inside the per-test transaction
TestingSessionLocal = sessionmaker(
    autocommit=False, autoflush=False, expire_on_commit=False, bind=engine,
    join_transaction_mode="create_savepoint",
)

# --- Principals used across tests ---
GUEST = Principal(user_id=1, role=UserRole.USER)
OTHER_GUEST = Principal(user_id=2, role=UserRole.USER)
OWNER = Principal(user_id=10, role=UserRole.PROPERTY_OWNER)
STRANGER = Principal(user_id=99, role=UserRole.USER)
ADMIN = Principal(user_id=1000, role=UserRole.ADMIN)

# Every booking test runs "before" the 2024 stays it books
TODAY = datetime.date(2023, 12, 1)


# --- Database Management Fixtures ---
@pytest.fixture(scope="session", autouse=True)
def setup_db():
    """Creates and drops the test database tables."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Provides a clean database session for each test."""
    connection = engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def make_property(db_session):
    """Factory for committed (within the test transaction) properties owned by OWNER."""
    def _make(**overrides):
        fields = dict(owner_id=OWNER.user_id, title="Lake cabin", price_per_night=10000, max_guests=4, is_active=True)
        fields.update(overrides)
        db_property = models.Property(**fields)
        db_session.add(db_property)
        db_session.commit()
        db_session.refresh(db_property)
        return db_property
    return _make


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the background tasks (poller and scheduler) that run on app lifespan.
    """
    mocker.patch("reservations.main.run_outbox_poller", new_callable=AsyncMock)
    mocker.patch("reservations.main.run_booking_scheduler", new_callable=AsyncMock)


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(db_session):
    """Provides a TestClient bound to the per-test session."""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as c:
        yield c

    app.dependency_overrides.clear()
