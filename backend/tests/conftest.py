import os
import tempfile

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

# Keep the app's on-disk database and uploads out of the working tree
_TEST_DATA_DIR = tempfile.mkdtemp(prefix="sarvam-tests-")
os.environ.setdefault("DATA_DIR", _TEST_DATA_DIR)
os.environ.setdefault("DATABASE_PATH", os.path.join(_TEST_DATA_DIR, "app.sqlite3"))

from main import app

from database import Base, get_db
from models import User
from auth import get_password_hash, create_access_token

# Import rate limiters to override them
from utils.rate_limiter import (
    auth_rate_limiter,
    otp_email_rate_limiter,
    password_reset_rate_limiter,
    profile_update_rate_limiter
)

# Setup in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture(scope="function")
def client(db_session):
    """Create a FastAPI TestClient with overridden database dependency."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.pop(get_db, None)

@pytest.fixture
def make_user(db_session):
    """Factory creating users directly in the database."""
    def _make_user(email, full_name="Someone", password="password123", phone_number=""):
        user = User(
            email=email,
            hashed_password=get_password_hash(password) if password else None,
            full_name=full_name,
            phone_number=phone_number,
            is_active=True
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user
    return _make_user

@pytest.fixture
def test_user(make_user):
    """Create a test user and return the user object."""
    return make_user("test@example.com", full_name="Test User")

@pytest.fixture
def auth_headers(test_user):
    """Return authorization headers for the test user."""
    access_token = create_access_token(test_user.id, test_user.email)
    return {"Authorization": f"Bearer {access_token}"}

@pytest.fixture(autouse=True)
def disable_rate_limits():
    """Disable all rate limits during testing using dependency overrides."""
    async def mock_rate_limit():
        return True

    limiters = [auth_rate_limiter, password_reset_rate_limiter, otp_email_rate_limiter, profile_update_rate_limiter]
    for limiter in limiters:
        app.dependency_overrides[limiter] = mock_rate_limit

    yield

    for limiter in limiters:
        app.dependency_overrides.pop(limiter, None)
