import os

# Configuration is read at import time; these must be set before any app module loads.
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("PUSHER_ENABLED", "false")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("SUPABASE_URL", "https://green-earth-test.supabase.co")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-at-least-32-bytes!")

from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from core.db import Base
from models import User


@pytest.fixture(scope="session")
def test_engine():
    """In-memory SQLite shared by every connection of the test session"""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture(scope="function")
def test_db(test_engine):
    """Create all tables before each test and drop them after"""
    Base.metadata.create_all(bind=test_engine)

    TestingSessionLocal = sessionmaker(bind=test_engine)
    db = TestingSessionLocal()

    try:
        test_users = [
            User(
                account_id=1000000001,
                auth_user_id="auth-user-1",
                email="test1@example.com",
                full_name="Lan Nguyen",
            ),
            User(
                account_id=1000000002,
                auth_user_id="auth-user-2",
                email="test2@example.com",
                full_name="Minh Tran",
            ),
        ]
        db.add_all(test_users)
        db.commit()

        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def current_user(test_db):
    return test_db.query(User).filter(User.account_id == 1000000001).first()


@pytest.fixture
def other_user(test_db):
    return test_db.query(User).filter(User.account_id == 1000000002).first()


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Chat Redis is optional; tests run as if it were unreachable unless they install a fake."""
    monkeypatch.setattr("utils.chat_redis.get_chat_redis", AsyncMock(return_value=None))


@pytest.fixture
def set_balance(test_db):
    """Seed a balance directly, bypassing the ledger."""

    def _set(user, *, camly=None, green_points=None):
        if camly is not None:
            user.camly_balance = camly
        if green_points is not None:
            user.green_points = green_points
        test_db.commit()
        test_db.refresh(user)
        return user

    return _set
