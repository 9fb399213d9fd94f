"""Shared test fixtures for all test modules."""

import contextlib
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from notifyhub.core import database as db_module
from notifyhub.core.config import settings
from notifyhub.core.database import Base

# Keep the app's lifespan off Redis; fanout tests build their own hubs.
settings.REALTIME_BACKPLANE = "memory"

# In-memory SQLite with StaticPool so every session sees the same database.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

OWNER_ID = "user-owner"
VIEWER_ID = "user-viewer"


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and clear all data after.

    Patches the module-level engine and SessionLocal so application code,
    background handlers included, uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    import notifyhub.models  # noqa: F401

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def db_session():
    """A session on the test database for direct repository and service tests."""
    session = _TestSessionLocal()
    try:
        yield session
    finally:
        session.close()


def make_token(user_id: str, expires_in: timedelta = timedelta(hours=1), **claims: Any) -> str:
    payload = {"sub": user_id, "exp": datetime.now(UTC) + expires_in, **claims}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


class FakeConnection:
    """Stand-in for a WebSocket: records every JSON frame sent to it."""

    def __init__(self, fail: bool = False):
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    @property
    def notifications(self) -> list[dict[str, Any]]:
        return [frame for frame in self.sent if frame.get("type") == "notification"]
