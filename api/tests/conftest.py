"""
Shared test fixtures for Hasanat API tests.

Provides database session management, test clients, a pinned clock, and
user/friend/timings fixtures.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any
from uuid import UUID

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from hasanat.auth.api_key import generate_api_key, get_key_prefix
from hasanat.config import settings
from hasanat.database import Base, engine_options, get_db
from hasanat.dependencies import get_notifier, get_now
from hasanat.main import app
from hasanat.middleware.rate_limit import reset_limiter
from hasanat.models import (
    APIKey,
    Block,
    DeviceToken,
    Friendship,
    PrayerDayTimings,
    User,
    UserSettings,
)
from hasanat.services.notifications import FriendActivity

from factories import DAY, timings_for, utc

# Test database URL (in-memory SQLite unless TEST_DATABASE_URL says otherwise)
TEST_DATABASE_URL = settings.test_database_url


# --- Rate Limiter Reset Fixture ---


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    """Reset rate limiter before each test to ensure test isolation."""
    reset_limiter()
    yield


# --- Database Fixtures ---


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Create tables before each test function, drop after.
    Provides isolated database state per test.
    """
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        **engine_options(TEST_DATABASE_URL),
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture
def session_factory(db_session: AsyncSession):
    """Session factory for the notifier that hands out the test session."""

    @asynccontextmanager
    async def _factory():
        yield db_session

    return _factory


# --- Clock and Notifier ---


class Clock:
    """Settable stand-in for the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def set(self, hour: int, minute: int = 0, day: date = DAY) -> datetime:
        self.now = utc(hour, minute, day)
        return self.now


class RecordingNotifier:
    """Notifier that records dispatched activity instead of delivering it."""

    def __init__(self):
        self.activities: list[FriendActivity] = []

    def dispatch(self, activity: FriendActivity) -> None:
        self.activities.append(activity)


@pytest.fixture
def clock() -> Clock:
    return Clock(utc(12))


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture(scope="function")
async def async_client(
    db_session: AsyncSession, clock: Clock, notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client configured for testing.
    Overrides the database, clock and notifier dependencies.
    """

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_now] = lambda: clock.now
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        follow_redirects=True,
    ) as client:
        yield client

    app.dependency_overrides.clear()


# --- Authentication Helper Fixtures ---


@pytest.fixture
def auth_headers():
    """Factory fixture for creating X-API-Key headers."""

    def _auth_headers(api_key: str) -> dict[str, str]:
        return {"X-API-Key": api_key}

    return _auth_headers


# --- User Fixtures ---


async def _create_user(
    db_session: AsyncSession,
    username: str,
    display_name: str | None = None,
    tz: str = "UTC",
    latitude: float | None = None,
    longitude: float | None = None,
) -> dict[str, Any]:
    """Helper to create a user with an API key in the database."""
    user = User(
        username=username,
        display_name=display_name,
        timezone=tz,
        latitude=latitude,
        longitude=longitude,
    )
    db_session.add(user)
    await db_session.flush()

    plaintext_key, key_hash = generate_api_key()
    db_session.add(
        APIKey(
            user_id=user.id,
            key_hash=key_hash,
            key_prefix=get_key_prefix(plaintext_key),
            name="Test key",
        )
    )

    await db_session.commit()

    return {
        "user_id": user.id,
        "username": user.username,
        "api_key": plaintext_key,
    }


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> dict[str, Any]:
    """Standard test user with an API key."""
    return await _create_user(db_session, "testuser", display_name="Test User")


@pytest_asyncio.fixture
async def second_user(db_session: AsyncSession) -> dict[str, Any]:
    """A second user, e.g. a friend of test_user."""
    return await _create_user(db_session, "seconduser", display_name="Second User")


@pytest.fixture
def create_user(db_session: AsyncSession):
    """Factory fixture for additional users."""

    async def _factory(username: str, **kwargs) -> dict[str, Any]:
        return await _create_user(db_session, username, **kwargs)

    return _factory


# --- Social Graph Fixtures ---


@pytest.fixture
def make_friends(db_session: AsyncSession):
    """Factory fixture storing an accepted friendship (ordered pair)."""

    async def _factory(user_a: UUID, user_b: UUID) -> None:
        low, high = sorted([user_a, user_b], key=str)
        db_session.add(Friendship(user_id_1=low, user_id_2=high))
        await db_session.commit()

    return _factory


@pytest.fixture
def block_user(db_session: AsyncSession):
    async def _factory(blocker: UUID, blocked: UUID) -> None:
        db_session.add(Block(blocker_id=blocker, blocked_id=blocked))
        await db_session.commit()

    return _factory


@pytest.fixture
def add_device(db_session: AsyncSession):
    async def _factory(user_id: UUID, token: str) -> None:
        db_session.add(DeviceToken(user_id=user_id, expo_push_token=token))
        await db_session.commit()

    return _factory


@pytest.fixture
def set_user_settings(db_session: AsyncSession):
    """Factory fixture writing a UserSettings row."""

    async def _factory(user_id: UUID, **values) -> UserSettings:
        row = UserSettings(user_id=user_id, **values)
        db_session.add(row)
        await db_session.commit()
        return row

    return _factory


# --- Timings Fixtures ---


@pytest.fixture
def store_timings(db_session: AsyncSession):
    """Factory fixture caching a day's timings for a user."""

    async def _factory(
        user_id: UUID,
        day: date = DAY,
        instants: dict[str, datetime] | None = None,
    ) -> PrayerDayTimings:
        row = PrayerDayTimings(
            user_id=user_id,
            date=day,
            timezone_used="UTC",
            **(instants or timings_for(day)),
        )
        db_session.add(row)
        await db_session.commit()
        return row

    return _factory


@pytest.fixture
def frozen_time():
    """
    Fixture for time-based testing using freezegun.

    Usage:
        with frozen_time("2026-03-01 12:00:00"):
            # time is frozen
    """
    from freezegun import freeze_time

    return freeze_time
