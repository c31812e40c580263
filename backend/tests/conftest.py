"""Pytest configuration and shared fixtures for API tests."""

import os
from datetime import datetime, timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

# Set test DB before app imports so config/engine use it
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_running_coach.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENCRYPTION_KEY", "MDEyMzQ1Njc4OWFiY2RlZjAxMjM0NTY3ODlhYmNkZWY=")

from app.core.auth import create_access_token, hash_password
from app.db.base import Base
from app.db.session import async_session_maker, engine, init_db
from app.main import app, limiter
from app.models.user import ROLE_ATHLETE, ROLE_COACH, User
from app.services.garmin_errors import ProviderAuthError, ProviderUnavailableError
from app.services.garmin_provider import ProviderSession
from app.services.garmin_session import GarminSessionManager, SessionCache, get_session_manager


def garmin_item(activity_id: int, type_key: str, start: datetime, distance_m: float, duration_sec: float) -> dict:
    """Activity-list item shaped like Garmin's /activitylist-service response."""
    return {
        "activityId": activity_id,
        "activityName": f"Activity {activity_id}",
        "activityType": {"typeKey": type_key},
        "startTimeLocal": start.strftime("%Y-%m-%d %H:%M:%S"),
        "distance": distance_m,
        "duration": duration_sec,
    }


class FakeGarminProvider:
    """In-memory ActivityProvider. Accepts `valid_password`; counts calls."""

    def __init__(self, valid_password: str = "garmin-pass"):
        self.valid_password = valid_password
        self.mfa_users: set[str] = set()
        self.unavailable = False
        self.reject_tokens = False
        self.list_error: Exception | None = None
        self.activities: list[dict] = []
        self.login_calls = 0
        self.validate_calls = 0
        self.list_calls = 0
        self._issued = 0

    def _session(self, username: str) -> ProviderSession:
        self._issued += 1
        return ProviderSession(
            handle=object(),
            garmin_user_id=username.split("@")[0],
            tokens=f"tokens:{username}:{self._issued}",
        )

    async def login(self, username: str, password: str) -> ProviderSession:
        self.login_calls += 1
        if self.unavailable:
            raise ProviderUnavailableError("connection refused")
        if username in self.mfa_users:
            raise ProviderAuthError("MFA required", mfa_required=True)
        if password != self.valid_password:
            raise ProviderAuthError("401 Unauthorized")
        return self._session(username)

    async def validate_session(self, tokens: str) -> ProviderSession:
        self.validate_calls += 1
        if self.reject_tokens or not tokens.startswith("tokens:"):
            raise ProviderAuthError("token expired")
        username = tokens.split(":")[1]
        return ProviderSession(handle=object(), garmin_user_id=username.split("@")[0], tokens=tokens)

    async def list_recent_activities(self, session: ProviderSession, page_size: int) -> list[dict]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return self.activities[:page_size]


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest_asyncio.fixture(scope="session")
async def ensure_db():
    """Create tables once per test session (no scheduler)."""
    await init_db()
    # Tests hit the API far faster than the default per-minute limit.
    limiter.enabled = False
    yield
    await engine.dispose()


async def _truncate_all():
    """Delete all rows in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest.fixture
def fake_provider() -> FakeGarminProvider:
    return FakeGarminProvider()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def session_manager(fake_provider, clock) -> GarminSessionManager:
    return GarminSessionManager(fake_provider, SessionCache(ttl_seconds=30 * 60, clock=clock))


@pytest_asyncio.fixture
async def client(ensure_db, session_manager):
    """Yield AsyncClient with the Garmin session manager replaced by one over FakeGarminProvider."""
    app.dependency_overrides[get_session_manager] = lambda: session_manager
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.pop(get_session_manager, None)


@pytest_asyncio.fixture
async def clean_db(ensure_db):
    """Truncate all tables so the next test has a clean DB."""
    await _truncate_all()
    yield


@pytest_asyncio.fixture
async def db(clean_db):
    async with async_session_maker() as session:
        yield session


async def _create_user(email: str, name: str, role: str, coach_id: int | None = None) -> tuple[int, str, str]:
    async with async_session_maker() as session:
        user = User(
            email=email,
            password_hash=hash_password("password123"),
            name=name,
            role=role,
            coach_id=coach_id,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        token = create_access_token(user.id, user.email, user.role)
        return user.id, user.email, token


@pytest_asyncio.fixture
async def coach_user(clean_db, client):
    """Create a coach via DB (committed) and return (user_id, email, access_token)."""
    return await _create_user("coach@test.com", "Coach Carter", ROLE_COACH)


@pytest_asyncio.fixture
async def athlete_user(coach_user):
    """Athlete on coach_user's team: (user_id, email, access_token)."""
    return await _create_user("athlete@test.com", "Alice Runner", ROLE_ATHLETE, coach_id=coach_user[0])


@pytest_asyncio.fixture
async def other_athlete_user(clean_db, client):
    """Athlete without a coach."""
    return await _create_user("solo@test.com", "Solo Runner", ROLE_ATHLETE)


@pytest.fixture
def auth_headers(coach_user):
    """Return dict of Authorization header for coach_user."""
    _, __, token = coach_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def athlete_headers(athlete_user):
    _, __, token = athlete_user
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def recent_runs() -> list[dict]:
    """Two runs and one ride within the last few days."""
    now = datetime.now().replace(microsecond=0)
    return [
        garmin_item(1, "running", now - timedelta(days=1), 10000, 3000),
        garmin_item(2, "trail_running", now - timedelta(days=2), 5000, 1800),
        garmin_item(3, "cycling", now - timedelta(days=2), 40000, 5400),
    ]
