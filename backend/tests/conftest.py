"""Shared test configuration and fixtures.

Every test gets its own SQLite file database (via ``aiosqlite``) under
``tmp_path`` so the suite runs without a PostgreSQL server and tests that open
several concurrent sessions see each other's commits like a real server would.
"""

import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cowork.auth.jwt import create_access_token
from cowork.booking.clock import get_clock
from cowork.booking.locks import PropertyLockRegistry
from cowork.database import Base, get_db
from cowork.main import app
from cowork.models.property import Property

IST = ZoneInfo("Asia/Kolkata")

# 2026-10-19 is a Monday.
MONDAY = datetime(2026, 10, 19, tzinfo=IST)


def at(hour: int, minute: int = 0, days: int = 0) -> datetime:
    """Property-local time on (or ``days`` after) the reference Monday."""
    return MONDAY + timedelta(days=days, hours=hour, minutes=minute)


class FrozenClock:
    """Callable clock that only moves when a test moves it."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, moment: datetime) -> None:
        self.now = moment

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    """Create a per-test engine on a fresh SQLite file with all tables."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'cowork_test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def clock() -> FrozenClock:
    """Frozen at Monday 06:00 local time."""
    return FrozenClock(at(6))


@pytest.fixture
def locks() -> PropertyLockRegistry:
    return PropertyLockRegistry()


@pytest_asyncio.fixture
async def client(session_factory, clock: FrozenClock) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to the test database and clock."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def owner_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def member_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_member_id() -> uuid.UUID:
    return uuid.uuid4()


def _headers(user_id: uuid.UUID, role: str = "user") -> dict[str, str]:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def member_headers(member_id: uuid.UUID) -> dict[str, str]:
    return _headers(member_id)


@pytest.fixture
def other_headers(other_member_id: uuid.UUID) -> dict[str, str]:
    return _headers(other_member_id)


@pytest.fixture
def owner_headers(owner_id: uuid.UUID) -> dict[str, str]:
    return _headers(owner_id)


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return _headers(uuid.uuid4(), role="admin")


@pytest.fixture
def payments_headers() -> dict[str, str]:
    """Service token of the payment gateway integration."""
    return _headers(uuid.uuid4(), role="payments")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def workspace(db_session: AsyncSession, owner_id: uuid.UUID) -> Property:
    """Ten-seat space open Monday 09:00-18:00, 100/hour, 15 minute checkout grace."""
    prop = Property(
        owner_id=owner_id,
        name="Test Hot Desks",
        seating_capacity=10,
        timezone="Asia/Kolkata",
        unavailable_dates=[],
        booking_rules={
            "min_booking_hours": 1,
            "max_booking_hours": 8,
            "buffer_hours": 0.5,
            "checkout_grace_period": 15,
            "allowed_time_slots": [{"day": "monday", "start_time": "09:00", "end_time": "18:00"}],
        },
        pricing={"hourly_rate": "100.00"},
    )
    db_session.add(prop)
    await db_session.commit()
    await db_session.refresh(prop)
    return prop
