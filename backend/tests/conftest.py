"""
Test fixtures for the slot capacity backend tests.

Provides:
- In-memory SQLite database for isolated testing
- SlotStore and session factory bound to that database
- Async test client with the session dependency overridden
- Vendor token helpers and data factories
"""
# IMPORTANT: Set environment variables BEFORE any other imports
import os

os.environ["ENVIRONMENT"] = "development"
os.environ["JWT_SECRET"] = "test_jwt_secret"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from datetime import date, time
from typing import AsyncGenerator

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from backend.app.core.base import Base
from backend.app.models.vendor_settings import VendorSettings
from backend.app.models.opening_hours import DateOverride, StandingRule
from backend.app.models.slot_demand import SlotDemand
from backend.app.services.store import SlotStore
from backend.app.api.vendor_auth import create_vendor_token


# Test database URL - SQLite in-memory
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

VENDOR_ID = "9b2f6a1e-4c1d-4d7e-9a51-2f0c7e3b8d11"
OTHER_VENDOR_ID = "0c8e1d55-7a2b-4e6f-8d90-1b3a5c7e9f20"


@pytest.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory database per test; StaticPool keeps the single connection alive."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_session(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def store(test_session: AsyncSession) -> SlotStore:
    return SlotStore(test_session)


@pytest.fixture
async def client(session_factory: async_sessionmaker) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.

    Every request gets its own session from the test database.
    """
    from backend.app.main import app
    from backend.app.api.deps import get_session

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# --- Auth helpers ---

def vendor_headers(vendor_id: str = VENDOR_ID) -> dict:
    return {"X-Vendor-Token": create_vendor_token(vendor_id)}


@pytest.fixture
def auth_header() -> dict:
    return vendor_headers(VENDOR_ID)


# --- Test Data Factories ---

async def add_settings(session: AsyncSession, vendor_id: str = VENDOR_ID, max_per_slot: int = 10) -> VendorSettings:
    settings = VendorSettings(vendor_id=vendor_id, max_per_slot=max_per_slot)
    session.add(settings)
    await session.commit()
    return settings


async def add_override(
    session: AsyncSession,
    day: date,
    vendor_id: str = VENDOR_ID,
    is_closed: bool = False,
    open_time: time = time(12, 0),
    close_time: time = time(14, 0),
    slot_minutes: int = 30,
) -> DateOverride:
    row = DateOverride(
        vendor_id=vendor_id,
        day=day,
        is_closed=is_closed,
        open_time=open_time,
        close_time=close_time,
        slot_minutes=slot_minutes,
    )
    session.add(row)
    await session.commit()
    return row


async def add_rule(
    session: AsyncSession,
    start_day: date,
    vendor_id: str = VENDOR_ID,
    is_closed: bool = False,
    open_time: time = time(19, 0),
    close_time: time = time(23, 0),
    slot_minutes: int = 20,
) -> StandingRule:
    row = StandingRule(
        vendor_id=vendor_id,
        start_day=start_day,
        is_closed=is_closed,
        open_time=open_time,
        close_time=close_time,
        slot_minutes=slot_minutes,
    )
    session.add(row)
    await session.commit()
    return row


async def add_demand(
    session: AsyncSession,
    day: date,
    slot_time: time,
    qty: int,
    vendor_id: str = VENDOR_ID,
) -> SlotDemand:
    row = SlotDemand(vendor_id=vendor_id, day=day, slot_time=slot_time, qty=qty)
    session.add(row)
    await session.commit()
    return row
