"""Test configuration and fixtures"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["API_KEY"] = ""

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from reservas_api.main import app
from reservas_api.database import Base, get_db, get_session_factory
from reservas_api.models.reservation import Reservation, ReservationStatus
from reservas_api.webhooks.dispatcher import WebhookDispatcher, get_webhook_dispatcher


# Test database URL (use in-memory SQLite for tests)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine():
    """One in-memory database shared by every session of a test"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def test_db(session_factory):
    """Create test database session"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_reservations(session_factory):
    """Insert reservation rows directly, bypassing the service checks"""
    async def _add(
        day,
        tables,
        status=ReservationStatus.CONFIRMED.value,
        name="Cliente Existente",
        reservation_number=None,
        time_slot="19:00",
    ):
        cancelled = status == ReservationStatus.CANCELLED.value
        rows = [
            Reservation(
                table_id=None if cancelled else table,
                historical_table_id=table if cancelled else None,
                customer_name=name,
                customer_phone="11988887777",
                reservation_date=day,
                time_slot=time_slot,
                status=status,
                reservation_number=reservation_number,
            )
            for table in tables
        ]
        async with session_factory() as db:
            db.add_all(rows)
            await db.commit()
        return rows

    return _add


@pytest.fixture
def webhook_requests():
    """Requests captured by the mock webhook endpoint"""
    return []


@pytest.fixture
def webhook_transport(webhook_requests):
    def handler(request: httpx.Request) -> httpx.Response:
        webhook_requests.append(request)
        return httpx.Response(200, json={"received": True})

    return httpx.MockTransport(handler)


@pytest.fixture
async def client(session_factory, webhook_transport):
    """Create test client with overridden database and webhook transport"""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_webhook_dispatcher] = lambda: WebhookDispatcher(transport=webhook_transport)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
