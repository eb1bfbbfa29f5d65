"""
Pytest fixtures for test database, sessions, HTTP client and seed data.

Set TEST_DATABASE_URL to run against PostgreSQL (row locks, SKIP LOCKED).
Without it every test gets its own SQLite file through aiosqlite, where
BEGIN IMMEDIATE serializes writers the way the row locks do.

Tables are created before and dropped after each test for isolation.
Concurrency tests open one session per competitor from `session_factory`;
never share a session between concurrent tasks.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trip_booking.main import app
from trip_booking.db.base import Base
from trip_booking.db.session import create_engine, create_session_factory, get_db
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.trip import Trip, TripStatus

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


@pytest_asyncio.fixture
async def test_engine(tmp_path):
    url = TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"
    engine = create_engine(url, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(test_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client; every request gets its own session from the test engine."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def trip_factory(session_factory):
    """Create a trip; defaults describe a published trip 30 days out."""

    async def _create(**overrides) -> Trip:
        start = overrides.pop("start_date", datetime.now(timezone.utc) + timedelta(days=30))
        max_capacity = overrides.pop("max_capacity", 10)
        values = {
            "title": "Fjord Explorer",
            "destination": "Bergen, Norway",
            "start_date": start,
            "end_date": start + timedelta(days=7),
            "price": Decimal("450.00"),
            "max_capacity": max_capacity,
            "available_seats": max_capacity,
            "status": TripStatus.PUBLISHED,
            "refundable_until_days_before": 7,
            "cancellation_fee_percent": Decimal("10.00"),
        }
        values.update(overrides)
        async with session_factory() as session:
            trip = Trip(**values)
            session.add(trip)
            await session.commit()
            return trip

    return _create


@pytest_asyncio.fixture
async def test_trip(trip_factory) -> Trip:
    return await trip_factory()


@pytest_asyncio.fixture
async def pending_booking_factory(session_factory):
    """
    Insert a PENDING_PAYMENT booking and take its seats, bypassing the
    reservation engine so tests can pick any `expires_at`.
    """

    async def _create(trip: Trip, user_id: str = "user-1", num_seats: int = 1, **overrides) -> Booking:
        async with session_factory() as session:
            db_trip = await session.get(Trip, trip.id)
            db_trip.available_seats -= num_seats
            booking = Booking(
                trip_id=trip.id,
                user_id=user_id,
                num_seats=num_seats,
                state=overrides.pop("state", BookingState.PENDING_PAYMENT),
                price_at_booking=overrides.pop("price_at_booking", db_trip.price * num_seats),
                expires_at=overrides.pop("expires_at", datetime.now(timezone.utc) + timedelta(minutes=15)),
                idempotency_key=overrides.pop("idempotency_key", f"seed-{user_id}-{os.urandom(4).hex()}"),
                **overrides,
            )
            session.add(booking)
            await session.commit()
            return booking

    return _create


@pytest_asyncio.fixture
async def fetch_trip(session_factory):
    """Read a trip's committed state in a short-lived session."""

    async def _fetch(trip_id: int) -> Trip:
        async with session_factory() as session:
            return (await session.execute(select(Trip).where(Trip.id == trip_id))).scalar_one()

    return _fetch


@pytest_asyncio.fixture
async def fetch_bookings(session_factory):
    """All bookings of a trip, committed state, ordered by id."""

    async def _fetch(trip_id: int) -> list[Booking]:
        async with session_factory() as session:
            result = await session.execute(
                select(Booking).where(Booking.trip_id == trip_id).order_by(Booking.id)
            )
            return list(result.scalars().all())

    return _fetch
