"""
Tests for the seat inventory controller.
"""

import pytest

from trip_booking.core.exceptions import SeatInventoryError
from trip_booking.db.session import transaction
from trip_booking.models.trip import Trip
from trip_booking.services.inventory import (
    decrement_seats,
    increment_seats,
    lock_trip,
    release_seats,
)


def _trip(available: int, capacity: int = 10) -> Trip:
    return Trip(id=1, max_capacity=capacity, available_seats=available)


def test_decrement_takes_seats():
    trip = _trip(5)
    decrement_seats(trip, 3)
    assert trip.available_seats == 2


def test_decrement_to_zero_is_allowed():
    trip = _trip(2)
    decrement_seats(trip, 2)
    assert trip.available_seats == 0


def test_decrement_below_zero_fails_loudly():
    trip = _trip(1)
    with pytest.raises(SeatInventoryError):
        decrement_seats(trip, 2)
    assert trip.available_seats == 1  # never clamped


@pytest.mark.parametrize("amount", [0, -1])
def test_non_positive_amounts_are_rejected(amount):
    with pytest.raises(SeatInventoryError):
        decrement_seats(_trip(5), amount)
    with pytest.raises(SeatInventoryError):
        increment_seats(_trip(5), amount)


def test_increment_cannot_exceed_capacity():
    trip = _trip(9, capacity=10)
    with pytest.raises(SeatInventoryError):
        increment_seats(trip, 2)
    assert trip.available_seats == 9

    increment_seats(trip, 1)
    assert trip.available_seats == 10


def test_seat_inventory_error_is_not_a_business_error():
    from trip_booking.core.exceptions import BookingError

    assert not issubclass(SeatInventoryError, BookingError)


@pytest.mark.asyncio
async def test_lock_trip_missing_returns_none(db_session):
    async with transaction(db_session):
        assert await lock_trip(db_session, 99999) is None


@pytest.mark.asyncio
async def test_lock_trip_reads_committed_value(db_session, test_trip, pending_booking_factory):
    """A Trip already in the identity map is refreshed by the locked read."""
    async with transaction(db_session):
        first = await lock_trip(db_session, test_trip.id)
        assert first.available_seats == 10

    await pending_booking_factory(test_trip, num_seats=4)

    async with transaction(db_session):
        again = await lock_trip(db_session, test_trip.id)
        assert again is first
        assert again.available_seats == 6


@pytest.mark.asyncio
async def test_release_seats_persists(db_session, test_trip, pending_booking_factory, fetch_trip):
    await pending_booking_factory(test_trip, num_seats=3)

    async with transaction(db_session):
        await release_seats(db_session, test_trip.id, 3)

    assert (await fetch_trip(test_trip.id)).available_seats == 10


@pytest.mark.asyncio
async def test_release_seats_on_missing_trip_fails(db_session):
    with pytest.raises(SeatInventoryError):
        async with transaction(db_session):
            await release_seats(db_session, 99999, 1)


def test_seat_rows_have_no_lazy_relationships():
    """Trips and bookings are only ever loaded by explicit, locked queries."""
    from sqlalchemy import inspect

    from trip_booking.models.booking import Booking

    assert not inspect(Trip).relationships
    assert not inspect(Booking).relationships
