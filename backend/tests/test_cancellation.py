"""
Tests for the cancellation engine: refund policy, cutoff, seat release.
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest

from trip_booking.core.exceptions import (
    BookingConflictError,
    InvalidTransitionError,
    NotFoundError,
    OwnershipError,
)
from trip_booking.models.booking import BookingState
from trip_booking.models.trip import Trip
from trip_booking.services.cancellation_service import cancel_booking


@pytest.mark.asyncio
async def test_cancel_before_cutoff_refunds_and_releases(db_session, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)
    assert (await fetch_trip(test_trip.id)).available_seats == 9

    result = await cancel_booking(db_session, booking.id, "alice")

    assert result.is_before_cutoff is True
    assert result.seats_released is True
    assert result.refund_amount == Decimal("405.00")  # 450.00 less 10%
    assert result.booking.state == BookingState.CANCELLED
    assert result.booking.refund_amount == Decimal("405.00")
    assert result.booking.cancelled_at is not None
    assert (await fetch_trip(test_trip.id)).available_seats == 10


@pytest.mark.asyncio
async def test_refund_covers_every_seat(db_session, test_trip, pending_booking_factory):
    booking = await pending_booking_factory(test_trip, user_id="alice", num_seats=2, state=BookingState.CONFIRMED)

    result = await cancel_booking(db_session, booking.id, "alice")

    assert result.refund_amount == Decimal("810.00")


@pytest.mark.asyncio
async def test_pending_booking_cancelled_before_cutoff(db_session, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", num_seats=3)

    result = await cancel_booking(db_session, booking.id, "alice")

    assert result.booking.state == BookingState.CANCELLED
    assert result.seats_released
    assert (await fetch_trip(test_trip.id)).available_seats == 10


@pytest.mark.asyncio
async def test_cancel_after_cutoff_keeps_seats_sold(db_session, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", num_seats=2, state=BookingState.CONFIRMED)
    late = test_trip.start_date - timedelta(days=2)

    result = await cancel_booking(db_session, booking.id, "alice", now=late)

    assert result.is_before_cutoff is False
    assert result.seats_released is False
    assert result.refund_amount == Decimal("0.00")
    assert result.booking.state == BookingState.CANCELLED
    assert (await fetch_trip(test_trip.id)).available_seats == 8


@pytest.mark.asyncio
async def test_exactly_at_cutoff_counts_as_after(db_session, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)
    cutoff = test_trip.start_date - timedelta(days=test_trip.refundable_until_days_before)

    result = await cancel_booking(db_session, booking.id, "alice", now=cutoff)

    assert result.is_before_cutoff is False
    assert result.refund_amount == Decimal("0.00")
    assert (await fetch_trip(test_trip.id)).available_seats == 9


@pytest.mark.asyncio
async def test_one_microsecond_before_cutoff_refunds(db_session, test_trip, pending_booking_factory):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)
    cutoff = test_trip.start_date - timedelta(days=test_trip.refundable_until_days_before)

    result = await cancel_booking(db_session, booking.id, "alice", now=cutoff - timedelta(microseconds=1))

    assert result.is_before_cutoff is True
    assert result.refund_amount == Decimal("405.00")


@pytest.mark.asyncio
async def test_unpaid_booking_after_cutoff_is_rejected(db_session, test_trip, pending_booking_factory, fetch_bookings):
    booking = await pending_booking_factory(test_trip, user_id="alice")
    late = test_trip.start_date - timedelta(days=1)

    with pytest.raises(BookingConflictError):
        await cancel_booking(db_session, booking.id, "alice", now=late)

    [stored] = await fetch_bookings(test_trip.id)
    assert stored.state == BookingState.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_only_owner_can_cancel(db_session, test_trip, pending_booking_factory, fetch_bookings):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)

    with pytest.raises(OwnershipError) as exc_info:
        await cancel_booking(db_session, booking.id, "mallory")

    assert exc_info.value.status_code == 403
    [stored] = await fetch_bookings(test_trip.id)
    assert stored.state == BookingState.CONFIRMED


@pytest.mark.asyncio
async def test_missing_booking(db_session):
    with pytest.raises(NotFoundError):
        await cancel_booking(db_session, 424242, "alice")


@pytest.mark.asyncio
async def test_double_cancel_is_a_conflict(db_session, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)
    await cancel_booking(db_session, booking.id, "alice")

    with pytest.raises(InvalidTransitionError):
        await cancel_booking(db_session, booking.id, "alice")

    # released once only
    assert (await fetch_trip(test_trip.id)).available_seats == 10


@pytest.mark.asyncio
async def test_expired_booking_cannot_be_cancelled(db_session, test_trip, pending_booking_factory):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.EXPIRED)

    with pytest.raises(InvalidTransitionError):
        await cancel_booking(db_session, booking.id, "alice")


@pytest.mark.asyncio
async def test_fee_is_read_at_cancellation_time(session_factory, test_trip, pending_booking_factory):
    booking = await pending_booking_factory(test_trip, user_id="alice", state=BookingState.CONFIRMED)

    async with session_factory() as session:
        trip = await session.get(Trip, test_trip.id)
        trip.cancellation_fee_percent = Decimal("25.00")
        await session.commit()

    async with session_factory() as session:
        result = await cancel_booking(session, booking.id, "alice")

    assert result.refund_amount == Decimal("337.50")


@pytest.mark.asyncio
async def test_concurrent_cancels_release_once(session_factory, test_trip, pending_booking_factory, fetch_trip):
    booking = await pending_booking_factory(test_trip, user_id="alice", num_seats=4, state=BookingState.CONFIRMED)

    async def _cancel():
        async with session_factory() as session:
            return await cancel_booking(session, booking.id, "alice")

    results = await asyncio.gather(*[_cancel() for _ in range(3)], return_exceptions=True)

    succeeded = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(succeeded) == 1
    assert all(isinstance(e, InvalidTransitionError) for e in failed)
    assert (await fetch_trip(test_trip.id)).available_seats == 10
