"""
Reservation engine: turns a client's intent into a PENDING_PAYMENT hold.

IDEMPOTENCY STRATEGY: Three layers, one source of truth
=======================================================

Clients retry. A retry must return the booking the first attempt created,
not a second one, and must not take seats twice.

  1. Fast path: look up (user_id, idempotency_key) before taking any lock.
     Cheap, but two identical requests can both miss here.
  2. Re-check inside the transaction, after the trip lock is held. The
     second of two racing duplicates queues on the lock, and by the time it
     gets it the first has committed, so it sees the row and returns it.
  3. UNIQUE (user_id, idempotency_key). The only real guarantee. If an
     insert still trips it, we roll back and return the winner's row.

Layers 1 and 2 only save work; layer 3 is what makes it correct.

The reservation itself (lock trip, validate, decrement, insert) is a single
transaction, so a booking row exists if and only if its seats were taken.
"""

import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.config import get_settings
from trip_booking.core.exceptions import (
    BookingError,
    CapacityConflictError,
    InvalidStateError,
    NotFoundError,
)
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import record_reservation, reservation_latency
from trip_booking.db.session import transaction
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.trip import TripStatus
from trip_booking.services.inventory import decrement_seats, lock_trip

logger = get_logger(__name__)


@dataclass
class ReservationResult:
    booking: Booking
    already_existed: bool


async def find_booking_by_idempotency_key(
    db: AsyncSession,
    user_id: str,
    idempotency_key: str,
) -> Optional[Booking]:
    result = await db.execute(
        select(Booking)
        .where(
            Booking.user_id == user_id,
            Booking.idempotency_key == idempotency_key,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def reserve_seats(
    db: AsyncSession,
    trip_id: int,
    user_id: str,
    num_seats: int,
    idempotency_key: str,
    *,
    now: Optional[datetime] = None,
    hold_window: Optional[timedelta] = None,
) -> ReservationResult:
    """
    Hold `num_seats` on a trip for `user_id`.

    Returns the new booking, or the one previously created for the same
    (user_id, idempotency_key) with `already_existed=True`.

    Raises:
        NotFoundError: trip does not exist
        InvalidStateError: trip is not published or has already departed
        CapacityConflictError: fewer than `num_seats` seats left
    """
    if num_seats <= 0:
        raise InvalidStateError("num_seats must be at least 1")
    if hold_window is None:
        hold_window = timedelta(minutes=get_settings().BOOKING_HOLD_MINUTES)

    started = time.perf_counter()
    try:
        # Fast path, no lock taken
        existing = await find_booking_by_idempotency_key(db, user_id, idempotency_key)
        if existing:
            await db.commit()
            logger.info(
                "booking_replayed",
                booking_id=existing.id,
                user_id=user_id,
                stage="fast_path",
            )
            record_reservation("replayed")
            return ReservationResult(booking=existing, already_existed=True)

        try:
            result = await _reserve_locked(
                db, trip_id, user_id, num_seats, idempotency_key, now, hold_window
            )
        except IntegrityError:
            # transaction() has already rolled back
            winner = await find_booking_by_idempotency_key(db, user_id, idempotency_key)
            if winner is None:
                raise
            await db.commit()
            logger.info(
                "booking_replayed",
                booking_id=winner.id,
                user_id=user_id,
                stage="unique_constraint",
            )
            record_reservation("replayed")
            return ReservationResult(booking=winner, already_existed=True)

        record_reservation("replayed" if result.already_existed else "created")
        return result

    except CapacityConflictError:
        record_reservation("conflict")
        raise
    except BookingError:
        record_reservation("rejected")
        raise
    finally:
        reservation_latency.observe(time.perf_counter() - started)


async def _reserve_locked(
    db: AsyncSession,
    trip_id: int,
    user_id: str,
    num_seats: int,
    idempotency_key: str,
    now: Optional[datetime],
    hold_window: timedelta,
) -> ReservationResult:
    async with transaction(db):
        # Step 1: Exclusive lock on the trip; same-trip requests queue here
        trip = await lock_trip(db, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")

        # Step 2: Re-check idempotency under the lock
        duplicate = await find_booking_by_idempotency_key(db, user_id, idempotency_key)
        if duplicate:
            logger.info(
                "booking_replayed",
                booking_id=duplicate.id,
                user_id=user_id,
                stage="locked_recheck",
            )
            return ReservationResult(booking=duplicate, already_existed=True)

        # Step 3: Business rules, read under the lock
        now = now or datetime.now(timezone.utc)
        if trip.status != TripStatus.PUBLISHED:
            raise InvalidStateError("Trip is not available for booking")
        if trip.start_date <= now:
            raise InvalidStateError("Trip has already departed")
        if trip.available_seats < num_seats:
            logger.warning(
                "booking_failed_no_seats",
                trip_id=trip_id,
                requested=num_seats,
                available=trip.available_seats,
            )
            raise CapacityConflictError(requested=num_seats, available=trip.available_seats)

        # Step 4: Take the seats, still under the lock
        decrement_seats(trip, num_seats)

        # Step 5: Insert the hold
        booking = Booking(
            trip_id=trip.id,
            user_id=user_id,
            num_seats=num_seats,
            state=BookingState.PENDING_PAYMENT,
            price_at_booking=trip.price * num_seats,
            expires_at=now + hold_window,
            idempotency_key=idempotency_key,
        )
        db.add(booking)
        await db.flush()

    logger.info(
        "booking_created",
        booking_id=booking.id,
        user_id=user_id,
        trip_id=trip_id,
        seats=num_seats,
        seats_left=trip.available_seats,
        expires_at=booking.expires_at.isoformat(),
    )
    return ReservationResult(booking=booking, already_existed=False)


async def get_booking(db: AsyncSession, booking_id: int) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise NotFoundError(f"Booking {booking_id} not found")
    return booking


async def get_user_bookings(db: AsyncSession, user_id: str) -> list[Booking]:
    """Get all bookings for a user, newest first."""
    result = await db.execute(
        select(Booking)
        .where(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
    )
    return list(result.scalars().all())
