"""
Seat inventory controller.

CONCURRENCY STRATEGY: Pessimistic row locking
=============================================

Problem:
  Two users try to book the last seat simultaneously.
  Both read available_seats=1, both decrement to 0, both succeed.
  Result: Overbooking.

Solution:
  Every seat mutation happens inside a transaction that first takes an
  exclusive lock on the trip row:

  1. SELECT ... FROM trips WHERE id = :trip_id FOR UPDATE
  2. Check capacity against the value read under the lock
  3. Mutate available_seats on the locked row, commit

  Concurrent requests for the same trip queue on step 1 instead of failing,
  so there is no retry loop and no lost update. Different trips never
  contend. The DB CHECK constraints (0 <= available_seats <= max_capacity)
  remain the final safety net.

  Nothing in the process caches available_seats; the locked row is the only
  source of truth.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.exceptions import SeatInventoryError
from trip_booking.models.trip import Trip


async def lock_trip(db: AsyncSession, trip_id: int) -> Optional[Trip]:
    """
    Load a trip and hold an exclusive row lock until the transaction ends.

    Blocks while another transaction holds the lock. `populate_existing`
    makes sure a Trip already in the identity map is overwritten with the
    values read under the lock, never served stale.
    """
    result = await db.execute(
        select(Trip)
        .where(Trip.id == trip_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def decrement_seats(trip: Trip, num_seats: int) -> None:
    """Take seats from a trip locked by `lock_trip`."""
    if num_seats <= 0:
        raise SeatInventoryError(f"Seat decrement must be positive, got {num_seats}")
    if trip.available_seats < num_seats:
        raise SeatInventoryError(
            f"Trip {trip.id}: decrement of {num_seats} would leave "
            f"{trip.available_seats - num_seats} seats"
        )
    trip.available_seats = trip.available_seats - num_seats


def increment_seats(trip: Trip, num_seats: int) -> None:
    """Return seats to a trip locked by `lock_trip`."""
    if num_seats <= 0:
        raise SeatInventoryError(f"Seat increment must be positive, got {num_seats}")
    if trip.available_seats + num_seats > trip.max_capacity:
        raise SeatInventoryError(
            f"Trip {trip.id}: increment of {num_seats} would exceed capacity "
            f"({trip.available_seats} + {num_seats} > {trip.max_capacity})"
        )
    trip.available_seats = trip.available_seats + num_seats


async def release_seats(db: AsyncSession, trip_id: int, num_seats: int) -> Trip:
    """Lock the trip and give `num_seats` back to it."""
    trip = await lock_trip(db, trip_id)
    if trip is None:
        raise SeatInventoryError(f"Trip {trip_id} vanished while releasing {num_seats} seat(s)")
    increment_seats(trip, num_seats)
    return trip
