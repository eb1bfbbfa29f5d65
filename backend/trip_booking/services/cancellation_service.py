"""
Cancellation engine.

Refund policy
=============

    cutoff = trip.start_date - refundable_until_days_before days

    now <  cutoff  ->  refund = price_at_booking * (1 - fee% / 100), seats released
    now >= cutoff  ->  refund = 0, seats stay sold, CONFIRMED bookings only

A PENDING_PAYMENT booking past the cutoff cannot be cancelled: nothing was
paid, so there is nothing to refund, and the sweeper will expire it.

Refund and seat release follow the same boolean but are separate business
decisions: before the cutoff the operator has not committed the capacity,
after it the capacity is committed whether or not money goes back.

The fee percent is read from the trip at cancellation time, so a policy
change applies to existing bookings too.

Money is computed with decimal.Decimal only.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.exceptions import BookingConflictError, NotFoundError, OwnershipError
from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import record_cancellation
from trip_booking.db.session import transaction
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.trip import Trip
from trip_booking.services.inventory import release_seats
from trip_booking.services.state_machine import transition, validate_transition

logger = get_logger(__name__)

CENT = Decimal("0.01")
HUNDRED = Decimal(100)


@dataclass
class CancellationResult:
    booking: Booking
    refund_amount: Decimal
    seats_released: bool
    is_before_cutoff: bool


def calculate_refund(price_at_booking, cancellation_fee_percent) -> Decimal:
    """
    Refund = price_at_booking x (1 - fee% / 100), rounded half-up to cents.

    `price_at_booking` is already the total paid (price per seat x seats).
    Accepts Decimal, int or str; floats are rejected.
    """
    price = _to_decimal(price_at_booking)
    fee = _to_decimal(cancellation_fee_percent)
    keep_fraction = Decimal(1) - fee / HUNDRED
    return (price * keep_fraction).quantize(CENT, rounding=ROUND_HALF_UP)


def _to_decimal(value) -> Decimal:
    if isinstance(value, float):
        raise TypeError("Monetary values must not be floats")
    return value if isinstance(value, Decimal) else Decimal(value)


def compute_cutoff(start_date: datetime, refundable_until_days_before: int) -> datetime:
    return start_date - timedelta(days=refundable_until_days_before)


def is_before_cutoff(now: datetime, cutoff: datetime) -> bool:
    """Strict: a request at exactly the cutoff is already past it."""
    return now < cutoff


async def cancel_booking(
    db: AsyncSession,
    booking_id: int,
    requesting_user_id: str,
    *,
    now: Optional[datetime] = None,
) -> CancellationResult:
    """
    Cancel a booking on behalf of its owner.

    Raises:
        NotFoundError: booking does not exist
        OwnershipError: requester does not own the booking
        InvalidTransitionError: booking already cancelled or expired
        BookingConflictError: unpaid booking past the refund cutoff
    """
    async with transaction(db):
        # Step 1: Lock the booking row and read the trip policy in one query.
        # The booking lock stops two concurrent cancels from both passing the
        # state check.
        result = await db.execute(
            select(Booking, Trip)
            .join(Trip, Trip.id == Booking.trip_id)
            .where(Booking.id == booking_id)
            .with_for_update(of=Booking)
            .execution_options(populate_existing=True)
        )
        row = result.one_or_none()
        if row is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        booking, trip = row

        if booking.user_id != requesting_user_id:
            raise OwnershipError("You do not own this booking")

        # Step 2: State machine guard
        validate_transition(booking.state, BookingState.CANCELLED)

        # Step 3: Cutoff
        now = now or datetime.now(timezone.utc)
        cutoff = compute_cutoff(trip.start_date, trip.refundable_until_days_before)
        before_cutoff = is_before_cutoff(now, cutoff)

        if not before_cutoff and booking.state != BookingState.CONFIRMED:
            raise BookingConflictError(
                "Only confirmed bookings can be cancelled after the refund cutoff date"
            )

        # Step 4: Refund
        refund_amount = (
            calculate_refund(booking.price_at_booking, trip.cancellation_fee_percent)
            if before_cutoff
            else Decimal("0.00")
        )

        # Step 5: Persist
        previous_state = booking.state
        transition(booking, BookingState.CANCELLED)
        booking.refund_amount = refund_amount
        booking.cancelled_at = now

        # Step 6: Seats go back to the pool only before the cutoff
        if before_cutoff:
            await release_seats(db, booking.trip_id, booking.num_seats)

        await db.flush()

    record_cancellation(before_cutoff)
    logger.info(
        "booking_cancelled",
        booking_id=booking.id,
        user_id=requesting_user_id,
        trip_id=booking.trip_id,
        previous_state=previous_state.value,
        refund_amount=str(refund_amount),
        before_cutoff=before_cutoff,
        seats_released=booking.num_seats if before_cutoff else 0,
    )
    return CancellationResult(
        booking=booking,
        refund_amount=refund_amount,
        seats_released=before_cutoff,
        is_before_cutoff=before_cutoff,
    )
