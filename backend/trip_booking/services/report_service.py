"""
Read-only reporting queries for operators.

Nothing here writes or locks: these are plain reads of committed state.
"""

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.config import get_settings
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.trip import Trip, TripStatus
from trip_booking.schemas.report import (
    AtRiskTrip,
    BookingSummary,
    FinancialSummary,
    TripMetrics,
)
from trip_booking.services.trip_service import get_trip

CENT = Decimal("0.01")


def _count_state(state: BookingState):
    return func.count(case((Booking.state == state, 1)))


def _money(value) -> Decimal:
    # SQLite hands SUM() back as float; go through str to stay exact at 2dp
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT)


def _occupancy_percent(max_capacity: int, available_seats: int) -> int:
    if max_capacity <= 0:
        return 0
    booked = max_capacity - available_seats
    return int((Decimal(booked) * 100 / Decimal(max_capacity)).quantize(Decimal(1), rounding=ROUND_HALF_UP))


async def get_trip_metrics(db: AsyncSession, trip_id: int) -> TripMetrics:
    """
    Occupancy, booking counts per state and revenue for one trip.

    Gross revenue is what CONFIRMED bookings paid; refunds are what
    CANCELLED bookings got back.
    """
    trip = await get_trip(db, trip_id)

    row = (
        await db.execute(
            select(
                _count_state(BookingState.CONFIRMED).label("confirmed"),
                _count_state(BookingState.PENDING_PAYMENT).label("pending_payment"),
                _count_state(BookingState.CANCELLED).label("cancelled"),
                _count_state(BookingState.EXPIRED).label("expired"),
                func.sum(
                    case((Booking.state == BookingState.CONFIRMED, Booking.price_at_booking))
                ).label("gross_revenue"),
                func.sum(
                    case(
                        (
                            Booking.state == BookingState.CANCELLED,
                            func.coalesce(Booking.refund_amount, 0),
                        )
                    )
                ).label("refunds_issued"),
            ).where(Booking.trip_id == trip_id)
        )
    ).one()

    gross = _money(row.gross_revenue)
    refunds = _money(row.refunds_issued)

    return TripMetrics(
        trip_id=trip.id,
        title=trip.title,
        occupancy_percent=_occupancy_percent(trip.max_capacity, trip.available_seats),
        total_seats=trip.max_capacity,
        booked_seats=trip.max_capacity - trip.available_seats,
        available_seats=trip.available_seats,
        booking_summary=BookingSummary(
            confirmed=row.confirmed,
            pending_payment=row.pending_payment,
            cancelled=row.cancelled,
            expired=row.expired,
        ),
        financial=FinancialSummary(
            gross_revenue=gross,
            refunds_issued=refunds,
            net_revenue=gross - refunds,
        ),
    )


async def get_at_risk_trips(
    db: AsyncSession,
    now: Optional[datetime] = None,
) -> list[AtRiskTrip]:
    """Published trips departing soon with occupancy under the threshold."""
    settings = get_settings()
    now = now or datetime.now(timezone.utc)
    horizon = now + timedelta(days=settings.AT_RISK_WINDOW_DAYS)
    threshold = settings.AT_RISK_OCCUPANCY_PERCENT

    # booked / capacity < threshold%, kept in integers so no dialect casts
    result = await db.execute(
        select(Trip)
        .where(
            Trip.status == TripStatus.PUBLISHED,
            Trip.start_date > now,
            Trip.start_date <= horizon,
            (Trip.max_capacity - Trip.available_seats) * 100 < Trip.max_capacity * threshold,
        )
        .order_by(Trip.start_date.asc(), Trip.id.asc())
    )

    return [
        AtRiskTrip(
            trip_id=trip.id,
            title=trip.title,
            departure_date=trip.start_date.date(),
            occupancy_percent=_occupancy_percent(trip.max_capacity, trip.available_seats),
        )
        for trip in result.scalars().all()
    ]
