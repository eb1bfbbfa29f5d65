"""
Trip catalog: create, publish, read.

The catalog never touches `available_seats` after creation; seat changes
go through the inventory controller only.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.exceptions import InvalidStateError, NotFoundError
from trip_booking.core.logging import get_logger
from trip_booking.db.session import transaction
from trip_booking.models.trip import Trip, TripStatus
from trip_booking.schemas.trip import TripCreate
from trip_booking.services.inventory import lock_trip

logger = get_logger(__name__)


async def create_trip(db: AsyncSession, trip_data: TripCreate) -> Trip:
    """Create a trip with every seat available."""
    if trip_data.start_date <= datetime.now(timezone.utc):
        raise InvalidStateError("Trip start date must be in the future")

    trip = Trip(
        title=trip_data.title,
        destination=trip_data.destination,
        start_date=trip_data.start_date,
        end_date=trip_data.end_date,
        price=trip_data.price,
        max_capacity=trip_data.max_capacity,
        available_seats=trip_data.max_capacity,  # All seats available initially
        status=trip_data.status,
        refundable_until_days_before=trip_data.refundable_until_days_before,
        cancellation_fee_percent=trip_data.cancellation_fee_percent,
    )
    async with transaction(db):
        db.add(trip)
        await db.flush()

    logger.info(
        "trip_created",
        trip_id=trip.id,
        title=trip.title,
        seats=trip.max_capacity,
        status=trip.status.value,
    )
    return trip


async def publish_trip(db: AsyncSession, trip_id: int) -> Trip:
    """DRAFT -> PUBLISHED. Publishing an already published trip is a no-op."""
    async with transaction(db):
        trip = await lock_trip(db, trip_id)
        if trip is None:
            raise NotFoundError(f"Trip {trip_id} not found")
        if trip.status != TripStatus.PUBLISHED:
            trip.status = TripStatus.PUBLISHED
            logger.info("trip_published", trip_id=trip.id)
    return trip


async def get_trip(db: AsyncSession, trip_id: int) -> Trip:
    """Get a single trip by ID."""
    result = await db.execute(
        select(Trip).where(Trip.id == trip_id).execution_options(populate_existing=True)
    )
    trip = result.scalar_one_or_none()

    if not trip:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


async def list_published_trips(
    db: AsyncSession,
    upcoming_only: bool = True,
    now: Optional[datetime] = None,
) -> list[Trip]:
    """
    Published trips ordered by departure.
    Uses the ix_trips_status_start_date index.
    """
    query = select(Trip).where(Trip.status == TripStatus.PUBLISHED)
    if upcoming_only:
        query = query.where(Trip.start_date > (now or datetime.now(timezone.utc)))

    result = await db.execute(query.order_by(Trip.start_date.asc(), Trip.id.asc()))
    return list(result.scalars().all())
