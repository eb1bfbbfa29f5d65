"""
Trip catalog endpoints. Seat counts are always read live from the database.
"""

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.db.base import MAX_INTEGER_ID
from trip_booking.db.session import get_db
from trip_booking.schemas.trip import TripCreate, TripResponse, TripListResponse
from trip_booking.services.trip_service import (
    create_trip,
    get_trip,
    list_published_trips,
    publish_trip,
)

router = APIRouter(prefix="/trips", tags=["Trips"])


@router.post("/", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
async def create_trip_endpoint(
    trip_data: TripCreate,
    db: AsyncSession = Depends(get_db),
):
    """Create a new trip with every seat available."""
    return await create_trip(db, trip_data)


@router.get("/", response_model=TripListResponse)
async def list_trips_endpoint(
    upcoming_only: bool = Query(True),
    db: AsyncSession = Depends(get_db),
):
    """List published trips ordered by departure."""
    trips = await list_published_trips(db, upcoming_only=upcoming_only)
    return TripListResponse(
        trips=[TripResponse.model_validate(t) for t in trips],
        total=len(trips),
    )


@router.get("/{trip_id}", response_model=TripResponse)
async def get_trip_endpoint(
    trip_id: int = Path(..., ge=1, le=MAX_INTEGER_ID),
    db: AsyncSession = Depends(get_db),
):
    return await get_trip(db, trip_id)


@router.post("/{trip_id}/publish", response_model=TripResponse)
async def publish_trip_endpoint(
    trip_id: int = Path(..., ge=1, le=MAX_INTEGER_ID),
    db: AsyncSession = Depends(get_db),
):
    """Open a draft trip for booking."""
    return await publish_trip(db, trip_id)
