"""
Operator reporting endpoints (read-only).
"""

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.db.base import MAX_INTEGER_ID
from trip_booking.db.session import get_db
from trip_booking.schemas.report import AtRiskTripsResponse, TripMetrics
from trip_booking.services.report_service import get_at_risk_trips, get_trip_metrics

router = APIRouter(prefix="/admin", tags=["Admin"])


# Declared before /trips/{trip_id}/... so "at-risk" is never parsed as an id
@router.get("/trips/at-risk", response_model=AtRiskTripsResponse)
async def at_risk_trips_endpoint(db: AsyncSession = Depends(get_db)):
    return AtRiskTripsResponse(at_risk_trips=await get_at_risk_trips(db))


@router.get("/trips/{trip_id}/metrics", response_model=TripMetrics)
async def trip_metrics_endpoint(
    trip_id: int = Path(..., ge=1, le=MAX_INTEGER_ID),
    db: AsyncSession = Depends(get_db),
):
    return await get_trip_metrics(db, trip_id)
