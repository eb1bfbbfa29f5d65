"""
Booking endpoints: reserve, look up, cancel.
"""

from fastapi import APIRouter, Depends, Path, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.db.base import MAX_INTEGER_ID
from trip_booking.db.session import get_db
from trip_booking.schemas.booking import (
    BookingCancel,
    BookingCancelResponse,
    BookingCreate,
    BookingResponse,
    RefundInfo,
)
from trip_booking.services.booking_service import get_booking, get_user_bookings, reserve_seats
from trip_booking.services.cancellation_service import cancel_booking

router = APIRouter(prefix="/bookings", tags=["Bookings"])


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    responses={200: {"model": BookingResponse, "description": "Idempotent replay"}},
)
async def create_booking(
    booking_data: BookingCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    """
    Hold seats on a trip while payment is pending.

    Resending the same (user_id, idempotency_key) returns the original
    booking with 200 instead of 201 and takes no further seats.
    """
    result = await reserve_seats(
        db,
        trip_id=booking_data.trip_id,
        user_id=booking_data.user_id,
        num_seats=booking_data.num_seats,
        idempotency_key=booking_data.idempotency_key,
    )
    if result.already_existed:
        response.status_code = status.HTTP_200_OK
    return result.booking


@router.get("/", response_model=list[BookingResponse])
async def list_user_bookings(
    user_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Get all bookings for a user."""
    return await get_user_bookings(db, user_id)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: int = Path(..., ge=1, le=MAX_INTEGER_ID),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id)


@router.post("/{booking_id}/cancel", response_model=BookingCancelResponse)
async def cancel_booking_endpoint(
    cancel_data: BookingCancel,
    booking_id: int = Path(..., ge=1, le=MAX_INTEGER_ID),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a booking; refund and seat release depend on the trip's cutoff."""
    result = await cancel_booking(db, booking_id, cancel_data.user_id)
    return BookingCancelResponse(
        booking=BookingResponse.model_validate(result.booking),
        refund=RefundInfo(
            amount=result.refund_amount,
            issued=result.is_before_cutoff,
            seats_released=result.seats_released,
        ),
    )
