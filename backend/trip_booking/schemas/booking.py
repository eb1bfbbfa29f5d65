"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, Field

from trip_booking.db.base import MAX_INTEGER_ID
from trip_booking.models.booking import BookingState


class BookingCreate(BaseModel):
    trip_id: int = Field(..., ge=1, le=MAX_INTEGER_ID)
    user_id: str = Field(..., min_length=1, max_length=255)
    num_seats: int = Field(default=1, gt=0, le=50)
    idempotency_key: str = Field(..., min_length=1, max_length=255)


class BookingCancel(BaseModel):
    user_id: str = Field(..., min_length=1, max_length=255)


class BookingResponse(BaseModel):
    id: int
    trip_id: int
    user_id: str
    num_seats: int
    state: BookingState
    price_at_booking: Decimal
    expires_at: datetime
    idempotency_key: str
    payment_reference: Optional[str] = None
    refund_amount: Optional[Decimal] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class RefundInfo(BaseModel):
    amount: Decimal
    issued: bool
    seats_released: bool


class BookingCancelResponse(BaseModel):
    booking: BookingResponse
    refund: RefundInfo
