"""
Pydantic schemas for trip-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, model_validator

from trip_booking.models.trip import TripStatus


class TripCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    destination: str = Field(..., min_length=1, max_length=255)
    start_date: datetime
    end_date: datetime
    price: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    max_capacity: int = Field(..., gt=0, le=100000)
    refundable_until_days_before: int = Field(0, ge=0, le=3650)
    cancellation_fee_percent: Decimal = Field(Decimal("0"), ge=0, le=100, max_digits=5, decimal_places=2)
    status: TripStatus = TripStatus.PUBLISHED

    @model_validator(mode="after")
    def check_dates(self) -> "TripCreate":
        if self.start_date.tzinfo is None or self.end_date.tzinfo is None:
            raise ValueError("start_date and end_date must include a timezone")
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TripResponse(BaseModel):
    id: int
    title: str
    destination: str
    start_date: datetime
    end_date: datetime
    price: Decimal
    max_capacity: int
    available_seats: int
    status: TripStatus
    refundable_until_days_before: int
    cancellation_fee_percent: Decimal
    created_at: datetime

    model_config = {"from_attributes": True}


class TripListResponse(BaseModel):
    trips: list[TripResponse]
    total: int
