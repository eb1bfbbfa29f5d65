"""
Pydantic schemas for the read-only reporting endpoints.
"""

from datetime import date
from decimal import Decimal
from pydantic import BaseModel


class BookingSummary(BaseModel):
    confirmed: int = 0
    pending_payment: int = 0
    cancelled: int = 0
    expired: int = 0


class FinancialSummary(BaseModel):
    gross_revenue: Decimal
    refunds_issued: Decimal
    net_revenue: Decimal


class TripMetrics(BaseModel):
    trip_id: int
    title: str
    occupancy_percent: int
    total_seats: int
    booked_seats: int
    available_seats: int
    booking_summary: BookingSummary
    financial: FinancialSummary


class AtRiskTrip(BaseModel):
    trip_id: int
    title: str
    departure_date: date
    occupancy_percent: int
    reason: str = "Low occupancy with imminent departure"


class AtRiskTripsResponse(BaseModel):
    at_risk_trips: list[AtRiskTrip]
