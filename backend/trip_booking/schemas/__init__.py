from trip_booking.schemas.trip import TripCreate, TripResponse, TripListResponse
from trip_booking.schemas.booking import (
    BookingCreate,
    BookingCancel,
    BookingResponse,
    BookingCancelResponse,
)
from trip_booking.schemas.settlement import PaymentWebhook, PaymentWebhookResponse
from trip_booking.schemas.report import TripMetrics, AtRiskTripsResponse

__all__ = [
    "TripCreate", "TripResponse", "TripListResponse",
    "BookingCreate", "BookingCancel", "BookingResponse", "BookingCancelResponse",
    "PaymentWebhook", "PaymentWebhookResponse",
    "TripMetrics", "AtRiskTripsResponse",
]
