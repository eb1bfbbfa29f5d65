from trip_booking.models.trip import Trip, TripStatus
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.payment_event import PaymentEvent

__all__ = ["Trip", "TripStatus", "Booking", "BookingState", "PaymentEvent"]
