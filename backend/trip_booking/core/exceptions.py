"""
Business-rule failures raised by the booking engines.

Every subclass of BookingError is an operational error: expected, caused by
the caller's input or by the current state of a trip or booking, and safe to
show to the client. The HTTP layer maps them with `status_code`. Anything
else (driver errors, SeatInventoryError) is a bug or an outage and is left
to propagate as a 500.
"""

from typing import Any, Optional


class BookingError(Exception):
    status_code: int = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message}


class NotFoundError(BookingError):
    status_code = 404


class InvalidStateError(BookingError):
    """Trip is not bookable (draft, departed)."""

    status_code = 400


class BookingConflictError(BookingError):
    status_code = 409


class InvalidTransitionError(BookingConflictError):
    def __init__(self, current: str, target: str, message: Optional[str] = None):
        super().__init__(message or f"Invalid booking state transition: {current} -> {target}")
        self.current = current
        self.target = target


class CapacityConflictError(BookingConflictError):
    def __init__(self, requested: int, available: int):
        super().__init__(f"Only {available} seat(s) available, {requested} requested")
        self.requested = requested
        self.available = available

    def to_dict(self) -> dict[str, Any]:
        return {"detail": self.message, "available_seats": self.available}


class OwnershipError(BookingError):
    status_code = 403


class SeatInventoryError(RuntimeError):
    """
    A seat counter was about to leave [0, max_capacity].

    Callers capacity-check under the trip lock before mutating, so reaching
    this means the locking protocol was broken. Never caught by the engines.
    """
