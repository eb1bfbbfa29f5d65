"""
Booking lifecycle state machine.

    PENDING_PAYMENT --> CONFIRMED --> CANCELLED
          |  \
          |   +-------------------> CANCELLED
          +-----------------------> EXPIRED

CANCELLED and EXPIRED are terminal. Every code path that changes
`Booking.state` goes through `transition()`; the bulk expiry in the sweeper
only selects rows already known to be PENDING_PAYMENT.

CONFIRMED -> CANCELLED is additionally gated by the refund cutoff rule in
the cancellation service; the table alone does not decide it.
"""

from trip_booking.core.exceptions import InvalidTransitionError
from trip_booking.models.booking import Booking, BookingState

VALID_TRANSITIONS: dict[BookingState, frozenset[BookingState]] = {
    BookingState.PENDING_PAYMENT: frozenset(
        {BookingState.CONFIRMED, BookingState.EXPIRED, BookingState.CANCELLED}
    ),
    BookingState.CONFIRMED: frozenset({BookingState.CANCELLED}),
    BookingState.CANCELLED: frozenset(),
    BookingState.EXPIRED: frozenset(),
}

TERMINAL_STATES = frozenset(state for state, targets in VALID_TRANSITIONS.items() if not targets)


def can_transition(current: BookingState, target: BookingState) -> bool:
    return BookingState(target) in VALID_TRANSITIONS[BookingState(current)]


def validate_transition(current: BookingState, target: BookingState) -> None:
    """Raise InvalidTransitionError if current -> target is not an edge."""
    if not can_transition(current, target):
        raise InvalidTransitionError(BookingState(current).value, BookingState(target).value)


def transition(booking: Booking, target: BookingState) -> None:
    """Validate, then move the booking. No side effect on failure."""
    validate_transition(booking.state, target)
    booking.state = target
