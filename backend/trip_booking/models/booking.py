"""
Booking model representing one hold of N seats on one trip by one user.

Key design decisions:
- Unique constraint on (user_id, idempotency_key) is the durable guard
  against double-submits: at most one row per logical client intent
- `price_at_booking` is a snapshot (price x seats) and never recomputed
- Rows are never deleted; the state column records the whole lifecycle
- (state, expires_at) index serves the expiry sweeper's scan
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)

from trip_booking.db.base import Base, TimestampMixin, UTCDateTime


class BookingState(str, enum.Enum):
    PENDING_PAYMENT = "PENDING_PAYMENT"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    EXPIRED = "EXPIRED"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    trip_id = Column(Integer, ForeignKey("trips.id"), nullable=False, index=True)
    user_id = Column(String(255), nullable=False, index=True)
    num_seats = Column(Integer, nullable=False)
    state = Column(
        Enum(BookingState, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=BookingState.PENDING_PAYMENT,
    )
    price_at_booking = Column(Numeric(12, 2), nullable=False)
    expires_at = Column(UTCDateTime(), nullable=False)
    idempotency_key = Column(String(255), nullable=False)

    payment_reference = Column(String(255), nullable=True)
    refund_amount = Column(Numeric(12, 2), nullable=True)
    cancelled_at = Column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("user_id", "idempotency_key", name="uq_booking_idempotency"),
        CheckConstraint("num_seats > 0", name="check_booking_num_seats_positive"),
        CheckConstraint(
            "state IN ('PENDING_PAYMENT', 'CONFIRMED', 'CANCELLED', 'EXPIRED')",
            name="check_booking_state",
        ),
        Index("ix_bookings_state_expires_at", "state", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, trip={self.trip_id}, user={self.user_id}, state={self.state})>"
