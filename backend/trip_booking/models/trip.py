"""
Trip model with seat inventory tracking.

Key design decisions:
- `available_seats` is denormalized and is the single serialization point
  for seat sales: it is only written while the row is locked FOR UPDATE
- CHECK constraints keep it inside [0, max_capacity] at the DB level
- Refund policy lives on the trip and is read at cancellation time
"""

import enum

from sqlalchemy import (
    CheckConstraint,
    Column,
    Enum,
    Index,
    Integer,
    Numeric,
    String,
)

from trip_booking.db.base import Base, TimestampMixin, UTCDateTime


class TripStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"


class Trip(Base, TimestampMixin):
    __tablename__ = "trips"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    destination = Column(String(255), nullable=False)
    start_date = Column(UTCDateTime(), nullable=False)
    end_date = Column(UTCDateTime(), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    max_capacity = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    status = Column(
        Enum(TripStatus, native_enum=False, length=20, validate_strings=True),
        nullable=False,
        default=TripStatus.DRAFT,
    )

    # Refund policy
    refundable_until_days_before = Column(Integer, nullable=False, default=0)
    cancellation_fee_percent = Column(Numeric(5, 2), nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        CheckConstraint("max_capacity > 0", name="check_max_capacity_positive"),
        CheckConstraint("available_seats <= max_capacity", name="check_available_lte_capacity"),
        CheckConstraint("price >= 0", name="check_price_non_negative"),
        CheckConstraint("refundable_until_days_before >= 0", name="check_refund_days_non_negative"),
        CheckConstraint(
            "cancellation_fee_percent >= 0 AND cancellation_fee_percent <= 100",
            name="check_cancellation_fee_range",
        ),
        CheckConstraint("status IN ('DRAFT', 'PUBLISHED')", name="check_trip_status"),
        # Listing of published trips ordered by departure
        Index("ix_trips_status_start_date", "status", "start_date"),
    )

    def __repr__(self) -> str:
        return f"<Trip(id={self.id}, title={self.title}, available={self.available_seats}/{self.max_capacity})>"
