"""
Append-only ledger of payment-provider notifications.

One row per provider idempotency key. The unique index is what makes
settlement exactly-once: the insert is the gate, not a prior SELECT.
`booking_id` is deliberately not a foreign key so events for unknown
bookings are still recorded.
"""

from sqlalchemy import Column, Integer, String

from trip_booking.db.base import Base, UTCDateTime, utcnow


class PaymentEvent(Base):
    __tablename__ = "payment_events"

    id = Column(Integer, primary_key=True)
    idempotency_key = Column(String(255), nullable=False, unique=True)
    booking_id = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False)
    payment_reference = Column(String(255), nullable=True)
    received_at = Column(UTCDateTime(), nullable=False, default=utcnow)

    def __repr__(self) -> str:
        return f"<PaymentEvent(key={self.idempotency_key}, booking={self.booking_id}, status={self.status})>"
