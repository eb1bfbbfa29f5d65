"""Initial schema: trips, bookings, payment_events with indexes and constraints.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Trips table
    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("available_seats", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'DRAFT'")),
        sa.Column("refundable_until_days_before", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cancellation_fee_percent", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # Inventory bounds: the last line of defence against overselling
        sa.CheckConstraint("available_seats >= 0", name="check_available_seats_non_negative"),
        sa.CheckConstraint("max_capacity > 0", name="check_max_capacity_positive"),
        sa.CheckConstraint("available_seats <= max_capacity", name="check_available_lte_capacity"),
        sa.CheckConstraint("price >= 0", name="check_price_non_negative"),
        sa.CheckConstraint("refundable_until_days_before >= 0", name="check_refund_days_non_negative"),
        sa.CheckConstraint(
            "cancellation_fee_percent >= 0 AND cancellation_fee_percent <= 100",
            name="check_cancellation_fee_range",
        ),
        sa.CheckConstraint("status IN ('DRAFT', 'PUBLISHED')", name="check_trip_status"),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    # Catalog listing: WHERE status = 'PUBLISHED' ORDER BY start_date
    op.create_index("ix_trips_status_start_date", "trips", ["status", "start_date"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("user_id", sa.String(255), nullable=False),
        sa.Column("num_seats", sa.Integer(), nullable=False),
        sa.Column("state", sa.String(20), nullable=False, server_default=sa.text("'PENDING_PAYMENT'")),
        sa.Column("price_at_booking", sa.Numeric(12, 2), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # One row per logical client intent; the durable idempotency guard
        sa.UniqueConstraint("user_id", "idempotency_key", name="uq_booking_idempotency"),
        sa.CheckConstraint("num_seats > 0", name="check_booking_num_seats_positive"),
        sa.CheckConstraint(
            "state IN ('PENDING_PAYMENT', 'CONFIRMED', 'CANCELLED', 'EXPIRED')",
            name="check_booking_state",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_trip_id", "bookings", ["trip_id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    # Expiry sweeper scan: WHERE state = 'PENDING_PAYMENT' AND expires_at < now()
    op.create_index("ix_bookings_state_expires_at", "bookings", ["state", "expires_at"])

    # Payment provider event ledger
    op.create_table(
        "payment_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("idempotency_key", sa.String(255), nullable=False),
        sa.Column("booking_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("payment_reference", sa.String(255), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("idempotency_key", name="uq_payment_events_idempotency_key"),
    )
    op.create_index("ix_payment_events_booking_id", "payment_events", ["booking_id"])


def downgrade() -> None:
    op.drop_table("payment_events")
    op.drop_table("bookings")
    op.drop_table("trips")
