"""
Settlement processor: applies payment-provider outcomes to bookings.

Provider notifications are untrusted, may be duplicated and may arrive out
of order. The provider retries anything that is not a success response, so
every business outcome here is a success-shaped result:

    duplicate   same idempotency key seen before, nothing done
    skipped     unknown booking, or booking already terminal (stale event)
    confirmed   PENDING_PAYMENT -> CONFIRMED, seats stay sold
    expired     PENDING_PAYMENT -> EXPIRED, seats released

The ledger insert, the booking transition and the seat release are one
transaction. If the database fails mid-way everything rolls back, the
event is not recorded, and the exception propagates so the provider's
retry can succeed later.
"""

import enum
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.core.logging import get_logger
from trip_booking.core.metrics import record_payment_event
from trip_booking.db.session import transaction
from trip_booking.models.booking import Booking, BookingState
from trip_booking.models.payment_event import PaymentEvent
from trip_booking.services.inventory import release_seats
from trip_booking.services.state_machine import can_transition, transition

logger = get_logger(__name__)


class PaymentOutcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failed"


class SettlementAction(str, enum.Enum):
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    CONFIRMED = "confirmed"
    EXPIRED = "expired"


TARGET_STATES = {
    PaymentOutcome.SUCCESS: BookingState.CONFIRMED,
    PaymentOutcome.FAILURE: BookingState.EXPIRED,
}

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


@dataclass
class SettlementResult:
    action: SettlementAction
    already_processed: bool = False


async def _record_event(
    db: AsyncSession,
    booking_id: int,
    outcome: PaymentOutcome,
    idempotency_key: str,
    payment_reference: Optional[str],
) -> bool:
    """
    INSERT ... ON CONFLICT (idempotency_key) DO NOTHING.

    Returns True if this call inserted the row. Two simultaneous deliveries
    of the same key serialize on the unique index: exactly one sees rowcount 1.
    """
    dialect = db.get_bind().dialect.name
    insert = _INSERT_BY_DIALECT.get(dialect)
    if insert is None:
        raise RuntimeError(f"Idempotent insert is not supported on {dialect}")

    stmt = (
        insert(PaymentEvent.__table__)
        .values(
            idempotency_key=idempotency_key,
            booking_id=booking_id,
            status=outcome.value,
            payment_reference=payment_reference,
        )
        .on_conflict_do_nothing(index_elements=["idempotency_key"])
    )
    result = await db.execute(stmt)
    return result.rowcount == 1


async def apply_payment_outcome(
    db: AsyncSession,
    booking_id: int,
    outcome: PaymentOutcome,
    idempotency_key: str,
    payment_reference: Optional[str] = None,
) -> SettlementResult:
    outcome = PaymentOutcome(outcome)
    log = logger.bind(booking_id=booking_id, outcome=outcome.value, idempotency_key=idempotency_key)

    async with transaction(db):
        # Step 1: Idempotency gate
        if not await _record_event(db, booking_id, outcome, idempotency_key, payment_reference):
            log.info("payment_event_duplicate")
            result = SettlementResult(SettlementAction.DUPLICATE, already_processed=True)
            record_payment_event(result.action.value)
            return result

        # Step 2: Load and lock the booking
        booking = (
            await db.execute(
                select(Booking)
                .where(Booking.id == booking_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
        ).scalar_one_or_none()

        if booking is None:
            log.warning("payment_event_unknown_booking")
            record_payment_event(SettlementAction.SKIPPED.value)
            return SettlementResult(SettlementAction.SKIPPED)

        # Step 3: Stale event check
        target = TARGET_STATES[outcome]
        if not can_transition(booking.state, target):
            log.warning(
                "payment_event_stale",
                current_state=booking.state.value,
                target_state=target.value,
            )
            record_payment_event(SettlementAction.SKIPPED.value)
            return SettlementResult(SettlementAction.SKIPPED)

        # Step 4: Apply
        transition(booking, target)
        if target == BookingState.CONFIRMED:
            if payment_reference:
                booking.payment_reference = payment_reference
            action = SettlementAction.CONFIRMED
        else:
            await release_seats(db, booking.trip_id, booking.num_seats)
            action = SettlementAction.EXPIRED

        await db.flush()

    log.info("payment_event_applied", action=action.value, trip_id=booking.trip_id)
    record_payment_event(action.value)
    return SettlementResult(action)
