"""
Payment provider webhook.

Always answers 200 for a well-formed payload, whatever happened to the
booking: the provider retries on anything else, and the idempotency key
already guarantees each event is applied once.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trip_booking.db.session import get_db
from trip_booking.schemas.settlement import PaymentWebhook, PaymentWebhookResponse
from trip_booking.services.settlement_service import apply_payment_outcome

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


@router.post("/payment", response_model=PaymentWebhookResponse)
async def payment_webhook(
    payload: PaymentWebhook,
    db: AsyncSession = Depends(get_db),
):
    result = await apply_payment_outcome(
        db,
        booking_id=payload.booking_id,
        outcome=payload.status,
        idempotency_key=payload.idempotency_key,
        payment_reference=payload.payment_reference,
    )
    return PaymentWebhookResponse(received=True, action=result.action)
