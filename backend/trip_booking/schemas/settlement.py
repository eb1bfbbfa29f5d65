"""
Pydantic schemas for the payment provider webhook.
"""

from typing import Optional
from pydantic import BaseModel, Field

from trip_booking.db.base import MAX_INTEGER_ID
from trip_booking.services.settlement_service import PaymentOutcome, SettlementAction


class PaymentWebhook(BaseModel):
    booking_id: int = Field(..., ge=1, le=MAX_INTEGER_ID)
    status: PaymentOutcome
    idempotency_key: str = Field(..., min_length=1, max_length=255)
    payment_reference: Optional[str] = Field(None, max_length=255)


class PaymentWebhookResponse(BaseModel):
    received: bool = True
    action: SettlementAction
