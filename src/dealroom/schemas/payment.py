# src/dealroom/schemas/payment.py
"""Payment and ledger schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from dealroom.models import Direction, PaymentStage, TransactionType


class PaymentRequest(BaseModel):
    """Body of the admin payment endpoints.

    ``amount`` is range-checked by the service so that every malformed
    amount is reported the same way.
    """

    amount: Decimal = Field(..., description="Amount in major currency units")
    reference: str | None = Field(None, max_length=255, description="External payment reference")
    notes: str | None = Field(None, max_length=2000)
    attachments: list[Any] | None = None

    def as_payload(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class TransactionResponse(BaseModel):
    """Schema for a ledger entry."""

    id: int
    conversation_id: int
    direction: Direction
    type: TransactionType
    amount: Decimal
    amount_minor: int
    currency: str
    payment_stage: PaymentStage
    sender_id: int | None
    receiver_id: int | None
    reference: str | None
    notes: str | None
    status: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
