# src/dealroom/schemas/conversation.py
"""Conversation and action envelope schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dealroom.models import AwaitingRole, FlowState

from .message import MessageResponse
from .payment import TransactionResponse


class ConversationCreate(BaseModel):
    """Start (or fetch the open) conversation for a campaign or bid.

    The caller fills in the other participant; their own id comes from the token.
    """

    brand_owner_id: int | None = None
    influencer_id: int | None = None
    campaign_id: int | None = None
    bid_id: int | None = None
    max_negotiation_rounds: int | None = Field(None, ge=0, le=20)

    @model_validator(mode="after")
    def check_single_source(self) -> "ConversationCreate":
        if (self.campaign_id is None) == (self.bid_id is None):
            raise ValueError("Provide exactly one of campaign_id or bid_id")
        return self


class ConversationResponse(BaseModel):
    """Schema for conversation information returned by the API."""

    id: int
    brand_owner_id: int
    influencer_id: int
    campaign_id: int | None
    bid_id: int | None
    flow_state: FlowState
    awaiting_role: AwaitingRole | None
    negotiation_round: int
    max_negotiation_rounds: int
    negotiation_history: list[dict[str, Any]]
    flow_data: dict[str, Any]
    revision_count: int
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class PaymentBreakdownResponse(BaseModel):
    commission_percentage: Decimal
    total_amount: Decimal
    commission_amount: Decimal
    net_amount: Decimal
    advance_amount: Decimal
    final_amount: Decimal


class ConversationDetailResponse(BaseModel):
    conversation: ConversationResponse
    payment_breakdown: PaymentBreakdownResponse | None
    allowed_actions: list[str]
    negotiation_rounds_remaining: int


class ActionRequest(BaseModel):
    """Action envelope: ``{action, payload, expected_version?}``."""

    action: str = Field(..., min_length=1, max_length=64)
    payload: dict[str, Any] = Field(default_factory=dict)
    expected_version: int | None = Field(
        None, ge=1, description="Reject the action if the conversation moved past this version"
    )


class ActionResponse(BaseModel):
    success: bool = True
    conversation: ConversationResponse
    message: MessageResponse | None
    transaction: TransactionResponse | None
    flow_state: FlowState
    awaiting_role: AwaitingRole | None
    payment_breakdown: PaymentBreakdownResponse | None = Field(
        None, description="Commission split of the agreed amount; set on admin payment responses"
    )
