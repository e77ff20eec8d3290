# src/dealroom/models/enums.py
"""Closed enumerations shared by models, services and schemas."""

from enum import StrEnum


class FlowState(StrEnum):
    """Position of a conversation in the negotiation/fulfilment flow."""

    INFLUENCER_RESPONDING = "influencer_responding"
    BRAND_OWNER_DETAILS = "brand_owner_details"
    INFLUENCER_REVIEWING = "influencer_reviewing"
    BRAND_OWNER_PRICING = "brand_owner_pricing"
    INFLUENCER_PRICE_RESPONSE = "influencer_price_response"
    BRAND_OWNER_NEGOTIATION = "brand_owner_negotiation"
    INFLUENCER_PRICE_INPUT = "influencer_price_input"
    BRAND_OWNER_PRICE_RESPONSE = "brand_owner_price_response"
    INFLUENCER_FINAL_RESPONSE = "influencer_final_response"
    PAYMENT_PENDING = "payment_pending"
    WORK_IN_PROGRESS = "work_in_progress"
    WORK_SUBMITTED = "work_submitted"
    WORK_REVISION_REQUESTED = "work_revision_requested"
    WORK_APPROVED = "work_approved"
    CLOSED = "closed"
    CONNECTION_REJECTED = "connection_rejected"
    NEGOTIATION_REJECTED = "negotiation_rejected"


TERMINAL_STATES: frozenset[FlowState] = frozenset(
    {
        FlowState.CLOSED,
        FlowState.CONNECTION_REJECTED,
        FlowState.NEGOTIATION_REJECTED,
    }
)


class ActorRole(StrEnum):
    """Role claimed by the caller of an action."""

    BRAND_OWNER = "brand_owner"
    INFLUENCER = "influencer"
    ADMIN = "admin"


class AwaitingRole(StrEnum):
    """Participant whose action is required to advance a conversation."""

    BRAND_OWNER = "brand_owner"
    INFLUENCER = "influencer"


class MessageType(StrEnum):
    USER_INPUT = "user_input"
    SYSTEM = "system"


class MessageStatus(StrEnum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"


class PaymentStage(StrEnum):
    """Ledger stage; ``rank`` gives the forward-only order per conversation."""

    RECEIVED = "received"
    ADVANCE = "advance"
    FINAL = "final"
    REFUND_FINAL = "refund_final"

    @property
    def rank(self) -> int | None:
        # Refunds are a compensating path outside the natural order.
        return _STAGE_RANKS.get(self)


_STAGE_RANKS = {
    PaymentStage.RECEIVED: 0,
    PaymentStage.ADVANCE: 1,
    PaymentStage.FINAL: 2,
}


class Direction(StrEnum):
    IN = "in"
    OUT = "out"


class TransactionType(StrEnum):
    CREDIT = "credit"
    DEBIT = "debit"
