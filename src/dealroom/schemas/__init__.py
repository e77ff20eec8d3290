# src/dealroom/schemas/__init__.py
"""Pydantic schemas for the Dealroom API."""

from .commission import (
    CommissionCurrentResponse,
    CommissionHistoryResponse,
    CommissionSettingResponse,
    CommissionUpdate,
)
from .conversation import (
    ActionRequest,
    ActionResponse,
    ConversationCreate,
    ConversationDetailResponse,
    ConversationResponse,
    PaymentBreakdownResponse,
)
from .message import MessageCreate, MessageResponse, SeenResponse
from .payment import PaymentRequest, TransactionResponse

__all__ = [
    "ActionRequest",
    "ActionResponse",
    "CommissionCurrentResponse",
    "CommissionHistoryResponse",
    "CommissionSettingResponse",
    "CommissionUpdate",
    "ConversationCreate",
    "ConversationDetailResponse",
    "ConversationResponse",
    "MessageCreate",
    "MessageResponse",
    "PaymentBreakdownResponse",
    "PaymentRequest",
    "SeenResponse",
    "TransactionResponse",
]
