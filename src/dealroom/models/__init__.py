# src/dealroom/models/__init__.py
"""SQLAlchemy models for the Dealroom application."""

from .commission import CommissionSetting
from .conversation import Conversation, FlowData
from .deal_request import DealRequest
from .enums import (
    TERMINAL_STATES,
    ActorRole,
    AwaitingRole,
    Direction,
    FlowState,
    MessageStatus,
    MessageType,
    PaymentStage,
    TransactionType,
)
from .message import Message
from .notification import Notification
from .transaction import Transaction

__all__ = [
    "CommissionSetting",
    "Conversation", "FlowData",
    "DealRequest",
    "Message",
    "Notification",
    "Transaction",
    "TERMINAL_STATES", "ActorRole", "AwaitingRole", "Direction", "FlowState",
    "MessageStatus", "MessageType", "PaymentStage", "TransactionType",
]
