# src/dealroom/services/__init__.py
"""Business logic services for the Dealroom application."""

from .actor import Actor
from .commission import CommissionService
from .conversations import ActionResult, ConversationService
from .ledger import LedgerService
from .message_log import MessageLogService
from .negotiation import NegotiationEngine
from .payments import PaymentOrchestrator

__all__ = [
    "Actor",
    "ActionResult",
    "CommissionService",
    "ConversationService",
    "LedgerService",
    "MessageLogService",
    "NegotiationEngine",
    "PaymentOrchestrator",
]
