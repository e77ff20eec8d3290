# src/dealroom/services/errors.py
"""Typed errors raised by the conversation state machine.

Callers branch on the class (or ``code``); the HTTP layer maps
``status_code`` straight onto the response.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


class DealroomError(Exception):
    """Base class for every error the core surfaces to callers."""

    code = "error"
    status_code = 500

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def extra(self) -> dict[str, Any]:
        """Additional fields rendered next to ``detail``."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {"success": False, "error": self.code, "detail": self.detail, **self.extra()}


class NotFound(DealroomError):
    code = "not_found"
    status_code = 404


class Forbidden(DealroomError):
    code = "forbidden"
    status_code = 403


class ValidationError(DealroomError):
    code = "validation_error"
    status_code = 400


class StateConflict(DealroomError):
    """Action is illegal from the current state, or the state moved underneath us."""

    code = "state_conflict"
    status_code = 409

    def __init__(self, detail: str, *, current_state: str | None = None, version: int | None = None) -> None:
        super().__init__(detail)
        self.current_state = current_state
        self.version = version

    def extra(self) -> dict[str, Any]:
        return {"current_state": self.current_state, "version": self.version}


class NegotiationLimitExceeded(DealroomError):
    code = "negotiation_limit_exceeded"
    status_code = 409

    def __init__(self, detail: str, *, allowed_actions: Iterable[str] = ("accept_price", "reject_price")) -> None:
        super().__init__(detail)
        self.allowed_actions = list(allowed_actions)

    def extra(self) -> dict[str, Any]:
        return {"allowed_actions": self.allowed_actions}


class PartialFailure(DealroomError):
    """Money was recorded in the ledger but the follow-up bookkeeping failed.

    Never retry blindly: the ledger row exists and a second attempt would
    record the payout twice.
    """

    code = "partial_failure"
    status_code = 500

    def __init__(self, detail: str, *, transaction_id: int, conversation_id: int, step: str) -> None:
        super().__init__(detail)
        self.transaction_id = transaction_id
        self.conversation_id = conversation_id
        self.step = step

    def extra(self) -> dict[str, Any]:
        return {
            "transaction_id": self.transaction_id,
            "conversation_id": self.conversation_id,
            "failed_step": self.step,
        }
