# src/dealroom/services/negotiation.py
"""Price negotiation sub-protocol.

The opening offer (``set_price``) is free; every counter-offer after it
consumes one round. Once ``negotiation_round`` reaches the conversation's
cap the only way forward is ``accept_price`` or ``reject_price``.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from dealroom.core.settings import settings
from dealroom.db.time import utc_isoformat
from dealroom.models import Conversation, Message
from dealroom.services.actor import Actor
from dealroom.services.errors import NegotiationLimitExceeded, ValidationError
from dealroom.services.message_log import MessageLogService
from dealroom.services.money import format_amount, parse_amount
from dealroom.services.transitions import Action, Edge, apply_edge

logger = logging.getLogger(__name__)


def _payload_amount(payload: Mapping[str, Any]) -> Decimal:
    value = payload.get("amount", payload.get("price"))
    return parse_amount(value, field="amount")


class NegotiationEngine:
    """Runs the pricing actions against an already guarded conversation."""

    def __init__(self, db: Session, messages: MessageLogService | None = None) -> None:
        self.db = db
        self.messages = messages or MessageLogService(db)

    # -- helpers ---------------------------------------------------------

    def rounds_remaining(self, conversation: Conversation) -> int:
        return max(conversation.max_negotiation_rounds - conversation.negotiation_round, 0)

    def ensure_rounds_left(self, conversation: Conversation, action: Action) -> None:
        """Raise ``NegotiationLimitExceeded`` once the round cap is reached."""
        if conversation.negotiation_round >= conversation.max_negotiation_rounds:
            logger.info(
                "Conversation %s refused %s at round %s/%s",
                conversation.id,
                action.value,
                conversation.negotiation_round,
                conversation.max_negotiation_rounds,
            )
            raise NegotiationLimitExceeded(
                f"Maximum negotiation rounds ({conversation.max_negotiation_rounds}) reached; "
                "accept or reject the current offer"
            )

    def _record(
        self,
        conversation: Conversation,
        actor: Actor,
        *,
        action: str,
        price: Decimal | None,
    ) -> None:
        conversation.append_history(
            {
                "action": action,
                "price": str(price) if price is not None else None,
                "by": actor.role.value,
                "round": conversation.negotiation_round,
                "timestamp": utc_isoformat(),
            }
        )

    def _say(self, conversation: Conversation, actor: Actor, body: str) -> Message:
        return self.messages.append_system_message(
            conversation,
            body,
            sender_id=actor.user_id,
            receiver_id=actor.counterpart_id(conversation),
        )

    @staticmethod
    def _money(amount: Decimal) -> str:
        return format_amount(amount, settings.default_currency)

    # -- actions ---------------------------------------------------------

    def set_price(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Brand owner's opening offer. Does not count as a round."""
        amount = _payload_amount(payload)
        flow = conversation.flow
        flow.current_offer = amount
        conversation.flow = flow
        self._record(conversation, actor, action="offer", price=amount)
        apply_edge(conversation, edge)
        return self._say(conversation, actor, f"Brand owner offered {self._money(amount)}")

    def propose_price(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Counter-offer from whichever participant is awaited."""
        self.ensure_rounds_left(conversation, Action.PROPOSE_PRICE)
        amount = _payload_amount(payload)

        conversation.negotiation_round += 1
        flow = conversation.flow
        flow.current_offer = amount
        conversation.flow = flow
        self._record(conversation, actor, action="counter_offer", price=amount)
        apply_edge(conversation, edge)

        who = actor.role.value.replace("_", " ").capitalize()
        body = (
            f"{who} proposed {self._money(amount)} "
            f"(round {conversation.negotiation_round} of {conversation.max_negotiation_rounds})"
        )
        return self._say(conversation, actor, body)

    def request_negotiation(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Influencer asks to negotiate the standing offer."""
        self.ensure_rounds_left(conversation, Action.NEGOTIATE_PRICE)
        self._record(
            conversation, actor, action="negotiation_requested", price=conversation.flow.current_offer
        )
        apply_edge(conversation, edge)
        note = payload.get("message")
        body = "Influencer requested to negotiate the price"
        return self._say(conversation, actor, f"{body}: {note}" if note else body)

    def open_negotiation(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Brand owner agrees to hear a counter-offer."""
        self.ensure_rounds_left(conversation, Action.OPEN_NEGOTIATION)
        self._record(
            conversation, actor, action="negotiation_opened", price=conversation.flow.current_offer
        )
        apply_edge(conversation, edge)
        return self._say(
            conversation, actor, "Brand owner is open to negotiation. Influencer, please propose your price"
        )

    def decline_negotiation(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Brand owner keeps the standing offer as final."""
        offer = conversation.flow.current_offer
        self._record(conversation, actor, action="negotiation_declined", price=offer)
        apply_edge(conversation, edge)
        body = "Brand owner declined to negotiate"
        if offer is not None:
            body = f"{body}; final offer stands at {self._money(offer)}"
        return self._say(conversation, actor, body)

    def accept_price(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Accept the standing offer, which becomes the agreed amount."""
        flow = conversation.flow
        if flow.current_offer is None:
            raise ValidationError("There is no offer to accept")
        flow.agreed_amount = flow.current_offer
        conversation.flow = flow
        self._record(conversation, actor, action="accept", price=flow.agreed_amount)
        apply_edge(conversation, edge)

        logger.info("Conversation %s agreed at %s", conversation.id, flow.agreed_amount)
        who = actor.role.value.replace("_", " ").capitalize()
        return self._say(
            conversation,
            actor,
            f"{who} accepted {self._money(flow.agreed_amount)}. Awaiting payment",
        )

    def reject_price(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> Message:
        """Reject the standing offer; the negotiation ends for good."""
        self._record(conversation, actor, action="reject", price=conversation.flow.current_offer)
        apply_edge(conversation, edge)
        who = actor.role.value.replace("_", " ").capitalize()
        reason = payload.get("reason")
        body = f"{who} rejected the offer"
        return self._say(conversation, actor, f"{body}: {reason}" if reason else body)
