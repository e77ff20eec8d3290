# src/dealroom/services/payments.py
"""Admin-mediated payment releases.

Every operation writes, in this order and inside the caller's transaction:

1. the state change (flushed, so a stale ``version`` fails before any money
   is recorded),
2. one ledger row,
3. one system message, inside a savepoint.

A failure in step 1 or 2 leaves nothing behind once the caller rolls back.
A failure in step 3 happens after money was recorded: the ledger row and the
state change are committed and ``PartialFailure`` carries the transaction id
so an operator can finish the bookkeeping by hand.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dealroom.core.settings import settings
from dealroom.models import Conversation, Direction, FlowState, Message, PaymentStage, Transaction
from dealroom.services.actor import Actor
from dealroom.services.commission import CommissionRateProvider, CommissionService
from dealroom.services.errors import PartialFailure, StateConflict
from dealroom.services.ledger import LedgerService
from dealroom.services.message_log import MessageLogService
from dealroom.services.money import format_amount, parse_amount
from dealroom.services.transitions import Edge, apply_edge

logger = logging.getLogger(__name__)


@dataclass
class PaymentOutcome:
    transaction: Transaction
    message: Message


def _percent(value: Decimal) -> str:
    return f"{value.normalize():f}"


class PaymentOrchestrator:
    """Records receive/advance/final/refund movements for a conversation."""

    def __init__(
        self,
        db: Session,
        *,
        ledger: LedgerService | None = None,
        messages: MessageLogService | None = None,
        commission: CommissionRateProvider | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger or LedgerService(db)
        self.messages = messages or MessageLogService(db)
        self.commission = commission or CommissionService(db)

    def receive_payment(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> PaymentOutcome:
        """Record money received from the brand owner. Allowed from any state."""
        amount = parse_amount(payload.get("amount"))
        pct = self.commission.get_current_commission_percentage()
        return self._execute(
            conversation,
            actor,
            edge,
            payload,
            stage=PaymentStage.RECEIVED,
            direction=Direction.IN,
            amount=amount,
            sender_id=conversation.brand_owner_id,
            receiver_id=None,
            notes=f"Payment received from brand owner for conversation {conversation.id}",
            body=(
                f"Admin recorded payment from brand owner: {self._money(amount)} "
                f"(commission {_percent(pct)}%)"
            ),
            message_receiver_id=conversation.brand_owner_id,
        )

    def release_advance(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> PaymentOutcome:
        """Pay the influencer's advance and start the work phase."""
        amount = parse_amount(payload.get("amount"))
        pct = self.commission.get_current_commission_percentage()
        return self._execute(
            conversation,
            actor,
            edge,
            payload,
            stage=PaymentStage.ADVANCE,
            direction=Direction.OUT,
            amount=amount,
            sender_id=None,
            receiver_id=conversation.influencer_id,
            notes=f"Advance released to influencer for conversation {conversation.id}",
            body=f"Admin released advance {self._money(amount)} (commission {_percent(pct)}%)",
            message_receiver_id=conversation.influencer_id,
        )

    def release_final(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> PaymentOutcome:
        """Pay the final instalment and close the conversation.

        Raises:
            StateConflict: unless the brand owner has approved the work.
        """
        if conversation.flow_state != FlowState.WORK_APPROVED:
            raise StateConflict(
                "Final payment can only be released after the work is approved",
                current_state=conversation.flow_state.value,
                version=conversation.version,
            )
        amount = parse_amount(payload.get("amount"))
        pct = self.commission.get_current_commission_percentage()
        return self._execute(
            conversation,
            actor,
            edge,
            payload,
            stage=PaymentStage.FINAL,
            direction=Direction.OUT,
            amount=amount,
            sender_id=None,
            receiver_id=conversation.influencer_id,
            notes=f"Final payment released to influencer for conversation {conversation.id}",
            body=(
                f"Admin released final {self._money(amount)} "
                f"(commission {_percent(pct)}%). Conversation closed."
            ),
            message_receiver_id=conversation.influencer_id,
        )

    def refund_final(
        self, conversation: Conversation, actor: Actor, edge: Edge, payload: Mapping[str, Any]
    ) -> PaymentOutcome:
        """Refund the brand owner. Allowed from any state; never pays the influencer."""
        amount = parse_amount(payload.get("amount"))
        return self._execute(
            conversation,
            actor,
            edge,
            payload,
            stage=PaymentStage.REFUND_FINAL,
            direction=Direction.OUT,
            amount=amount,
            sender_id=None,
            receiver_id=conversation.brand_owner_id,
            notes=f"Refund issued to brand owner for conversation {conversation.id}",
            body=f"Admin refunded {self._money(amount)} to brand owner",
            message_receiver_id=conversation.brand_owner_id,
        )

    @staticmethod
    def _money(amount: Decimal) -> str:
        return format_amount(amount, settings.default_currency)

    def _execute(
        self,
        conversation: Conversation,
        actor: Actor,
        edge: Edge,
        payload: Mapping[str, Any],
        *,
        stage: PaymentStage,
        direction: Direction,
        amount: Decimal,
        sender_id: int | None,
        receiver_id: int | None,
        notes: str,
        body: str,
        message_receiver_id: int | None,
    ) -> PaymentOutcome:
        self.ledger.check_stage_order(conversation, stage)

        apply_edge(conversation, edge)
        self.db.flush()

        transaction = self.ledger.append_transaction(
            conversation,
            stage=stage,
            direction=direction,
            amount=amount,
            sender_id=sender_id,
            receiver_id=receiver_id,
            reference=payload.get("reference"),
            notes=payload.get("notes") or notes,
        )

        try:
            with self.db.begin_nested():
                message = self.messages.append_system_message(
                    conversation,
                    body,
                    sender_id=actor.user_id,
                    receiver_id=message_receiver_id,
                    attachments=payload.get("attachments"),
                )
        except SQLAlchemyError as err:
            transaction_id = transaction.id
            conversation_id = conversation.id
            self.db.commit()
            logger.error(
                "PARTIAL FAILURE: %s transaction %s recorded for conversation %s "
                "but the audit message was not written: %s",
                stage.value,
                transaction_id,
                conversation_id,
                err,
            )
            raise PartialFailure(
                f"Payment recorded as transaction {transaction_id} but the audit message "
                "could not be written; reconcile manually and do not retry",
                transaction_id=transaction_id,
                conversation_id=conversation_id,
                step="message",
            ) from err

        return PaymentOutcome(transaction=transaction, message=message)
