# src/dealroom/services/ledger.py
"""Append-only ledger of conversation money movements."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from dealroom.core.settings import settings
from dealroom.models import Conversation, Direction, PaymentStage, Transaction, TransactionType
from dealroom.services.errors import StateConflict
from dealroom.services.money import from_minor_units, to_minor_units

logger = logging.getLogger(__name__)

_DIRECTION_TYPES = {
    Direction.IN: TransactionType.CREDIT,
    Direction.OUT: TransactionType.DEBIT,
}


class LedgerService:
    """Records ledger entries; never edits or deletes one."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def list_transactions(self, conversation_id: int) -> Sequence[Transaction]:
        """Return a conversation's entries in insertion order."""
        return self.db.scalars(
            select(Transaction)
            .where(Transaction.conversation_id == conversation_id)
            .order_by(Transaction.id)
        ).all()

    def highest_stage(self, conversation_id: int) -> PaymentStage | None:
        """Return the furthest stage recorded so far, ignoring refunds."""
        stages = self.db.scalars(
            select(Transaction.payment_stage)
            .where(
                Transaction.conversation_id == conversation_id,
                Transaction.payment_stage != PaymentStage.REFUND_FINAL,
            )
            .distinct()
        ).all()
        ranked = [PaymentStage(stage) for stage in stages]
        if not ranked:
            return None
        return max(ranked, key=lambda stage: stage.rank)

    def check_stage_order(self, conversation: Conversation, stage: PaymentStage) -> None:
        """Refuse a stage that would move the ledger backwards.

        Raises:
            StateConflict: when ``stage`` ranks below an already recorded stage.
        """
        if stage.rank is None:
            return
        highest = self.highest_stage(conversation.id)
        if highest is not None and stage.rank < highest.rank:
            raise StateConflict(
                f"Ledger already recorded stage '{highest.value}'; cannot record '{stage.value}'",
                current_state=conversation.flow_state.value,
                version=conversation.version,
            )

    def append_transaction(
        self,
        conversation: Conversation,
        *,
        stage: PaymentStage,
        direction: Direction,
        amount: Decimal,
        sender_id: int | None,
        receiver_id: int | None,
        reference: str | None = None,
        notes: str | None = None,
        currency: str | None = None,
    ) -> Transaction:
        """Insert one completed ledger entry and flush it.

        ``amount`` must already be validated as positive; the stored minor
        units are derived from it once and never recomputed.
        """
        self.check_stage_order(conversation, stage)
        amount_minor = to_minor_units(amount)
        transaction = Transaction(
            conversation_id=conversation.id,
            direction=direction,
            type=_DIRECTION_TYPES[direction],
            amount=from_minor_units(amount_minor),
            amount_minor=amount_minor,
            currency=currency or settings.default_currency,
            payment_stage=stage,
            sender_id=sender_id,
            receiver_id=receiver_id,
            reference=reference,
            notes=notes,
        )
        self.db.add(transaction)
        self.db.flush()
        logger.info(
            "Recorded %s transaction %s for conversation %s (%s minor units)",
            stage.value,
            transaction.id,
            conversation.id,
            amount_minor,
        )
        return transaction
