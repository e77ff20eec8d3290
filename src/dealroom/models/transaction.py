# src/dealroom/models/transaction.py
"""Append-only ledger of money movements tied to a conversation."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealroom.db.session import Base
from dealroom.db.time import utcnow

from .enums import Direction, PaymentStage, TransactionType

if TYPE_CHECKING:
    from .conversation import Conversation

TRANSACTION_STATUS_COMPLETED = "completed"


def _values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


class Transaction(Base):
    """Ledger entry; never updated once inserted.

    ``amount_minor`` (paise/cents) is the authoritative figure; ``amount`` is
    the same value in major units for display.
    """

    __tablename__ = "ledger_transaction"
    __table_args__ = (
        CheckConstraint("amount_minor > 0", name="ck_ledger_amount_positive"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    conversation_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("conversation.id"),
        nullable=False,
        index=True,
    )
    direction: Mapped[Direction] = mapped_column(
        Enum(Direction, native_enum=False, length=8, values_callable=_values),
        nullable=False,
    )
    type: Mapped[TransactionType] = mapped_column(
        Enum(TransactionType, native_enum=False, length=8, values_callable=_values),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_minor: Mapped[int] = mapped_column(BigInteger, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    payment_stage: Mapped[PaymentStage] = mapped_column(
        Enum(PaymentStage, native_enum=False, length=20, values_callable=_values),
        nullable=False,
    )
    sender_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    receiver_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=TRANSACTION_STATUS_COMPLETED
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="transactions")


@event.listens_for(Transaction, "before_update")
def _reject_ledger_updates(mapper, connection, target: Transaction) -> None:  # noqa: ANN001
    state = inspect(target)
    if not any(state.attrs[column.key].history.has_changes() for column in mapper.column_attrs):
        return
    raise ValueError(
        f"Ledger transaction {target.id} is immutable; record a compensating entry instead"
    )
