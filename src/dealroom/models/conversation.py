# src/dealroom/models/conversation.py
"""Conversation aggregate root and its typed flow data."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum,
    Index,
    Integer,
    TextClause,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealroom.db.session import Base
from dealroom.db.time import utcnow

from .enums import TERMINAL_STATES, AwaitingRole, FlowState

if TYPE_CHECKING:
    from .message import Message
    from .transaction import Transaction


def _enum_values(enum_cls: type) -> list[str]:
    return [member.value for member in enum_cls]


def _open_only() -> TextClause:
    """WHERE clause limiting an index to conversations that are still open."""
    terminal = ", ".join(f"'{state.value}'" for state in sorted(TERMINAL_STATES))
    return text(f"flow_state NOT IN ({terminal})")


def _one_open_per(source: str) -> Index:
    return Index(
        f"uq_conversation_open_{source.removesuffix('_id')}",
        "brand_owner_id",
        "influencer_id",
        source,
        unique=True,
        postgresql_where=_open_only(),
        sqlite_where=_open_only(),
    )


class FlowData(BaseModel):
    """Named view over the loosely structured ``flow_data`` column.

    Only ``agreed_amount`` is load-bearing for payments. Keys the core does
    not understand are kept as pydantic extras and written back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    agreed_amount: Decimal | None = None
    current_offer: Decimal | None = None
    project_details: str | None = None

    @field_validator("agreed_amount", "current_offer", mode="before")
    @classmethod
    def _lenient_amount(cls, value: Any) -> Decimal | None:
        # Rows written by other services may hold "" or "NaN"; read those as absent.
        if value is None or isinstance(value, bool):
            return None
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            return None
        return amount if amount.is_finite() else None


class Conversation(Base):
    """Per-deal thread between one brand owner and one influencer.

    ``version`` is SQLAlchemy's version counter: every UPDATE is qualified by
    the version that was read, so a concurrent writer fails with
    ``StaleDataError`` instead of overwriting.
    """

    __tablename__ = "conversation"
    __table_args__ = (
        CheckConstraint(
            "(campaign_id IS NULL) <> (bid_id IS NULL)",
            name="ck_conversation_single_source",
        ),
        CheckConstraint("negotiation_round >= 0", name="ck_conversation_round_non_negative"),
        Index("ix_conversation_participants", "brand_owner_id", "influencer_id"),
        _one_open_per("campaign_id"),
        _one_open_per("bid_id"),
    )

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    brand_owner_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    influencer_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    campaign_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)
    bid_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True, index=True)

    flow_state: Mapped[FlowState] = mapped_column(
        Enum(FlowState, native_enum=False, length=40, values_callable=_enum_values),
        nullable=False,
    )
    awaiting_role: Mapped[AwaitingRole | None] = mapped_column(
        Enum(AwaitingRole, native_enum=False, length=20, values_callable=_enum_values),
        nullable=True,
    )

    negotiation_round: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_negotiation_rounds: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    negotiation_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    flow_data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    revision_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    messages: Mapped[list[Message]] = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.id",
    )
    transactions: Mapped[list[Transaction]] = relationship(
        "Transaction",
        back_populates="conversation",
        order_by="Transaction.id",
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def flow(self) -> FlowData:
        """Return the typed view of ``flow_data``."""
        return FlowData.model_validate(self.flow_data or {})

    @flow.setter
    def flow(self, value: FlowData) -> None:
        # Fields left unset (or unreadable) keep whatever the row already held.
        # A fresh dict is assigned so the JSON column is flagged dirty.
        self.flow_data = {**(self.flow_data or {}), **value.model_dump(mode="json", exclude_none=True)}

    @property
    def is_terminal(self) -> bool:
        return self.flow_state in TERMINAL_STATES

    @property
    def source(self) -> tuple[str, int]:
        """Return the ``(kind, id)`` pair naming the campaign or bid."""
        if self.campaign_id is not None:
            return "campaign", self.campaign_id
        return "bid", self.bid_id  # type: ignore[return-value]

    def participant_id(self, role: AwaitingRole | str) -> int:
        """Return the user id holding ``role`` in this conversation."""
        if AwaitingRole(role) is AwaitingRole.BRAND_OWNER:
            return self.brand_owner_id
        return self.influencer_id

    def counterpart_of(self, role: AwaitingRole | str) -> AwaitingRole:
        if AwaitingRole(role) is AwaitingRole.BRAND_OWNER:
            return AwaitingRole.INFLUENCER
        return AwaitingRole.BRAND_OWNER

    def append_history(self, entry: dict[str, Any]) -> None:
        """Append a negotiation history entry without touching earlier ones."""
        self.negotiation_history = [*(self.negotiation_history or []), entry]
