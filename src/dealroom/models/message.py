# src/dealroom/models/message.py
"""Models describing conversation messages."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dealroom.db.session import Base
from dealroom.db.time import utcnow

from .enums import MessageStatus, MessageType

if TYPE_CHECKING:
    from .conversation import Conversation

# Only delivery bookkeeping may change once a message exists.
MUTABLE_MESSAGE_FIELDS = frozenset({"status", "seen"})


class Message(Base):
    """Append-only entry in a conversation, written by a user or the system."""

    __tablename__ = "message"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    conversation_id: Mapped[int] = mapped_column(
        BigInteger,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sender_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    receiver_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    attachment_metadata: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    message_type: Mapped[MessageType] = mapped_column(
        Enum(MessageType, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MessageType.SYSTEM,
    )
    status: Mapped[MessageStatus] = mapped_column(
        Enum(MessageStatus, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=MessageStatus.SENT,
    )
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    conversation: Mapped[Conversation] = relationship("Conversation", back_populates="messages")


@event.listens_for(Message, "before_update")
def _reject_content_changes(mapper, connection, target: Message) -> None:  # noqa: ANN001
    state = inspect(target)
    changed = {
        column.key
        for column in mapper.column_attrs
        if column.key not in MUTABLE_MESSAGE_FIELDS
        and state.attrs[column.key].history.has_changes()
    }
    if changed:
        raise ValueError(f"Message content is immutable; attempted to change {sorted(changed)}")
