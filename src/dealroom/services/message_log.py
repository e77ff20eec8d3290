# src/dealroom/services/message_log.py
"""Conversation message log: appends plus delivery/seen bookkeeping."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from dealroom.models import Conversation, Message, MessageStatus, MessageType
from dealroom.services.errors import NotFound, ValidationError


def _attachment_metadata(attachments: Any) -> dict[str, Any] | None:
    """Wrap attachment descriptors as ``{"attachments": [...]}``.

    A single descriptor (a mapping) is treated as a one-item list.
    """
    if not attachments:
        return None
    if isinstance(attachments, Mapping):
        return {"attachments": [dict(attachments)]}
    if isinstance(attachments, (str, bytes)) or not isinstance(attachments, Sequence):
        raise ValidationError("attachments must be a list of attachment descriptors")
    return {"attachments": list(attachments)}


class MessageLogService:
    """Appends messages to a conversation.

    Content is written once; afterwards only ``status`` and ``seen`` move.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def append_system_message(
        self,
        conversation: Conversation,
        body: str,
        *,
        sender_id: int | None = None,
        receiver_id: int | None = None,
        attachments: Sequence[Any] | None = None,
    ) -> Message:
        """Record an automated message describing a state change or payment."""
        return self._append(
            conversation,
            body,
            message_type=MessageType.SYSTEM,
            sender_id=sender_id,
            receiver_id=receiver_id,
            attachments=attachments,
        )

    def append_user_message(
        self,
        conversation: Conversation,
        body: str,
        *,
        sender_id: int,
        receiver_id: int | None,
        attachments: Sequence[Any] | None = None,
    ) -> Message:
        """Record free-form text typed by a participant."""
        return self._append(
            conversation,
            body,
            message_type=MessageType.USER_INPUT,
            sender_id=sender_id,
            receiver_id=receiver_id,
            attachments=attachments,
        )

    def _append(
        self,
        conversation: Conversation,
        body: str,
        *,
        message_type: MessageType,
        sender_id: int | None,
        receiver_id: int | None,
        attachments: Sequence[Any] | None,
    ) -> Message:
        message = Message(
            conversation_id=conversation.id,
            sender_id=sender_id,
            receiver_id=receiver_id,
            body=body,
            attachment_metadata=_attachment_metadata(attachments),
            message_type=message_type,
            status=MessageStatus.SENT,
            seen=False,
        )
        self.db.add(message)
        self.db.flush()
        return message

    def list_messages(
        self,
        conversation_id: int,
        *,
        limit: int = 50,
        before: int | None = None,
    ) -> Sequence[Message]:
        """Return up to ``limit`` messages, newest first, optionally before an id."""
        query = select(Message).where(Message.conversation_id == conversation_id)
        if before is not None:
            query = query.where(Message.id < before)
        return self.db.scalars(query.order_by(Message.id.desc()).limit(limit)).all()

    def mark_seen(self, conversation_id: int, user_id: int) -> int:
        """Mark every unseen message addressed to ``user_id`` as seen and read.

        Returns the number of messages updated.
        """
        result = self.db.execute(
            update(Message)
            .where(
                Message.conversation_id == conversation_id,
                Message.receiver_id == user_id,
                Message.seen.is_(False),
            )
            .values(seen=True, status=MessageStatus.READ)
            .execution_options(synchronize_session="fetch")
        )
        return int(result.rowcount or 0)

    def mark_delivered(self, message_id: int) -> Message:
        """Advance a sent message to delivered; read messages stay read."""
        message = self.db.get(Message, message_id)
        if message is None:
            raise NotFound("Message not found")
        if message.status == MessageStatus.SENT:
            message.status = MessageStatus.DELIVERED
            self.db.flush()
        return message
