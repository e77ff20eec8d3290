# src/dealroom/services/notifications.py
"""Notification rows for participants who are not connected."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from dealroom.models import Conversation, Message, Notification
from dealroom.services.actor import Actor
from dealroom.services.events import NullPresenceOracle, PresenceOracle

logger = logging.getLogger(__name__)

NEW_MESSAGE_NOTIFICATION = "new_message"
STATE_CHANGE_NOTIFICATION = "conversation_update"


class ConversationNotifier:
    """Queues a pending ``Notification`` for each offline participant but the actor.

    Rows are added to the caller's session so they commit with the action.
    """

    def __init__(self, db: Session, presence: PresenceOracle | None = None) -> None:
        self.db = db
        self.presence = presence or NullPresenceOracle()

    def recipients(self, conversation: Conversation, actor: Actor) -> list[int]:
        return [
            user_id
            for user_id in (conversation.brand_owner_id, conversation.influencer_id)
            if user_id != actor.user_id
        ]

    def notify(
        self,
        conversation: Conversation,
        actor: Actor,
        message: Message | None,
        *,
        previous_state: str | None = None,
    ) -> list[Notification]:
        state_changed = previous_state is not None and previous_state != conversation.flow_state.value
        if message is None and not state_changed:
            return []

        if message is not None:
            kind, title, body = NEW_MESSAGE_NOTIFICATION, "New message", message.body
        else:
            kind = STATE_CHANGE_NOTIFICATION
            title = "Conversation updated"
            body = f"Conversation moved to {conversation.flow_state.value}"

        created: list[Notification] = []
        for user_id in self.recipients(conversation, actor):
            if self.presence.is_online(user_id):
                continue
            notification = Notification(
                user_id=user_id,
                type=kind,
                title=title,
                body=body,
                data={
                    "conversation_id": conversation.id,
                    "message_id": message.id if message is not None else None,
                    "flow_state": conversation.flow_state.value,
                    "previous_state": previous_state,
                },
            )
            self.db.add(notification)
            created.append(notification)

        if created:
            self.db.flush()
            logger.debug(
                "Queued %d notification(s) for conversation %s", len(created), conversation.id
            )
        return created
