# src/dealroom/services/actor.py
"""Identity of whoever is calling into the core."""

from __future__ import annotations

from dataclasses import dataclass

from dealroom.models import ActorRole, AwaitingRole, Conversation
from dealroom.services.errors import Forbidden


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: ActorRole

    @property
    def is_admin(self) -> bool:
        return self.role is ActorRole.ADMIN

    @property
    def participant_role(self) -> AwaitingRole | None:
        """Return the matching ``AwaitingRole`` for participants, else None."""
        if self.is_admin:
            return None
        return AwaitingRole(self.role.value)

    def ensure_participant(self, conversation: Conversation) -> None:
        """Raise ``Forbidden`` unless this actor holds its role in ``conversation``.

        Admins act on every conversation.
        """
        if self.is_admin:
            return
        if conversation.participant_id(self.role.value) != self.user_id:
            raise Forbidden("You are not a participant in this conversation")

    def counterpart_id(self, conversation: Conversation) -> int | None:
        """Return the other participant's user id (None for admins)."""
        role = self.participant_role
        if role is None:
            return None
        return conversation.participant_id(conversation.counterpart_of(role))
