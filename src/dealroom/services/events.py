# src/dealroom/services/events.py
"""Outbound events and the presence lookup used to route notifications.

Transport (sockets, push) lives outside the core: it only needs an
``EventEmitter`` to hand events to and a ``PresenceOracle`` to ask who is
connected.
"""

from __future__ import annotations

import logging
from typing import Any, Final, Protocol

import redis

from dealroom.core.settings import settings

logger = logging.getLogger(__name__)

CONVERSATION_STATE_CHANGED: Final[str] = "conversation_state_changed"
NEW_MESSAGE: Final[str] = "new_message"


class EventEmitter(Protocol):
    def emit(self, event_name: str, payload: dict[str, Any]) -> None: ...


class PresenceOracle(Protocol):
    def is_online(self, user_id: int) -> bool: ...


class LoggingEventEmitter:
    """Default emitter: writes every event to the log."""

    def emit(self, event_name: str, payload: dict[str, Any]) -> None:
        logger.info("event %s conversation=%s", event_name, payload.get("conversation_id"))
        logger.debug("event %s payload=%s", event_name, payload)


class RedisPresenceOracle:
    """Reads ``{prefix}:{user_id}`` keys maintained by the socket layer."""

    def __init__(self, client: redis.Redis | None = None, *, key_prefix: str | None = None) -> None:
        self._redis = client if client is not None else redis.from_url(settings.redis_url)
        self._prefix = key_prefix or settings.presence_key_prefix

    def is_online(self, user_id: int) -> bool:
        try:
            return bool(self._redis.exists(f"{self._prefix}:{user_id}"))
        except redis.RedisError as err:
            logger.warning("Presence lookup failed for user %s: %s", user_id, err)
            return False

    def mark_online(self, user_id: int, ttl_seconds: int | None = None) -> None:
        """Set the presence key; used by the transport layer and in tests."""
        ttl = ttl_seconds or settings.presence_ttl_seconds
        self._redis.set(f"{self._prefix}:{user_id}", "1", ex=ttl)


class NullPresenceOracle:
    """Treats everyone as offline, so every participant gets a notification row."""

    def is_online(self, user_id: int) -> bool:
        return False


def safe_emit(emitter: EventEmitter, event_name: str, payload: dict[str, Any]) -> None:
    """Emit after commit; a failing emitter never undoes a committed action."""
    try:
        emitter.emit(event_name, payload)
    except Exception:
        logger.exception(
            "Failed to emit %s for conversation %s", event_name, payload.get("conversation_id")
        )
