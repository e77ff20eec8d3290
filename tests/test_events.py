"""Tests for event emission, presence lookups and offline notifications."""

import logging
from unittest.mock import MagicMock

import redis

from dealroom.models import Notification
from dealroom.services.events import (
    LoggingEventEmitter,
    NullPresenceOracle,
    RedisPresenceOracle,
    safe_emit,
)
from dealroom.services.notifications import ConversationNotifier


class _ExplodingEmitter:
    def emit(self, event_name, payload) -> None:
        raise RuntimeError("socket gone")


def test_logging_emitter_writes_event_name(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="dealroom.services.events"):
        LoggingEventEmitter().emit("new_message", {"conversation_id": 4})
    assert "event new_message conversation=4" in caplog.text


def test_safe_emit_logs_and_swallows_emitter_errors(caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="dealroom.services.events"):
        safe_emit(_ExplodingEmitter(), "new_message", {"conversation_id": 4})
    assert "Failed to emit new_message for conversation 4" in caplog.text


def test_redis_presence_reads_prefixed_key() -> None:
    client = MagicMock()
    client.exists.return_value = 1
    oracle = RedisPresenceOracle(client, key_prefix="online")

    assert oracle.is_online(20) is True
    client.exists.assert_called_once_with("online:20")

    oracle.mark_online(21, ttl_seconds=30)
    client.set.assert_called_once_with("online:21", "1", ex=30)


def test_redis_outage_counts_as_offline(caplog) -> None:
    client = MagicMock()
    client.exists.side_effect = redis.ConnectionError("refused")

    with caplog.at_level(logging.WARNING, logger="dealroom.services.events"):
        assert RedisPresenceOracle(client, key_prefix="online").is_online(20) is False
    assert "Presence lookup failed for user 20" in caplog.text


def test_offline_counterpart_gets_a_notification(service, brand_owner, db_session, make_conversation) -> None:
    conversation = make_conversation()
    message = service.send_message(conversation.id, brand_owner, "Are you free next week?")

    notifications = db_session.query(Notification).all()
    assert len(notifications) == 1
    assert notifications[0].user_id == 20
    assert notifications[0].type == "new_message"
    assert notifications[0].status == "pending"
    assert notifications[0].data["message_id"] == message.id


def test_online_counterpart_is_skipped(db_session, brand_owner, make_conversation) -> None:
    conversation = make_conversation()
    presence = MagicMock()
    presence.is_online.return_value = True

    created = ConversationNotifier(db_session, presence).notify(conversation, brand_owner, None, previous_state="x")
    assert created == []
    presence.is_online.assert_called_once_with(20)


def test_state_change_without_message(db_session, admin, make_conversation) -> None:
    conversation = make_conversation()
    created = ConversationNotifier(db_session, NullPresenceOracle()).notify(
        conversation, admin, None, previous_state="brand_owner_details"
    )
    assert sorted(n.user_id for n in created) == [10, 20]
    assert {n.type for n in created} == {"conversation_update"}


def test_nothing_to_say_means_no_rows(db_session, admin, make_conversation) -> None:
    conversation = make_conversation()
    notifier = ConversationNotifier(db_session)
    assert notifier.notify(conversation, admin, None, previous_state="influencer_responding") == []
