"""Tests for the conversation message log."""

import pytest

from dealroom.models import FlowState, Message, MessageStatus, MessageType
from dealroom.services.errors import NotFound, ValidationError
from dealroom.services.message_log import MessageLogService


def test_append_and_list_newest_first(db_session, make_conversation) -> None:
    conversation = make_conversation()
    log = MessageLogService(db_session)

    first = log.append_system_message(conversation, "Connection requested", sender_id=10, receiver_id=20)
    second = log.append_user_message(
        conversation, "Hi!", sender_id=20, receiver_id=10, attachments=[{"url": "s3://a.png"}]
    )

    assert first.message_type is MessageType.SYSTEM
    assert second.message_type is MessageType.USER_INPUT
    assert second.attachment_metadata == {"attachments": [{"url": "s3://a.png"}]}
    assert second.status is MessageStatus.SENT and second.seen is False

    listed = log.list_messages(conversation.id)
    assert [m.id for m in listed] == [second.id, first.id]
    assert [m.id for m in log.list_messages(conversation.id, before=second.id)] == [first.id]
    assert len(log.list_messages(conversation.id, limit=1)) == 1


def test_mark_seen_only_touches_recipient(db_session, make_conversation) -> None:
    conversation = make_conversation()
    log = MessageLogService(db_session)
    to_influencer = log.append_system_message(conversation, "one", sender_id=10, receiver_id=20)
    log.append_system_message(conversation, "two", sender_id=10, receiver_id=20)
    to_brand = log.append_user_message(conversation, "three", sender_id=20, receiver_id=10)

    assert log.mark_seen(conversation.id, 20) == 2
    assert log.mark_seen(conversation.id, 20) == 0

    db_session.expire_all()
    assert db_session.get(Message, to_influencer.id).status is MessageStatus.READ
    assert db_session.get(Message, to_brand.id).seen is False


def test_mark_delivered(db_session, make_conversation) -> None:
    conversation = make_conversation()
    log = MessageLogService(db_session)
    message = log.append_system_message(conversation, "ping", receiver_id=20)

    assert log.mark_delivered(message.id).status is MessageStatus.DELIVERED
    with pytest.raises(NotFound):
        log.mark_delivered(999_999)


def test_message_content_is_immutable(db_session, make_conversation) -> None:
    conversation = make_conversation(FlowState.WORK_IN_PROGRESS)
    message = MessageLogService(db_session).append_system_message(conversation, "original")
    db_session.commit()

    message.body = "rewritten"
    with pytest.raises(ValueError, match="body"):
        db_session.flush()
    db_session.rollback()


def test_single_attachment_is_wrapped(db_session, make_conversation) -> None:
    conversation = make_conversation()
    message = MessageLogService(db_session).append_user_message(
        conversation, "brief", sender_id=10, receiver_id=20, attachments={"url": "s3://brief.pdf"}
    )
    assert message.attachment_metadata == {"attachments": [{"url": "s3://brief.pdf"}]}


@pytest.mark.parametrize("attachments", ["s3://brief.pdf", b"raw", 42])
def test_non_list_attachments_are_rejected(db_session, make_conversation, attachments) -> None:
    conversation = make_conversation()
    with pytest.raises(ValidationError):
        MessageLogService(db_session).append_user_message(
            conversation, "brief", sender_id=10, receiver_id=20, attachments=attachments
        )
    assert db_session.query(Message).count() == 0
