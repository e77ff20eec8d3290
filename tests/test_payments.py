"""Tests for admin payment releases."""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from dealroom.models import AwaitingRole, Direction, FlowState, Message, PaymentStage, Transaction
from dealroom.services.errors import Forbidden, PartialFailure, StateConflict, ValidationError
from dealroom.services.ledger import LedgerService


def _transactions(db_session, conversation_id: int) -> list[Transaction]:
    return list(LedgerService(db_session).list_transactions(conversation_id))


def test_payment_stages_are_recorded_in_order(
    service, db_session, admin, brand_owner, influencer, make_conversation
) -> None:
    conversation = make_conversation(
        FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER, agreed_amount=Decimal("1000")
    )
    conversation_id = conversation.id

    received = service.apply_action(conversation_id, "receive_payment", admin, {"amount": "1000", "reference": "UTR-1"})
    assert received.flow_state is FlowState.PAYMENT_PENDING
    assert received.transaction.direction is Direction.IN
    assert received.transaction.sender_id == brand_owner.user_id
    assert received.transaction.reference == "UTR-1"

    advance = service.apply_action(conversation_id, "release_advance", admin, {"amount": "450"})
    assert advance.flow_state is FlowState.WORK_IN_PROGRESS
    assert advance.awaiting_role is AwaitingRole.INFLUENCER
    assert advance.transaction.receiver_id == influencer.user_id
    assert advance.message.body == "Admin released advance ₹450.00 (commission 10%)"

    service.apply_action(conversation_id, "submit_work", influencer)
    service.apply_action(conversation_id, "approve_work", brand_owner)
    final = service.apply_action(conversation_id, "release_final", admin, {"amount": "450"})
    assert final.flow_state is FlowState.CLOSED

    snapshot = [(t.id, t.payment_stage, t.amount_minor) for t in _transactions(db_session, conversation_id)]
    assert [stage for _, stage, _ in snapshot] == [
        PaymentStage.RECEIVED,
        PaymentStage.ADVANCE,
        PaymentStage.FINAL,
    ]

    # A late "received" would move the ledger backwards.
    with pytest.raises(StateConflict):
        service.apply_action(conversation_id, "receive_payment", admin, {"amount": "10"})

    db_session.expire_all()
    assert [(t.id, t.payment_stage, t.amount_minor) for t in _transactions(db_session, conversation_id)] == snapshot


def test_release_final_requires_approved_work(service, db_session, admin, make_conversation) -> None:
    conversation = make_conversation(FlowState.WORK_SUBMITTED, AwaitingRole.BRAND_OWNER)

    with pytest.raises(StateConflict) as exc_info:
        service.apply_action(conversation.id, "release_final", admin, {"amount": "1000"})

    assert exc_info.value.current_state == "work_submitted"
    assert _transactions(db_session, conversation.id) == []
    assert service.get_conversation(conversation.id).flow_state is FlowState.WORK_SUBMITTED


def test_refund_is_allowed_anywhere_and_pays_brand_owner(
    service, db_session, admin, brand_owner, make_conversation
) -> None:
    conversation = make_conversation(FlowState.WORK_SUBMITTED, AwaitingRole.BRAND_OWNER)

    result = service.apply_action(conversation.id, "refund_final", admin, {"amount": "250"})

    assert result.flow_state is FlowState.WORK_SUBMITTED
    assert result.awaiting_role is AwaitingRole.BRAND_OWNER
    assert result.transaction.payment_stage is PaymentStage.REFUND_FINAL
    assert result.transaction.receiver_id == brand_owner.user_id
    assert result.message.body == "Admin refunded ₹250.00 to brand owner"


def test_payments_are_admin_only(service, brand_owner, make_conversation) -> None:
    conversation = make_conversation(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER)
    with pytest.raises(Forbidden):
        service.apply_action(conversation.id, "release_advance", brand_owner, {"amount": "100"})


def test_missing_amount_is_a_validation_error(service, db_session, admin, make_conversation) -> None:
    conversation = make_conversation(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER)
    with pytest.raises(ValidationError):
        service.apply_action(conversation.id, "release_advance", admin, {})
    assert service.get_conversation(conversation.id).flow_state is FlowState.PAYMENT_PENDING
    assert _transactions(db_session, conversation.id) == []


def test_ledger_failure_leaves_nothing_behind(service, db_session, admin, mocker, make_conversation) -> None:
    conversation = make_conversation(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER)
    mocker.patch.object(
        service.payments.ledger,
        "append_transaction",
        side_effect=OperationalError("INSERT INTO ledger_transaction", {}, Exception("disk full")),
    )

    with pytest.raises(OperationalError):
        service.apply_action(conversation.id, "release_advance", admin, {"amount": "450"})

    fresh = service.get_conversation(conversation.id)
    assert fresh.flow_state is FlowState.PAYMENT_PENDING
    assert fresh.version == 1
    assert db_session.query(Message).filter_by(conversation_id=conversation.id).count() == 0


def test_message_failure_after_ledger_write_is_partial(
    service, db_session, admin, emitter, mocker, make_conversation, caplog
) -> None:
    conversation = make_conversation(FlowState.WORK_APPROVED, None)
    mocker.patch.object(
        service.payments.messages,
        "append_system_message",
        side_effect=OperationalError("INSERT INTO message", {}, Exception("connection lost")),
    )

    with caplog.at_level("ERROR", logger="dealroom.services.payments"):
        with pytest.raises(PartialFailure) as exc_info:
            service.apply_action(conversation.id, "release_final", admin, {"amount": "1000"})

    error = exc_info.value
    transactions = _transactions(db_session, conversation.id)
    assert [t.id for t in transactions] == [error.transaction_id]
    assert transactions[0].payment_stage is PaymentStage.FINAL
    assert error.to_dict()["failed_step"] == "message"
    assert service.get_conversation(conversation.id).flow_state is FlowState.CLOSED
    assert db_session.query(Message).filter_by(conversation_id=conversation.id).count() == 0
    assert "PARTIAL FAILURE" in caplog.text
    assert emitter.names() == ["conversation_state_changed"]
