"""Tests for the static transition table and its guards."""

import pytest

from dealroom.models import TERMINAL_STATES, ActorRole, AwaitingRole, FlowState
from dealroom.services.errors import Forbidden, StateConflict
from dealroom.services.transitions import (
    ACTION_ROLES,
    TRANSITIONS,
    Action,
    can_transition,
    check_role,
    check_turn,
    legal_actions,
    parse_action,
    resolve_transition,
)


def test_every_action_has_roles_and_edges() -> None:
    assert set(ACTION_ROLES) == set(Action)
    assert set(TRANSITIONS) == set(Action)


def test_edge_targets_hand_turn_to_a_participant_or_nobody() -> None:
    for action, edges in TRANSITIONS.items():
        for source, edge in edges.items():
            if edge.keeps_state:
                continue
            if edge.target in TERMINAL_STATES:
                assert edge.awaiting is None, (action, source)


@pytest.mark.parametrize(
    ("state", "action", "target", "awaiting"),
    [
        (FlowState.INFLUENCER_RESPONDING, Action.ACCEPT_CONNECTION, FlowState.BRAND_OWNER_DETAILS, AwaitingRole.BRAND_OWNER),
        (FlowState.INFLUENCER_PRICE_INPUT, Action.PROPOSE_PRICE, FlowState.BRAND_OWNER_PRICE_RESPONSE, AwaitingRole.BRAND_OWNER),
        (FlowState.BRAND_OWNER_PRICE_RESPONSE, Action.PROPOSE_PRICE, FlowState.INFLUENCER_PRICE_RESPONSE, AwaitingRole.INFLUENCER),
        (FlowState.INFLUENCER_FINAL_RESPONSE, Action.ACCEPT_PRICE, FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER),
        (FlowState.PAYMENT_PENDING, Action.RELEASE_ADVANCE, FlowState.WORK_IN_PROGRESS, AwaitingRole.INFLUENCER),
        (FlowState.WORK_REVISION_REQUESTED, Action.SUBMIT_WORK, FlowState.WORK_SUBMITTED, AwaitingRole.BRAND_OWNER),
        (FlowState.WORK_SUBMITTED, Action.APPROVE_WORK, FlowState.WORK_APPROVED, None),
        (FlowState.WORK_APPROVED, Action.RELEASE_FINAL, FlowState.CLOSED, None),
        (FlowState.BRAND_OWNER_PRICE_RESPONSE, Action.REJECT_PRICE, FlowState.NEGOTIATION_REJECTED, None),
    ],
)
def test_resolve_transition(state, action, target, awaiting) -> None:
    edge = resolve_transition(state, action)
    assert edge.target is target
    assert edge.awaiting is awaiting


def test_illegal_transition_raises_state_conflict() -> None:
    assert can_transition(FlowState.WORK_SUBMITTED, Action.RELEASE_FINAL) is False
    with pytest.raises(StateConflict) as exc_info:
        resolve_transition(FlowState.WORK_SUBMITTED, Action.RELEASE_FINAL)
    assert exc_info.value.current_state == "work_submitted"
    assert exc_info.value.status_code == 409


def test_receive_and_refund_keep_state_everywhere() -> None:
    for state in FlowState:
        assert resolve_transition(state, Action.RECEIVE_PAYMENT).keeps_state
        assert resolve_transition(state, Action.REFUND_FINAL).keeps_state


def test_terminal_states_only_allow_bookkeeping() -> None:
    for state in TERMINAL_STATES:
        assert set(legal_actions(state)) == {Action.RECEIVE_PAYMENT, Action.REFUND_FINAL}


def test_check_role() -> None:
    check_role(Action.SUBMIT_WORK, ActorRole.INFLUENCER)
    check_role(Action.PROPOSE_PRICE, ActorRole.BRAND_OWNER)
    with pytest.raises(Forbidden):
        check_role(Action.SUBMIT_WORK, ActorRole.BRAND_OWNER)
    with pytest.raises(Forbidden):
        check_role(Action.RELEASE_FINAL, ActorRole.BRAND_OWNER)
    with pytest.raises(Forbidden):
        check_role(Action.APPROVE_WORK, ActorRole.ADMIN)


def test_check_turn() -> None:
    check_turn(Action.ACCEPT_PRICE, ActorRole.INFLUENCER, AwaitingRole.INFLUENCER)
    check_turn(Action.RELEASE_FINAL, ActorRole.ADMIN, None)
    with pytest.raises(Forbidden):
        check_turn(Action.ACCEPT_PRICE, ActorRole.BRAND_OWNER, AwaitingRole.INFLUENCER)
    with pytest.raises(Forbidden):
        check_turn(Action.ACCEPT_PRICE, ActorRole.BRAND_OWNER, None)


def test_parse_action() -> None:
    assert parse_action("submit_work") is Action.SUBMIT_WORK
    with pytest.raises(StateConflict):
        parse_action("teleport")
