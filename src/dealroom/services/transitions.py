# src/dealroom/services/transitions.py
"""Static transition table for the conversation flow.

Everything here is a pure lookup over closed enums: adding an action means
one entry in ``ACTION_ROLES`` and one in ``TRANSITIONS``. Callers run the
checks in order: role, then state, then turn.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Final

from dealroom.models.enums import ActorRole, AwaitingRole, FlowState
from dealroom.services.errors import Forbidden, StateConflict

if TYPE_CHECKING:
    from dealroom.models import Conversation


class Action(StrEnum):
    # Connection and project details
    ACCEPT_CONNECTION = "accept_connection"
    REJECT_CONNECTION = "reject_connection"
    SEND_DETAILS = "send_details"
    ACCEPT_DETAILS = "accept_details"
    REJECT_DETAILS = "reject_details"
    # Pricing and negotiation
    SET_PRICE = "set_price"
    NEGOTIATE_PRICE = "negotiate_price"
    OPEN_NEGOTIATION = "open_negotiation"
    DECLINE_NEGOTIATION = "decline_negotiation"
    PROPOSE_PRICE = "propose_price"
    ACCEPT_PRICE = "accept_price"
    REJECT_PRICE = "reject_price"
    # Work review
    SUBMIT_WORK = "submit_work"
    REQUEST_REVISION = "request_revision"
    APPROVE_WORK = "approve_work"
    CLOSE = "close"
    # Admin payments
    RECEIVE_PAYMENT = "receive_payment"
    RELEASE_ADVANCE = "release_advance"
    RELEASE_FINAL = "release_final"
    REFUND_FINAL = "refund_final"


@dataclass(frozen=True)
class Edge:
    """Outcome of a legal action.

    ``target`` of ``None`` means the action records something without moving
    the conversation; ``awaiting`` is then left untouched as well.
    """

    target: FlowState | None
    awaiting: AwaitingRole | None = None

    @property
    def keeps_state(self) -> bool:
        return self.target is None


_INFLUENCER = frozenset({ActorRole.INFLUENCER})
_BRAND_OWNER = frozenset({ActorRole.BRAND_OWNER})
_PARTICIPANTS = frozenset({ActorRole.BRAND_OWNER, ActorRole.INFLUENCER})
_ADMIN = frozenset({ActorRole.ADMIN})

ACTION_ROLES: Final[dict[Action, frozenset[ActorRole]]] = {
    Action.ACCEPT_CONNECTION: _INFLUENCER,
    Action.REJECT_CONNECTION: _INFLUENCER,
    Action.SEND_DETAILS: _BRAND_OWNER,
    Action.ACCEPT_DETAILS: _INFLUENCER,
    Action.REJECT_DETAILS: _INFLUENCER,
    Action.SET_PRICE: _BRAND_OWNER,
    Action.NEGOTIATE_PRICE: _INFLUENCER,
    Action.OPEN_NEGOTIATION: _BRAND_OWNER,
    Action.DECLINE_NEGOTIATION: _BRAND_OWNER,
    Action.PROPOSE_PRICE: _PARTICIPANTS,
    Action.ACCEPT_PRICE: _PARTICIPANTS,
    Action.REJECT_PRICE: _PARTICIPANTS,
    Action.SUBMIT_WORK: _INFLUENCER,
    Action.REQUEST_REVISION: _BRAND_OWNER,
    Action.APPROVE_WORK: _BRAND_OWNER,
    Action.CLOSE: _ADMIN,
    Action.RECEIVE_PAYMENT: _ADMIN,
    Action.RELEASE_ADVANCE: _ADMIN,
    Action.RELEASE_FINAL: _ADMIN,
    Action.REFUND_FINAL: _ADMIN,
}

_KEEP = Edge(target=None)
_EVERY_STATE = {state: _KEEP for state in FlowState}

TRANSITIONS: Final[dict[Action, dict[FlowState, Edge]]] = {
    Action.ACCEPT_CONNECTION: {
        FlowState.INFLUENCER_RESPONDING: Edge(FlowState.BRAND_OWNER_DETAILS, AwaitingRole.BRAND_OWNER),
    },
    Action.REJECT_CONNECTION: {
        FlowState.INFLUENCER_RESPONDING: Edge(FlowState.CONNECTION_REJECTED),
    },
    Action.SEND_DETAILS: {
        FlowState.BRAND_OWNER_DETAILS: Edge(FlowState.INFLUENCER_REVIEWING, AwaitingRole.INFLUENCER),
    },
    Action.ACCEPT_DETAILS: {
        FlowState.INFLUENCER_REVIEWING: Edge(FlowState.BRAND_OWNER_PRICING, AwaitingRole.BRAND_OWNER),
    },
    Action.REJECT_DETAILS: {
        FlowState.INFLUENCER_REVIEWING: Edge(FlowState.CONNECTION_REJECTED),
    },
    Action.SET_PRICE: {
        FlowState.BRAND_OWNER_PRICING: Edge(FlowState.INFLUENCER_PRICE_RESPONSE, AwaitingRole.INFLUENCER),
    },
    Action.NEGOTIATE_PRICE: {
        FlowState.INFLUENCER_PRICE_RESPONSE: Edge(FlowState.BRAND_OWNER_NEGOTIATION, AwaitingRole.BRAND_OWNER),
    },
    Action.OPEN_NEGOTIATION: {
        FlowState.BRAND_OWNER_NEGOTIATION: Edge(FlowState.INFLUENCER_PRICE_INPUT, AwaitingRole.INFLUENCER),
    },
    Action.DECLINE_NEGOTIATION: {
        FlowState.BRAND_OWNER_NEGOTIATION: Edge(FlowState.INFLUENCER_FINAL_RESPONSE, AwaitingRole.INFLUENCER),
    },
    Action.PROPOSE_PRICE: {
        FlowState.INFLUENCER_PRICE_INPUT: Edge(FlowState.BRAND_OWNER_PRICE_RESPONSE, AwaitingRole.BRAND_OWNER),
        FlowState.INFLUENCER_PRICE_RESPONSE: Edge(FlowState.BRAND_OWNER_PRICE_RESPONSE, AwaitingRole.BRAND_OWNER),
        FlowState.BRAND_OWNER_PRICE_RESPONSE: Edge(FlowState.INFLUENCER_PRICE_RESPONSE, AwaitingRole.INFLUENCER),
    },
    Action.ACCEPT_PRICE: {
        FlowState.INFLUENCER_PRICE_RESPONSE: Edge(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER),
        FlowState.BRAND_OWNER_PRICE_RESPONSE: Edge(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER),
        FlowState.INFLUENCER_FINAL_RESPONSE: Edge(FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER),
    },
    Action.REJECT_PRICE: {
        FlowState.INFLUENCER_PRICE_RESPONSE: Edge(FlowState.NEGOTIATION_REJECTED),
        FlowState.BRAND_OWNER_PRICE_RESPONSE: Edge(FlowState.NEGOTIATION_REJECTED),
        FlowState.INFLUENCER_FINAL_RESPONSE: Edge(FlowState.NEGOTIATION_REJECTED),
    },
    Action.RELEASE_ADVANCE: {
        FlowState.PAYMENT_PENDING: Edge(FlowState.WORK_IN_PROGRESS, AwaitingRole.INFLUENCER),
    },
    Action.SUBMIT_WORK: {
        FlowState.WORK_IN_PROGRESS: Edge(FlowState.WORK_SUBMITTED, AwaitingRole.BRAND_OWNER),
        FlowState.WORK_REVISION_REQUESTED: Edge(FlowState.WORK_SUBMITTED, AwaitingRole.BRAND_OWNER),
    },
    Action.REQUEST_REVISION: {
        FlowState.WORK_SUBMITTED: Edge(FlowState.WORK_REVISION_REQUESTED, AwaitingRole.INFLUENCER),
    },
    Action.APPROVE_WORK: {
        FlowState.WORK_SUBMITTED: Edge(FlowState.WORK_APPROVED),
    },
    Action.RELEASE_FINAL: {
        FlowState.WORK_APPROVED: Edge(FlowState.CLOSED),
    },
    Action.CLOSE: {
        FlowState.WORK_APPROVED: Edge(FlowState.CLOSED),
    },
    Action.RECEIVE_PAYMENT: _EVERY_STATE,
    Action.REFUND_FINAL: _EVERY_STATE,
}

# Actions that open or continue a counter-offer exchange; all close at the round cap.
COUNTER_OFFER_ACTIONS: Final[frozenset[Action]] = frozenset(
    {Action.NEGOTIATE_PRICE, Action.OPEN_NEGOTIATION, Action.PROPOSE_PRICE}
)


def parse_action(value: str) -> Action:
    """Return the ``Action`` named by ``value``.

    Unknown names can never be legal from any state, so they surface as a
    state conflict rather than a validation problem.
    """
    try:
        return Action(value)
    except ValueError as err:
        raise StateConflict(f"Unknown action '{value}'") from err


def check_role(action: Action, role: ActorRole) -> None:
    """Raise ``Forbidden`` unless ``role`` may perform ``action`` at all."""
    allowed = ACTION_ROLES[action]
    if role not in allowed:
        names = " or ".join(sorted(r.value for r in allowed))
        raise Forbidden(f"Only {names} can perform {action.value}")


def can_transition(state: FlowState, action: Action) -> bool:
    """Return True if ``action`` is legal from ``state``."""
    return state in TRANSITIONS.get(action, {})


def resolve_transition(state: FlowState, action: Action) -> Edge:
    """Return the edge taken by ``action`` from ``state``.

    Raises:
        StateConflict: if the table has no such edge.
    """
    edge = TRANSITIONS.get(action, {}).get(state)
    if edge is None:
        raise StateConflict(
            f"Invalid state transition from {state.value} via {action.value}",
            current_state=state.value,
        )
    return edge


def check_turn(action: Action, role: ActorRole, awaiting: AwaitingRole | None) -> None:
    """Raise ``Forbidden`` when a participant acts out of turn.

    Admin actions are not turn-based.
    """
    if role is ActorRole.ADMIN:
        return
    if awaiting is None or awaiting.value != role.value:
        raise Forbidden(f"It is not the {role.value}'s turn to {action.value}")


def legal_actions(state: FlowState) -> list[Action]:
    """List every action with an edge out of (or onto) ``state``."""
    return [action for action in Action if can_transition(state, action)]


def apply_edge(conversation: Conversation, edge: Edge) -> FlowState:
    """Move ``conversation`` along ``edge`` and return the previous state."""
    previous = conversation.flow_state
    if not edge.keeps_state:
        conversation.flow_state = edge.target  # type: ignore[assignment]
        conversation.awaiting_role = edge.awaiting
    return previous
