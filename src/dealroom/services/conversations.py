# src/dealroom/services/conversations.py
"""Conversation aggregate: the single mutating entry point for a deal.

``apply_action`` runs every action through the same pipeline::

    role guard -> load (row lock) -> participant check -> expected version
    -> state guard -> turn check -> handler -> notifications -> commit -> events

Everything up to and including ``commit`` happens in one database
transaction; events go out only after the commit succeeded.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from dealroom.core.settings import settings
from dealroom.db.time import utc_isoformat
from dealroom.models import (
    TERMINAL_STATES,
    ActorRole,
    AwaitingRole,
    Conversation,
    DealRequest,
    FlowState,
    Message,
    Transaction,
)
from dealroom.services.actor import Actor
from dealroom.services.commission import CommissionRateProvider, CommissionService
from dealroom.services.errors import (
    DealroomError,
    Forbidden,
    NotFound,
    PartialFailure,
    StateConflict,
    ValidationError,
)
from dealroom.services.events import (
    CONVERSATION_STATE_CHANGED,
    NEW_MESSAGE,
    EventEmitter,
    LoggingEventEmitter,
    PresenceOracle,
    safe_emit,
)
from dealroom.services.message_log import MessageLogService
from dealroom.services.money import PaymentBreakdown, compute_payment_breakdown
from dealroom.services.negotiation import NegotiationEngine
from dealroom.services.notifications import ConversationNotifier
from dealroom.services.payments import PaymentOrchestrator, PaymentOutcome
from dealroom.services.transitions import (
    Action,
    Edge,
    apply_edge,
    check_role,
    check_turn,
    parse_action,
    resolve_transition,
)

logger = logging.getLogger(__name__)

Handler = Callable[[Conversation, Actor, Edge, Mapping[str, Any]], "Message | PaymentOutcome"]


@dataclass
class ActionResult:
    conversation: Conversation
    message: Message | None
    transaction: Transaction | None
    previous_state: FlowState

    @property
    def flow_state(self) -> FlowState:
        return self.conversation.flow_state

    @property
    def awaiting_role(self) -> AwaitingRole | None:
        return self.conversation.awaiting_role


def message_event_payload(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id,
        "receiver_id": message.receiver_id,
        "body": message.body,
        "message_type": message.message_type.value,
        "status": message.status.value,
        "attachment_metadata": message.attachment_metadata,
        "created_at": utc_isoformat(message.created_at) if message.created_at else None,
    }


class ConversationService:
    """Owns the lifecycle of conversations and their guarded actions."""

    def __init__(
        self,
        db: Session,
        *,
        emitter: EventEmitter | None = None,
        presence: PresenceOracle | None = None,
        commission: CommissionRateProvider | None = None,
    ) -> None:
        self.db = db
        self.emitter = emitter or LoggingEventEmitter()
        self.commission = commission or CommissionService(db)
        self.messages = MessageLogService(db)
        self.negotiation = NegotiationEngine(db, self.messages)
        self.payments = PaymentOrchestrator(db, messages=self.messages, commission=self.commission)
        self.notifier = ConversationNotifier(db, presence)
        self._handlers: dict[Action, Handler] = {
            Action.ACCEPT_CONNECTION: self._accept_connection,
            Action.REJECT_CONNECTION: self._reject_connection,
            Action.SEND_DETAILS: self._send_details,
            Action.ACCEPT_DETAILS: self._accept_details,
            Action.REJECT_DETAILS: self._reject_details,
            Action.SET_PRICE: self.negotiation.set_price,
            Action.NEGOTIATE_PRICE: self.negotiation.request_negotiation,
            Action.OPEN_NEGOTIATION: self.negotiation.open_negotiation,
            Action.DECLINE_NEGOTIATION: self.negotiation.decline_negotiation,
            Action.PROPOSE_PRICE: self.negotiation.propose_price,
            Action.ACCEPT_PRICE: self.negotiation.accept_price,
            Action.REJECT_PRICE: self.negotiation.reject_price,
            Action.SUBMIT_WORK: self._submit_work,
            Action.REQUEST_REVISION: self._request_revision,
            Action.APPROVE_WORK: self._approve_work,
            Action.CLOSE: self._close,
            Action.RECEIVE_PAYMENT: self.payments.receive_payment,
            Action.RELEASE_ADVANCE: self.payments.release_advance,
            Action.RELEASE_FINAL: self.payments.release_final,
            Action.REFUND_FINAL: self.payments.refund_final,
        }

    # -- reads -----------------------------------------------------------

    def get_conversation(self, conversation_id: int) -> Conversation:
        conversation = self.db.get(Conversation, conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    def get_conversation_for(self, conversation_id: int, actor: Actor) -> Conversation:
        """Load a conversation the actor is allowed to see."""
        conversation = self.get_conversation(conversation_id)
        actor.ensure_participant(conversation)
        return conversation

    def get_state(self, conversation_id: int) -> tuple[FlowState, AwaitingRole | None]:
        conversation = self.get_conversation(conversation_id)
        return conversation.flow_state, conversation.awaiting_role

    def find_open_conversation(
        self,
        *,
        brand_owner_id: int,
        influencer_id: int,
        campaign_id: int | None,
        bid_id: int | None,
    ) -> Conversation | None:
        query = select(Conversation).where(
            Conversation.brand_owner_id == brand_owner_id,
            Conversation.influencer_id == influencer_id,
            Conversation.flow_state.not_in(TERMINAL_STATES),
        )
        if campaign_id is not None:
            query = query.where(Conversation.campaign_id == campaign_id)
        else:
            query = query.where(Conversation.bid_id == bid_id)
        return self.db.scalars(query.order_by(Conversation.id.desc()).limit(1)).first()

    def resolve_agreed_amount(self, conversation: Conversation) -> Decimal | None:
        """Return the amount payments are computed from.

        The latest linked request's ``final_agreed_amount`` wins; otherwise
        the negotiated ``flow_data.agreed_amount`` if positive; else None.
        """
        source = (
            DealRequest.campaign_id == conversation.campaign_id
            if conversation.campaign_id is not None
            else DealRequest.bid_id == conversation.bid_id
        )
        request_amount = self.db.scalars(
            select(DealRequest.final_agreed_amount)
            .where(
                DealRequest.influencer_id == conversation.influencer_id,
                source,
                DealRequest.final_agreed_amount.is_not(None),
            )
            .order_by(DealRequest.created_at.desc(), DealRequest.id.desc())
            .limit(1)
        ).first()
        if request_amount is not None and Decimal(request_amount) > 0:
            return Decimal(request_amount)

        agreed = conversation.flow.agreed_amount
        if agreed is not None and agreed > 0:
            return agreed
        return None

    def resolve_payment_breakdown(self, conversation: Conversation) -> PaymentBreakdown | None:
        agreed = self.resolve_agreed_amount(conversation)
        if agreed is None:
            return None
        return compute_payment_breakdown(
            agreed,
            self.commission.get_current_commission_percentage(),
            settings.advance_percentage,
        )

    # -- lifecycle -------------------------------------------------------

    def start_conversation(
        self,
        actor: Actor,
        *,
        brand_owner_id: int | None = None,
        influencer_id: int | None = None,
        campaign_id: int | None = None,
        bid_id: int | None = None,
        max_negotiation_rounds: int | None = None,
    ) -> tuple[Conversation, bool]:
        """Return the open conversation for the deal, creating it if needed.

        The second element is True when a new conversation was created.
        """
        if (campaign_id is None) == (bid_id is None):
            raise ValidationError("Exactly one of campaign_id or bid_id is required")

        if actor.role is ActorRole.BRAND_OWNER:
            brand_owner_id = actor.user_id
            initial_state, awaiting = FlowState.INFLUENCER_RESPONDING, AwaitingRole.INFLUENCER
        elif actor.role is ActorRole.INFLUENCER:
            influencer_id = actor.user_id
            initial_state, awaiting = FlowState.BRAND_OWNER_DETAILS, AwaitingRole.BRAND_OWNER
        else:
            raise Forbidden("Only brand owners and influencers can start conversations")

        if brand_owner_id is None or influencer_id is None:
            raise ValidationError("The other participant's id is required")
        if brand_owner_id == influencer_id:
            raise ValidationError("A conversation needs two different participants")

        rounds = settings.max_negotiation_rounds if max_negotiation_rounds is None else max_negotiation_rounds
        if rounds < 0:
            raise ValidationError("max_negotiation_rounds must be zero or greater")

        existing = self.find_open_conversation(
            brand_owner_id=brand_owner_id,
            influencer_id=influencer_id,
            campaign_id=campaign_id,
            bid_id=bid_id,
        )
        if existing is not None:
            return existing, False

        conversation = Conversation(
            brand_owner_id=brand_owner_id,
            influencer_id=influencer_id,
            campaign_id=campaign_id,
            bid_id=bid_id,
            flow_state=initial_state,
            awaiting_role=awaiting,
            negotiation_round=0,
            max_negotiation_rounds=rounds,
            negotiation_history=[],
            flow_data={},
            revision_count=0,
        )
        try:
            self.db.add(conversation)
            self.db.flush()
            who = actor.role.value.replace("_", " ").capitalize()
            kind, source_id = conversation.source
            message = self.messages.append_system_message(
                conversation,
                f"{who} started a conversation about {kind} {source_id}",
                sender_id=actor.user_id,
                receiver_id=actor.counterpart_id(conversation),
            )
            self.notifier.notify(conversation, actor, message)
            self.db.commit()
        except IntegrityError:
            # A concurrent start won the partial unique index; hand back its row.
            self.db.rollback()
            existing = self.find_open_conversation(
                brand_owner_id=brand_owner_id,
                influencer_id=influencer_id,
                campaign_id=campaign_id,
                bid_id=bid_id,
            )
            if existing is None:
                raise
            logger.info("Conversation %s was opened concurrently; reusing it", existing.id)
            return existing, False
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Conversation %s started by %s %s in %s",
            conversation.id,
            actor.role.value,
            actor.user_id,
            initial_state.value,
        )
        self._emit_new_message(conversation, message)
        return conversation, True

    def apply_action(
        self,
        conversation_id: int,
        action: Action | str,
        actor: Actor,
        payload: Mapping[str, Any] | None = None,
        expected_version: int | None = None,
    ) -> ActionResult:
        """Validate and perform ``action`` on behalf of ``actor``.

        Raises:
            Forbidden: wrong role, not a participant, or not the actor's turn.
            NotFound: no such conversation.
            StateConflict: illegal from the current state, stale version, or a
                concurrent writer got there first.
            NegotiationLimitExceeded: counter-offer past the round cap.
            ValidationError: malformed payload.
            PartialFailure: money was recorded but bookkeeping was not.
        """
        action = parse_action(action) if not isinstance(action, Action) else action
        check_role(action, actor.role)
        payload = payload or {}

        try:
            conversation = self._load_for_update(conversation_id)
            actor.ensure_participant(conversation)

            if expected_version is not None and expected_version != conversation.version:
                raise StateConflict(
                    "Conversation has changed since it was read",
                    current_state=conversation.flow_state.value,
                    version=conversation.version,
                )

            try:
                edge = resolve_transition(conversation.flow_state, action)
            except StateConflict as err:
                err.version = conversation.version
                raise

            check_turn(action, actor.role, conversation.awaiting_role)

            previous_state = conversation.flow_state
            outcome = self._handlers[action](conversation, actor, edge, payload)
            if isinstance(outcome, PaymentOutcome):
                message, transaction = outcome.message, outcome.transaction
            else:
                message, transaction = outcome, None

            self.notifier.notify(
                conversation, actor, message, previous_state=previous_state.value
            )
            self.db.commit()
        except PartialFailure:
            # Ledger row and state were committed by the orchestrator.
            self._emit_after_partial_failure(conversation_id, action)
            raise
        except StaleDataError as err:
            self.db.rollback()
            fresh = self.get_conversation(conversation_id)
            self.db.refresh(fresh)
            logger.warning(
                "Concurrent update on conversation %s during %s", conversation_id, action.value
            )
            raise StateConflict(
                "Conversation was modified by another request",
                current_state=fresh.flow_state.value,
                version=fresh.version,
            ) from err
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Conversation %s: %s by %s %s (%s -> %s)",
            conversation.id,
            action.value,
            actor.role.value,
            actor.user_id,
            previous_state.value,
            conversation.flow_state.value,
        )
        if conversation.flow_state != previous_state:
            self._emit_state_changed(conversation, previous_state, action.value)
        if message is not None:
            self._emit_new_message(conversation, message)

        return ActionResult(
            conversation=conversation,
            message=message,
            transaction=transaction,
            previous_state=previous_state,
        )

    # -- free-form messages ----------------------------------------------

    def send_message(
        self,
        conversation_id: int,
        actor: Actor,
        body: str,
        attachments: Sequence[Any] | None = None,
    ) -> Message:
        """Append a participant's own message; not allowed once the deal is over."""
        if actor.is_admin:
            raise Forbidden("Only conversation participants can send messages")
        if not body or not body.strip():
            raise ValidationError("Message body is required")

        try:
            conversation = self.get_conversation_for(conversation_id, actor)
            if conversation.is_terminal:
                raise StateConflict(
                    "Conversation is closed",
                    current_state=conversation.flow_state.value,
                    version=conversation.version,
                )
            message = self.messages.append_user_message(
                conversation,
                body.strip(),
                sender_id=actor.user_id,
                receiver_id=actor.counterpart_id(conversation),
                attachments=attachments,
            )
            self.notifier.notify(conversation, actor, message)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self._emit_new_message(conversation, message)
        return message

    def list_messages(
        self,
        conversation_id: int,
        actor: Actor,
        *,
        limit: int = 50,
        before: int | None = None,
    ) -> Sequence[Message]:
        self.get_conversation_for(conversation_id, actor)
        return self.messages.list_messages(conversation_id, limit=limit, before=before)

    def mark_seen(self, conversation_id: int, actor: Actor) -> int:
        self.get_conversation_for(conversation_id, actor)
        try:
            updated = self.messages.mark_seen(conversation_id, actor.user_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return updated

    def mark_delivered(self, conversation_id: int, message_id: int, actor: Actor) -> Message:
        """Acknowledge receipt of one message addressed to ``actor``."""
        self.get_conversation_for(conversation_id, actor)
        message = self.db.get(Message, message_id)
        if message is None or message.conversation_id != conversation_id:
            raise NotFound("Message not found")
        if message.receiver_id != actor.user_id:
            raise Forbidden("Only the recipient can acknowledge a message")
        try:
            self.messages.mark_delivered(message_id)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return message

    # -- connection, details and work handlers ---------------------------

    def _say(self, conversation: Conversation, actor: Actor, body: str, payload: Mapping[str, Any]) -> Message:
        return self.messages.append_system_message(
            conversation,
            body,
            sender_id=actor.user_id,
            receiver_id=actor.counterpart_id(conversation),
            attachments=payload.get("attachments"),
        )

    def _accept_connection(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("message") or "Influencer accepted the connection", payload)

    def _reject_connection(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("reason") or "Influencer declined the connection", payload)

    def _send_details(self, conversation, actor, edge, payload) -> Message:
        details = payload.get("project_details") or payload.get("details")
        if details is not None:
            if not isinstance(details, str) or not details.strip():
                raise ValidationError("project_details must be a non-empty string")
            flow = conversation.flow
            flow.project_details = details.strip()
            conversation.flow = flow
        apply_edge(conversation, edge)
        body = payload.get("message") or "Brand owner shared the project details"
        return self._say(conversation, actor, body, payload)

    def _accept_details(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("message") or "Influencer accepted the project details", payload)

    def _reject_details(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("reason") or "Influencer rejected the project details", payload)

    def _submit_work(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("message") or "Work submitted", payload)

    def _request_revision(self, conversation, actor, edge, payload) -> Message:
        conversation.revision_count += 1
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("reason") or "Revision requested", payload)

    def _approve_work(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("note") or "Work approved by brand owner", payload)

    def _close(self, conversation, actor, edge, payload) -> Message:
        apply_edge(conversation, edge)
        return self._say(conversation, actor, payload.get("note") or "Conversation closed", payload)

    # -- internals -------------------------------------------------------

    def _load_for_update(self, conversation_id: int) -> Conversation:
        conversation = self.db.scalars(
            select(Conversation)
            .where(Conversation.id == conversation_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).first()
        if conversation is None:
            raise NotFound("Conversation not found")
        return conversation

    def _conversation_context(self, conversation: Conversation) -> dict[str, Any]:
        return {
            "flow_state": conversation.flow_state.value,
            "awaiting_role": conversation.awaiting_role.value if conversation.awaiting_role else None,
            "negotiation_round": conversation.negotiation_round,
            "max_negotiation_rounds": conversation.max_negotiation_rounds,
            "version": conversation.version,
        }

    def _emit_state_changed(self, conversation: Conversation, previous: FlowState, reason: str) -> None:
        safe_emit(
            self.emitter,
            CONVERSATION_STATE_CHANGED,
            {
                "conversation_id": conversation.id,
                "previous_state": previous.value,
                "new_state": conversation.flow_state.value,
                "awaiting_role": conversation.awaiting_role.value if conversation.awaiting_role else None,
                "reason": reason,
                "timestamp": utc_isoformat(),
            },
        )

    def _emit_new_message(self, conversation: Conversation, message: Message) -> None:
        safe_emit(
            self.emitter,
            NEW_MESSAGE,
            {
                "conversation_id": conversation.id,
                "message": message_event_payload(message),
                "conversation_context": self._conversation_context(conversation),
            },
        )

    def _emit_after_partial_failure(self, conversation_id: int, action: Action) -> None:
        try:
            conversation = self.get_conversation(conversation_id)
        except DealroomError:
            return
        safe_emit(
            self.emitter,
            CONVERSATION_STATE_CHANGED,
            {
                "conversation_id": conversation.id,
                "previous_state": None,
                "new_state": conversation.flow_state.value,
                "awaiting_role": conversation.awaiting_role.value if conversation.awaiting_role else None,
                "reason": f"{action.value} (partial failure)",
                "timestamp": utc_isoformat(),
            },
        )
