# src/dealroom/api/v1/endpoints/conversations.py
"""Conversation endpoints: start, inspect, act and message."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Query, Response, status

from dealroom.models import Conversation
from dealroom.schemas import (
    ActionRequest,
    ActionResponse,
    ConversationCreate,
    ConversationDetailResponse,
    ConversationResponse,
    MessageCreate,
    MessageResponse,
    PaymentBreakdownResponse,
    SeenResponse,
    TransactionResponse,
)
from dealroom.services import ActionResult, ConversationService
from dealroom.services.transitions import legal_actions

from ..dependencies import ConversationServiceDep, CurrentActorDep

router = APIRouter(prefix="/conversations", tags=["conversations"])


def breakdown_response(service: ConversationService, conversation: Conversation) -> PaymentBreakdownResponse | None:
    breakdown = service.resolve_payment_breakdown(conversation)
    if breakdown is None:
        return None
    return PaymentBreakdownResponse(**breakdown.as_display())


def build_detail(service: ConversationService, conversation: Conversation) -> ConversationDetailResponse:
    return ConversationDetailResponse(
        conversation=ConversationResponse.model_validate(conversation),
        payment_breakdown=breakdown_response(service, conversation),
        allowed_actions=[action.value for action in legal_actions(conversation.flow_state)],
        negotiation_rounds_remaining=service.negotiation.rounds_remaining(conversation),
    )


def build_action_response(
    result: ActionResult, breakdown: PaymentBreakdownResponse | None = None
) -> ActionResponse:
    return ActionResponse(
        conversation=ConversationResponse.model_validate(result.conversation),
        message=MessageResponse.model_validate(result.message) if result.message else None,
        transaction=(
            TransactionResponse.model_validate(result.transaction) if result.transaction else None
        ),
        flow_state=result.flow_state,
        awaiting_role=result.awaiting_role,
        payment_breakdown=breakdown,
    )


@router.post("", response_model=ConversationDetailResponse)
async def start_conversation(
    body: ConversationCreate,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
    response: Response,
) -> ConversationDetailResponse:
    """Start a conversation, or return the one already open for this deal."""
    conversation, created = service.start_conversation(
        actor,
        brand_owner_id=body.brand_owner_id,
        influencer_id=body.influencer_id,
        campaign_id=body.campaign_id,
        bid_id=body.bid_id,
        max_negotiation_rounds=body.max_negotiation_rounds,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return build_detail(service, conversation)


@router.get("/{conversation_id}", response_model=ConversationDetailResponse)
async def get_conversation(
    conversation_id: int,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
) -> ConversationDetailResponse:
    conversation = service.get_conversation_for(conversation_id, actor)
    return build_detail(service, conversation)


@router.post("/{conversation_id}/actions", response_model=ActionResponse)
async def apply_action(
    conversation_id: int,
    body: ActionRequest,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
) -> ActionResponse:
    """Perform one guarded flow action."""
    result = service.apply_action(
        conversation_id,
        body.action,
        actor,
        body.payload,
        expected_version=body.expected_version,
    )
    return build_action_response(result)


@router.get("/{conversation_id}/messages", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: int,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    before: Annotated[int | None, Query(ge=1, description="Return messages older than this id")] = None,
) -> list[MessageResponse]:
    """List messages newest first."""
    messages = service.list_messages(conversation_id, actor, limit=limit, before=before)
    return [MessageResponse.model_validate(message) for message in messages]


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    conversation_id: int,
    body: MessageCreate,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
) -> MessageResponse:
    message = service.send_message(conversation_id, actor, body.body, body.attachments)
    return MessageResponse.model_validate(message)


@router.put("/{conversation_id}/seen", response_model=SeenResponse)
async def mark_seen(
    conversation_id: int,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
) -> SeenResponse:
    """Mark everything addressed to the caller as read."""
    return SeenResponse(updated=service.mark_seen(conversation_id, actor))


@router.put(
    "/{conversation_id}/messages/{message_id}/delivered",
    response_model=MessageResponse,
)
async def mark_delivered(
    conversation_id: int,
    message_id: int,
    actor: CurrentActorDep,
    service: ConversationServiceDep,
) -> MessageResponse:
    """Acknowledge that a message reached the caller's device."""
    message = service.mark_delivered(conversation_id, message_id, actor)
    return MessageResponse.model_validate(message)
