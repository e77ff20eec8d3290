# src/dealroom/api/v1/endpoints/admin.py
"""Admin endpoints: payment releases, ledger and commission settings."""

from __future__ import annotations

from enum import StrEnum
from typing import Annotated

from fastapi import APIRouter, Query

from dealroom.schemas import (
    ActionResponse,
    CommissionCurrentResponse,
    CommissionHistoryResponse,
    CommissionSettingResponse,
    CommissionUpdate,
    PaymentRequest,
    TransactionResponse,
)
from dealroom.services import CommissionService, LedgerService
from dealroom.services.transitions import Action

from ..dependencies import AdminDep, ConversationServiceDep, SessionDep
from .conversations import breakdown_response, build_action_response

router = APIRouter(prefix="/admin", tags=["admin"])


class PaymentKind(StrEnum):
    RECEIVE = "receive"
    RELEASE_ADVANCE = "release-advance"
    RELEASE_FINAL = "release-final"
    REFUND_FINAL = "refund-final"


_PAYMENT_ACTIONS = {
    PaymentKind.RECEIVE: Action.RECEIVE_PAYMENT,
    PaymentKind.RELEASE_ADVANCE: Action.RELEASE_ADVANCE,
    PaymentKind.RELEASE_FINAL: Action.RELEASE_FINAL,
    PaymentKind.REFUND_FINAL: Action.REFUND_FINAL,
}


@router.post("/conversations/{conversation_id}/payments/{kind}", response_model=ActionResponse)
async def record_payment(
    conversation_id: int,
    kind: PaymentKind,
    body: PaymentRequest,
    admin: AdminDep,
    service: ConversationServiceDep,
) -> ActionResponse:
    """Record a payment movement and apply its state change."""
    result = service.apply_action(
        conversation_id,
        _PAYMENT_ACTIONS[kind],
        admin,
        body.as_payload(),
    )
    return build_action_response(result, breakdown_response(service, result.conversation))


@router.get(
    "/conversations/{conversation_id}/transactions",
    response_model=list[TransactionResponse],
)
async def list_transactions(
    conversation_id: int,
    admin: AdminDep,
    service: ConversationServiceDep,
    db: SessionDep,
) -> list[TransactionResponse]:
    """Return the conversation's ledger in insertion order."""
    service.get_conversation(conversation_id)
    rows = LedgerService(db).list_transactions(conversation_id)
    return [TransactionResponse.model_validate(row) for row in rows]


@router.get("/commission/current", response_model=CommissionCurrentResponse)
async def current_commission(admin: AdminDep, db: SessionDep) -> CommissionCurrentResponse:
    commission = CommissionService(db)
    return CommissionCurrentResponse(
        commission_percentage=commission.get_current_commission_percentage(),
        is_default=commission.current_setting() is None,
    )


@router.put("/commission", response_model=CommissionSettingResponse)
async def update_commission(
    body: CommissionUpdate,
    admin: AdminDep,
    db: SessionDep,
) -> CommissionSettingResponse:
    setting = CommissionService(db).update_commission(body.commission_percentage)
    return CommissionSettingResponse.model_validate(setting)


@router.get("/commission/history", response_model=CommissionHistoryResponse)
async def commission_history(
    admin: AdminDep,
    db: SessionDep,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> CommissionHistoryResponse:
    rows, total = CommissionService(db).commission_history(limit=limit, offset=offset)
    return CommissionHistoryResponse(
        items=[CommissionSettingResponse.model_validate(row) for row in rows],
        total=total,
        limit=limit,
        offset=offset,
    )
