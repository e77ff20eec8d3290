"""HTTP tests for the conversation endpoints."""

from decimal import Decimal

from fastapi.testclient import TestClient

from dealroom.models import AwaitingRole, FlowState
from tests.conftest import auth_headers


def test_start_then_fetch_existing(client: TestClient, brand_owner, influencer) -> None:
    response = client.post(
        "/api/v1/conversations",
        json={"influencer_id": 20, "campaign_id": 55},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 201
    detail = response.json()
    assert detail["conversation"]["flow_state"] == "influencer_responding"
    assert detail["conversation"]["awaiting_role"] == "influencer"
    assert detail["payment_breakdown"] is None
    assert set(detail["allowed_actions"]) >= {"accept_connection", "reject_connection"}

    again = client.post(
        "/api/v1/conversations",
        json={"brand_owner_id": 10, "campaign_id": 55},
        headers=auth_headers(influencer),
    )
    assert again.status_code == 200
    assert again.json()["conversation"]["id"] == detail["conversation"]["id"]


def test_start_requires_single_source(client: TestClient, brand_owner) -> None:
    response = client.post(
        "/api/v1/conversations",
        json={"influencer_id": 20, "campaign_id": 1, "bid_id": 2},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 422


def test_detail_includes_payment_breakdown(client: TestClient, influencer, make_conversation) -> None:
    conversation = make_conversation(
        FlowState.PAYMENT_PENDING, AwaitingRole.BRAND_OWNER, agreed_amount=Decimal("1000")
    )
    response = client.get(f"/api/v1/conversations/{conversation.id}", headers=auth_headers(influencer))
    assert response.status_code == 200
    breakdown = response.json()["payment_breakdown"]
    assert Decimal(breakdown["commission_amount"]) == Decimal("100")
    assert Decimal(breakdown["advance_amount"]) == Decimal("450")
    assert Decimal(breakdown["final_amount"]) == Decimal("450")


def test_action_envelope(client: TestClient, brand_owner, make_conversation) -> None:
    conversation = make_conversation(FlowState.BRAND_OWNER_PRICING, AwaitingRole.BRAND_OWNER)
    response = client.post(
        f"/api/v1/conversations/{conversation.id}/actions",
        json={"action": "set_price", "payload": {"amount": "750"}, "expected_version": 1},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["flow_state"] == "influencer_price_response"
    assert body["awaiting_role"] == "influencer"
    assert body["conversation"]["version"] == 2
    assert body["message"]["message_type"] == "system"
    assert body["transaction"] is None


def test_errors_use_the_shared_shape(client: TestClient, influencer, make_conversation) -> None:
    conversation = make_conversation(FlowState.WORK_APPROVED, None)
    response = client.post(
        f"/api/v1/conversations/{conversation.id}/actions",
        json={"action": "submit_work"},
        headers=auth_headers(influencer),
    )
    assert response.status_code == 409
    assert response.json() == {
        "success": False,
        "error": "state_conflict",
        "detail": "Invalid state transition from work_approved via submit_work",
        "current_state": "work_approved",
        "version": 1,
    }


def test_wrong_role_is_403(client: TestClient, brand_owner, make_conversation) -> None:
    conversation = make_conversation(FlowState.WORK_IN_PROGRESS, AwaitingRole.INFLUENCER)
    response = client.post(
        f"/api/v1/conversations/{conversation.id}/actions",
        json={"action": "submit_work"},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 403
    assert response.json()["error"] == "forbidden"


def test_missing_conversation_is_404(client: TestClient, influencer) -> None:
    response = client.get("/api/v1/conversations/999", headers=auth_headers(influencer))
    assert response.status_code == 404


def test_messages_roundtrip(client: TestClient, brand_owner, influencer, make_conversation) -> None:
    conversation = make_conversation()
    url = f"/api/v1/conversations/{conversation.id}/messages"

    created = client.post(url, json={"body": "Hi!"}, headers=auth_headers(brand_owner))
    assert created.status_code == 201
    assert created.json()["message_type"] == "user_input"

    listed = client.get(url, headers=auth_headers(influencer))
    assert [m["body"] for m in listed.json()] == ["Hi!"]

    seen = client.put(f"/api/v1/conversations/{conversation.id}/seen", headers=auth_headers(influencer))
    assert seen.json() == {"updated": 1}


def test_empty_message_is_rejected(client: TestClient, brand_owner, make_conversation) -> None:
    conversation = make_conversation()
    response = client.post(
        f"/api/v1/conversations/{conversation.id}/messages",
        json={"body": ""},
        headers=auth_headers(brand_owner),
    )
    assert response.status_code == 422


def test_detail_reports_rounds_left(client: TestClient, brand_owner, make_conversation) -> None:
    conversation = make_conversation(
        FlowState.BRAND_OWNER_PRICE_RESPONSE, AwaitingRole.BRAND_OWNER, negotiation_round=2
    )
    detail = client.get(f"/api/v1/conversations/{conversation.id}", headers=auth_headers(brand_owner)).json()
    assert detail["negotiation_rounds_remaining"] == 1


def test_unreadable_agreed_amount_is_not_a_server_error(client: TestClient, influencer, make_conversation) -> None:
    conversation = make_conversation(FlowState.PAYMENT_PENDING, flow_data={"agreed_amount": ""})
    response = client.get(f"/api/v1/conversations/{conversation.id}", headers=auth_headers(influencer))
    assert response.status_code == 200
    assert response.json()["payment_breakdown"] is None


def test_delivery_acknowledgement(client: TestClient, brand_owner, influencer, make_conversation) -> None:
    conversation = make_conversation()
    sent = client.post(
        f"/api/v1/conversations/{conversation.id}/messages",
        json={"body": "ping"},
        headers=auth_headers(brand_owner),
    ).json()

    response = client.put(
        f"/api/v1/conversations/{conversation.id}/messages/{sent['id']}/delivered",
        headers=auth_headers(influencer),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "delivered"
