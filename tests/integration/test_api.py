"""Integration tests for API endpoints"""

import pytest
from datetime import date, timedelta
from unittest.mock import patch
from fastapi.testclient import TestClient
from commission_gateway.domain.exceptions import PersistenceError

ACTOR = {"X-Actor-Id": "user-1", "X-Actor-Name": "ops@example.com"}


@pytest.fixture
def transaction_id(client: TestClient) -> str:
    """Pending transaction created through intake"""
    response = client.post("/v1/transactions", json={"property_address": "12 Elm St"}, headers=ACTOR)
    assert response.status_code == 201
    return response.json()["id"]


@pytest.fixture
def approved_payout_id(client: TestClient, transaction_id: str, final_data: dict) -> str:
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data},
        headers=ACTOR,
    )
    assert response.status_code == 200
    return response.json()["payout"]["id"]


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "commission_approval_total" in response.text


def test_request_id_header(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"
    assert client.get("/health").headers["X-Request-ID"]


def test_intake_creates_pending_transaction(client: TestClient, transaction_id: str):
    response = client.get(f"/v1/transactions/{transaction_id}")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["intake_status"] == "pending"


def test_intake_with_unknown_agent(client: TestClient):
    response = client.post(
        "/v1/transactions", json={"agent_id": "00000000-0000-0000-0000-000000000000"}, headers=ACTOR
    )
    assert response.status_code == 404
    assert response.json()["kind"] == "not_found"


def test_intake_requires_actor(client: TestClient):
    response = client.post("/v1/transactions", json={"property_address": "12 Elm St"})
    assert response.status_code == 401
    assert response.json()["kind"] == "http_error"


def test_approve_endpoint(client: TestClient, transaction_id: str, final_data: dict):
    """1,000,000 at 4% with a 75% split creates a 30,000.00 payout"""
    response = client.post(
        "/v1/transactions/approve",
        json={
            "transaction_id": transaction_id,
            "final_data": final_data,
            "checklist_responses": {"disclosures_signed": True},
        },
        headers=ACTOR,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["transaction"]["status"] == "approved"
    assert data["payout"]["status"] == "ready"
    assert data["payout"]["payout_amount_cents"] == 3_000_000
    assert data["message"] == "Transaction approved and payout created successfully"
    assert data["warnings"] == []


def test_approve_accepts_numeric_inputs(client: TestClient, transaction_id: str):
    response = client.post(
        "/v1/transactions/approve",
        json={
            "transaction_id": transaction_id,
            "final_data": {
                "final_sale_price": 500000,
                "final_listing_commission_percent": 3,
                "final_agent_split_percent": 75.0,
            },
        },
        headers=ACTOR,
    )

    assert response.status_code == 200
    assert response.json()["payout"]["payout_amount_cents"] == 1_125_000


def test_approve_accepts_checklist_array(client: TestClient, transaction_id: str, final_data: dict):
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data, "checklist_responses": ["disclosures"]},
        headers=ACTOR,
    )

    assert response.status_code == 200
    events = client.get(f"/v1/transactions/{transaction_id}/events").json()["events"]
    assert events[-1]["metadata"]["checklist_responses"] == ["disclosures"]


def test_approve_twice_conflicts(client: TestClient, transaction_id: str, final_data: dict, approved_payout_id: str):
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data},
        headers=ACTOR,
    )

    assert response.status_code == 409
    assert response.json()["kind"] == "already_approved"


def test_approve_requires_actor(client: TestClient, transaction_id: str, final_data: dict):
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data},
    )
    assert response.status_code == 401
    assert "X-Actor-Id" in response.json()["error"]


@pytest.mark.parametrize(
    "field, value",
    [
        ("final_sale_price", "twelve"),
        ("final_sale_price", "-5"),
        ("final_listing_commission_percent", "150"),
        ("final_agent_split_percent", "-1"),
        ("final_sale_price", "1e27"),
        ("final_listing_commission_percent", "3.33333"),
    ],
)
def test_approve_rejects_bad_numbers(client: TestClient, transaction_id: str, final_data: dict, field, value):
    final_data[field] = value
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data},
        headers=ACTOR,
    )

    assert response.status_code == 422
    assert response.json()["kind"] == "validation_error"
    assert field in response.json()["error"]
    assert client.get(f"/v1/transactions/{transaction_id}").json()["status"] == "pending"


def test_approve_unknown_transaction(client: TestClient, final_data: dict):
    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": "00000000-0000-0000-0000-000000000000", "final_data": final_data},
        headers=ACTOR,
    )
    assert response.status_code == 404


@patch("commission_gateway.api.retry.time.sleep")
@patch("commission_gateway.services.payout_lifecycle.PayoutLifecycleManager.approve_transaction")
def test_approve_persistence_failure_is_retried_then_surfaced(
    mock_approve, mock_sleep, client: TestClient, transaction_id: str, final_data: dict
):
    mock_approve.side_effect = PersistenceError("Database error while trying to commit: OperationalError")

    response = client.post(
        "/v1/transactions/approve",
        json={"transaction_id": transaction_id, "final_data": final_data},
        headers=ACTOR,
    )

    assert response.status_code == 503
    assert response.json()["kind"] == "persistence_error"
    assert mock_approve.call_count == 3


@pytest.mark.integration
def test_schedule_endpoint_partial_failure(client: TestClient, approved_payout_id: str, next_week: str):
    """A batch with one bad id schedules the rest and reports the failure"""
    response = client.post(
        "/v1/payouts/schedule",
        json={
            "payout_ids": [approved_payout_id, "00000000-0000-0000-0000-000000000000"],
            "scheduled_date": next_week,
            "payment_method": "ach",
            "provider_details": {"provider": "dwolla", "reference": "ACH-1"},
        },
        headers=ACTOR,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["scheduled_count"] == 1
    assert data["error_count"] == 1
    assert data["results"][0]["payout"]["status"] == "scheduled"
    assert data["results"][0]["payout"]["scheduled_date"] == next_week
    assert data["results"][0]["payout"]["auto_ach"] is True
    assert data["results"][1]["kind"] == "not_found"


def test_schedule_single_payout_id(client: TestClient, approved_payout_id: str, next_week: str):
    response = client.post(
        "/v1/payouts/schedule",
        json={"payout_id": approved_payout_id, "scheduled_date": next_week, "payment_method": "wire"},
        headers=ACTOR,
    )

    assert response.status_code == 200
    assert response.json()["scheduled_count"] == 1


def test_schedule_past_date_rejected(client: TestClient, approved_payout_id: str):
    last_week = (date.today() - timedelta(days=7)).isoformat()
    response = client.post(
        "/v1/payouts/schedule",
        json={"payout_ids": [approved_payout_id], "scheduled_date": last_week, "payment_method": "wire"},
        headers=ACTOR,
    )

    assert response.status_code == 422
    assert response.json()["kind"] == "invalid_date"
    assert client.get(f"/v1/payouts/{approved_payout_id}").json()["status"] == "ready"


def test_schedule_empty_batch_rejected(client: TestClient, next_week: str):
    response = client.post(
        "/v1/payouts/schedule",
        json={"payout_ids": [], "scheduled_date": next_week, "payment_method": "wire"},
        headers=ACTOR,
    )
    assert response.status_code == 422


@pytest.mark.integration
def test_settle_endpoint(client: TestClient, approved_payout_id: str, next_week: str):
    client.post(
        "/v1/payouts/schedule",
        json={"payout_ids": [approved_payout_id], "scheduled_date": next_week, "payment_method": "wire"},
        headers=ACTOR,
    )

    response = client.post(
        f"/v1/payouts/{approved_payout_id}/settle",
        json={"outcome": "paid", "payment_reference": "WIRE-77"},
        headers=ACTOR,
    )

    assert response.status_code == 200
    data = response.json()
    assert data["payout"]["status"] == "paid"
    assert data["payout"]["payment_reference"] == "WIRE-77"
    assert data["message"] == "Payout marked as paid"


def test_settle_ready_payout_conflicts(client: TestClient, approved_payout_id: str):
    response = client.post(
        f"/v1/payouts/{approved_payout_id}/settle",
        json={"outcome": "paid"},
        headers=ACTOR,
    )

    assert response.status_code == 409
    assert response.json()["kind"] == "invalid_state"


def test_reject_endpoint(client: TestClient, approved_payout_id: str):
    response = client.post(
        f"/v1/payouts/{approved_payout_id}/reject",
        json={"failure_reason": "Split not authorized"},
        headers=ACTOR,
    )

    assert response.status_code == 200
    assert response.json()["payout"]["status"] == "failed"


def test_get_payout_not_found(client: TestClient):
    response = client.get("/v1/payouts/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
    assert response.json() == {
        "error": "Payout 00000000-0000-0000-0000-000000000000 not found",
        "kind": "not_found",
    }


@pytest.mark.integration
def test_events_endpoint(client: TestClient, transaction_id: str, approved_payout_id: str, next_week: str):
    client.post(
        "/v1/payouts/schedule",
        json={"payout_ids": [approved_payout_id], "scheduled_date": next_week, "payment_method": "check"},
        headers=ACTOR,
    )

    response = client.get(f"/v1/transactions/{transaction_id}/events")

    assert response.status_code == 200
    events = response.json()["events"]
    assert [e["event_type"] for e in events] == ["payout_scheduled", "payout_created", "manual_approval"]
    assert events[0]["actor_id"] == "user-1"
    assert events[0]["metadata"]["payment_method"] == "check"
    assert events[0]["metadata"]["previous_status"] == "ready"
    assert events[2]["actor_name"] == "ops@example.com"


def test_events_unknown_transaction(client: TestClient):
    response = client.get("/v1/transactions/00000000-0000-0000-0000-000000000000/events")
    assert response.status_code == 404
