"""Integration tests for API endpoints"""

from unittest.mock import AsyncMock, patch
from fastapi.testclient import TestClient
from policy_gateway.config import settings
from policy_gateway.domain.exceptions import PaymentPendingError
from policy_gateway.domain.models import ConfirmationResult, IntentHandle, PaymentOutcome


def submit(client, headers, payload):
    response = client.post("/v1/applications", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


def approve(client, headers, application_id):
    response = client.post(f"/v1/applications/{application_id}/review", json={"decision": "approve"}, headers=headers)
    assert response.status_code == 200, response.text
    return response.json()


def test_health_endpoint(client: TestClient):
    """Test health check endpoint"""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_metrics_endpoint(client: TestClient):
    """Test Prometheus metrics endpoint"""
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "policy_reviews_total" in response.text


def test_request_id_is_echoed(client: TestClient):
    response = client.get("/health", headers={"X-Request-ID": "trace-123"})
    assert response.headers["X-Request-ID"] == "trace-123"


def test_submit_application(client, customer, headers_for, application_payload):
    data = submit(client, headers_for(customer), application_payload)

    assert data["status"] == "Pending"
    assert data["email"] == "a@x.com"
    assert data["nominee"] == {"name": "Karim Rahman", "relationship": "Spouse"}
    assert data["health_disclosure"] == ["Asthma"]
    assert data["paid"] is False


def test_submit_rejects_unknown_fields(client, customer, headers_for, application_payload):
    response = client.post(
        "/v1/applications",
        json={**application_payload, "status": "Approved"},
        headers=headers_for(customer),
    )

    assert response.status_code == 422
    assert response.json()["error"]["kind"] == "validation_error"


def test_submit_rejects_missing_fields(client, customer, headers_for, application_payload):
    payload = dict(application_payload)
    del payload["nominee"]

    response = client.post("/v1/applications", json=payload, headers=headers_for(customer))

    assert response.status_code == 422
    assert "nominee" in response.json()["error"]["message"]


def test_submit_rejects_unknown_health_condition(client, customer, headers_for, application_payload):
    response = client.post(
        "/v1/applications",
        json={**application_payload, "health_disclosure": ["Sunburn"]},
        headers=headers_for(customer),
    )

    assert response.status_code == 422
    assert response.json()["error"] == {
        "kind": "validation_error",
        "message": "health_disclosure has unknown condition 'Sunburn'",
        "retryable": False,
    }


def test_missing_identity_is_rejected(client, application_payload):
    response = client.post("/v1/applications", json=application_payload)

    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "authorization_error"


def test_review_flow(client, customer, agent, headers_for, application_payload):
    application_id = submit(client, headers_for(customer), application_payload)["id"]

    approved = approve(client, headers_for(agent), application_id)
    assert approved["status"] == "Approved"
    assert approved["reviewed_by"] == agent.email

    second = client.post(
        f"/v1/applications/{application_id}/review", json={"decision": "reject"}, headers=headers_for(agent)
    )
    assert second.status_code == 409
    assert second.json()["error"]["kind"] == "invalid_transition"

    current = client.get(f"/v1/applications/{application_id}", headers=headers_for(customer))
    assert current.json()["status"] == "Approved"


def test_customer_cannot_review(client, customer, headers_for, application_payload):
    application_id = submit(client, headers_for(customer), application_payload)["id"]

    response = client.post(
        f"/v1/applications/{application_id}/review", json={"decision": "approve"}, headers=headers_for(customer)
    )

    assert response.status_code == 403


def test_review_unknown_application(client, agent, headers_for):
    response = client.post(
        "/v1/applications/00000000-0000-0000-0000-000000000000/review",
        json={"decision": "approve"},
        headers=headers_for(agent),
    )
    assert response.status_code == 404
    assert response.json()["error"]["kind"] == "not_found"


def test_list_applications_by_status(client, customer, agent, headers_for, application_payload):
    first = submit(client, headers_for(customer), application_payload)["id"]
    submit(client, headers_for(customer), application_payload)
    approve(client, headers_for(agent), first)

    everything = client.get("/v1/applications", headers=headers_for(agent)).json()["applications"]
    approved = client.get("/v1/applications?status=Approved", headers=headers_for(agent)).json()["applications"]

    assert len(everything) == 2
    assert [a["id"] for a in approved] == [first]


@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.confirm_intent")
@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.create_intent")
def test_payment_flow(
    mock_create: AsyncMock,
    mock_confirm: AsyncMock,
    client,
    customer,
    agent,
    admin,
    headers_for,
    application_payload,
):
    """Approved application is paid, confirmed, and shows up as revenue"""
    mock_create.return_value = IntentHandle(intent_id="pi_api_1", client_secret="pi_api_1_secret_xyz")
    mock_confirm.return_value = ConfirmationResult(outcome=PaymentOutcome.SUCCEEDED)

    application_id = submit(client, headers_for(customer), application_payload)["id"]
    approve(client, headers_for(agent), application_id)

    created = client.post(
        "/v1/payments/intents",
        json={"amount": 5000, "currency": "usd", "application_id": application_id},
        headers=headers_for(customer),
    )
    assert created.status_code == 201
    body = created.json()
    assert body["client_secret"] == "pi_api_1_secret_xyz"
    assert body["transaction"]["status"] == "pending"
    assert "client_secret" not in body["transaction"]

    confirmed = client.post(
        "/v1/payments/pi_api_1/confirm",
        json={"payment_method_token": "pm_card_visa"},
        headers=headers_for(customer),
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "success"
    assert confirmed.json()["amount"] == 5000

    paid = client.get(f"/v1/applications/{application_id}", headers=headers_for(customer)).json()
    assert paid["paid"] is True

    revenue = client.get("/v1/payments/revenue", headers=headers_for(admin)).json()
    assert revenue["revenue_minor"] == {"usd": 5000}

    mine = client.get("/v1/payments/transactions", headers=headers_for(customer)).json()["transactions"]
    assert [t["processor_intent_id"] for t in mine] == ["pi_api_1"]


@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.confirm_intent")
@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.create_intent")
def test_confirm_timeout_returns_payment_pending(mock_create: AsyncMock, mock_confirm: AsyncMock, client, customer, headers_for):
    mock_create.return_value = IntentHandle(intent_id="pi_api_2", client_secret="secret")
    mock_confirm.side_effect = PaymentPendingError("Payment confirmation timed out; check the payment status before paying again")

    client.post(
        "/v1/payments/intents",
        json={"amount": 5000, "currency": "usd", "policy_ref": "life-basic"},
        headers=headers_for(customer),
    )
    response = client.post(
        "/v1/payments/pi_api_2/confirm",
        json={"payment_method_token": "pm_card_visa"},
        headers=headers_for(customer),
    )

    assert response.status_code == 504
    assert response.json()["error"]["kind"] == "payment_pending"
    assert response.json()["error"]["retryable"] is False
    mine = client.get("/v1/payments/transactions", headers=headers_for(customer)).json()["transactions"]
    assert mine[0]["status"] == "pending"


@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.create_intent")
def test_webhook_is_idempotent(mock_create: AsyncMock, client, customer, admin, headers_for):
    """Duplicate processor notifications leave one successful ledger entry"""
    mock_create.return_value = IntentHandle(intent_id="pi_api_3", client_secret="secret")
    client.post(
        "/v1/payments/intents",
        json={"amount": 5000, "currency": "usd", "policy_ref": "life-basic"},
        headers=headers_for(customer),
    )

    notification = {"intent_id": "pi_api_3", "outcome": "succeeded"}
    webhook_headers = {"X-Processor-Secret": settings.processor_webhook_secret}
    first = client.post("/v1/payments/webhook", json=notification, headers=webhook_headers)
    second = client.post("/v1/payments/webhook", json=notification, headers=webhook_headers)

    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()
    assert second.json()["status"] == "success"
    ledger = client.get("/v1/payments/transactions", headers=headers_for(admin)).json()["transactions"]
    assert [t["processor_intent_id"] for t in ledger] == ["pi_api_3"]


def test_webhook_requires_processor_secret(client):
    response = client.post(
        "/v1/payments/webhook",
        json={"intent_id": "pi_x", "outcome": "succeeded"},
        headers={"X-Processor-Secret": "wrong"},
    )
    assert response.status_code == 403


def test_webhook_rejects_non_ascii_secret(client):
    response = client.post(
        "/v1/payments/webhook",
        json={"intent_id": "pi_x", "outcome": "succeeded"},
        headers={"X-Processor-Secret": "whéc".encode("latin-1")},
    )
    assert response.status_code == 403
    assert response.json()["error"]["kind"] == "authorization_error"


def test_webhook_unknown_intent(client):
    response = client.post(
        "/v1/payments/webhook",
        json={"intent_id": "pi_missing", "outcome": "failed"},
        headers={"X-Processor-Secret": settings.processor_webhook_secret},
    )
    assert response.status_code == 404


def test_payment_rejects_non_positive_amount(client, customer, headers_for):
    response = client.post(
        "/v1/payments/intents",
        json={"amount": 0, "currency": "usd", "policy_ref": "life-basic"},
        headers=headers_for(customer),
    )
    assert response.status_code == 422


def test_view_counter_endpoints(client):
    assert client.get("/v1/views/visitor-42").json() == {"resource_id": "visitor-42", "count": 0}

    for expected in (1, 2, 3):
        response = client.post("/v1/views/visitor-42/increment")
        assert response.json()["count"] == expected

    assert client.get("/v1/views/visitor-42").json()["count"] == 3


@patch("policy_gateway.infrastructure.clients.payments.PaymentIntentGateway.create_intent")
def test_claim_flow(mock_create: AsyncMock, client, customer, agent, headers_for, application_payload):
    """Claim on a paid policy is filed Pending and reviewed once"""
    mock_create.return_value = IntentHandle(intent_id="pi_api_claim", client_secret="secret")
    application_id = submit(client, headers_for(customer), application_payload)["id"]
    claim_body = {"application_id": application_id, "reason": "Hospital stay", "document_ref": "uploads/bill.pdf"}

    unpaid = client.post("/v1/claims", json=claim_body, headers=headers_for(customer))
    assert unpaid.status_code == 409

    approve(client, headers_for(agent), application_id)
    client.post(
        "/v1/payments/intents",
        json={"amount": 5000, "currency": "usd", "application_id": application_id},
        headers=headers_for(customer),
    )
    client.post(
        "/v1/payments/webhook",
        json={"intent_id": "pi_api_claim", "outcome": "succeeded"},
        headers={"X-Processor-Secret": settings.processor_webhook_secret},
    )

    filed = client.post("/v1/claims", json=claim_body, headers=headers_for(customer))
    assert filed.status_code == 201, filed.text
    claim = filed.json()
    assert claim["status"] == "Pending"
    assert claim["claimant_email"] == "a@x.com"

    duplicate = client.post("/v1/claims", json=claim_body, headers=headers_for(customer))
    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["kind"] == "invalid_transition"

    forbidden = client.post(f"/v1/claims/{claim['id']}/review", json={"decision": "approve"}, headers=headers_for(customer))
    assert forbidden.status_code == 403

    reviewed = client.post(f"/v1/claims/{claim['id']}/review", json={"decision": "approve"}, headers=headers_for(agent))
    assert reviewed.status_code == 200
    assert reviewed.json()["status"] == "Approved"
    assert reviewed.json()["reviewed_by"] == agent.email

    again = client.post(f"/v1/claims/{claim['id']}/review", json={"decision": "reject"}, headers=headers_for(agent))
    assert again.status_code == 409

    mine = client.get("/v1/claims", headers=headers_for(customer)).json()["claims"]
    assert [c["id"] for c in mine] == [claim["id"]]
    assert client.get(f"/v1/claims/{claim['id']}", headers=headers_for(customer)).json()["status"] == "Approved"


def test_claim_rejects_unknown_fields(client, customer, headers_for):
    response = client.post(
        "/v1/claims",
        json={"application_id": "x", "reason": "r", "document_ref": "d", "status": "Approved"},
        headers=headers_for(customer),
    )
    assert response.status_code == 422
