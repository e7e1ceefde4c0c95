"""End-to-end tests of the HTTP surface with the mock Daraja client."""

import logging

import pytest
from fastapi.testclient import TestClient

from src.api.main import create_app
from src.integrations.clients.mocks.daraja import DarajaMockClient
from src.utils.config_loader import AppSettings, DarajaConfig, RateLimitConfig


def _submit(client, body):
    resp = client.post("/api/service-request", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_full_payment_flow(client, provider, valid_submission):
    created = _submit(client, valid_submission)
    assert created["amount"] == 500
    assert created["status"] == "submitted"

    resp = client.post(
        "/api/initiate-payment",
        json={"serviceRequestId": created["id"], "phoneNumber": "0712345678"},
    )
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["phoneNumber"] == "254712345678"
    assert data["amount"] == 500
    assert provider.pushes[-1].phone_number == "254712345678"

    record = client.get(f"/api/service-request/{created['id']}").json()["data"]
    assert record["paymentReference"] == data["correlationId"]

    resp = client.post("/api/payment-callback", json=provider.build_callback(data["correlationId"], result_code=0))
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Callback processed successfully"}

    status = client.get(f"/api/payment-status/{created['id']}").json()["data"]
    assert status["paymentStatus"] == "completed"
    assert status["status"] == "processing"
    assert status["mpesaReceiptNumber"]

    resp = client.post("/api/payment-callback", json=provider.build_callback(data["correlationId"], result_code=1))
    assert resp.status_code == 200
    status = client.get(f"/api/payment-status/{created['id']}").json()["data"]
    assert status["paymentStatus"] == "failed"


def test_failed_payment_callback_still_returns_200(client, provider, valid_submission):
    created = _submit(client, valid_submission)
    data = client.post(
        "/api/initiate-payment",
        json={"serviceRequestId": created["id"], "phoneNumber": "712345678"},
    ).json()["data"]

    resp = client.post("/api/mpesa/callback", json=provider.build_callback(data["correlationId"], result_code=1032))

    assert resp.status_code == 200
    assert client.get(f"/api/payment-status/{created['id']}").json()["data"]["paymentStatus"] == "failed"


def test_completed_payment_cannot_be_initiated_again(client, provider, valid_submission):
    created = _submit(client, valid_submission)
    body = {"serviceRequestId": created["id"], "phoneNumber": "0712345678"}
    data = client.post("/api/initiate-payment", json=body).json()["data"]
    client.post("/api/payment-callback", json=provider.build_callback(data["correlationId"]))
    pushes = len(provider.pushes)

    resp = client.post("/api/initiate-payment", json=body)

    assert resp.status_code == 400
    assert resp.json()["error"] == "Payment already completed"
    assert len(provider.pushes) == pushes


def test_unknown_correlation_id_returns_404(client, provider, valid_submission):
    created = _submit(client, valid_submission)

    resp = client.post("/api/payment-callback", json=provider.build_callback("ws_CO_NOT_OURS", result_code=0))

    assert resp.status_code == 404
    assert resp.json() == {"error": "Service request not found"}
    record = client.get(f"/api/service-request/{created['id']}").json()["data"]
    assert record["paymentStatus"] == "pending"


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"Body": {}},
        {"Body": {"stkCallback": {"ResultCode": 0}}},
        {"Body": {"stkCallback": {"CheckoutRequestID": "ws_CO_1", "ResultCode": "not-a-number"}}},
        ["not", "an", "object"],
    ],
)
def test_invalid_callback_payload_returns_400(client, payload):
    resp = client.post("/api/payment-callback", json=payload)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid callback data"


def test_string_result_code_is_accepted(client, provider, valid_submission):
    created = _submit(client, valid_submission)
    data = client.post(
        "/api/initiate-payment",
        json={"serviceRequestId": created["id"], "phoneNumber": "254712345678"},
    ).json()["data"]
    payload = provider.build_callback(data["correlationId"], result_code=0)
    payload["Body"]["stkCallback"]["ResultCode"] = "0"

    assert client.post("/api/payment-callback", json=payload).status_code == 200
    assert client.get(f"/api/payment-status/{created['id']}").json()["data"]["paymentStatus"] == "completed"


def test_submission_validation_errors(client, valid_submission):
    resp = client.post("/api/service-request", json={"serviceType": "KRA"})
    assert resp.status_code == 400
    assert "fullName" in resp.json()["fields"]

    resp = client.post("/api/service-request", json=dict(valid_submission, subService="Nope"))
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid service"

    resp = client.post("/api/service-request", content=b"{not json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Validation failed"


def test_initiate_payment_errors(client, valid_submission):
    resp = client.post("/api/initiate-payment", json={})
    assert resp.status_code == 400
    assert set(resp.json()["fields"]) == {"serviceRequestId", "phoneNumber"}

    created = _submit(client, valid_submission)
    resp = client.post("/api/initiate-payment", json={"serviceRequestId": created["id"], "phoneNumber": "12345"})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid phone number"

    resp = client.post("/api/initiate-payment", json={"serviceRequestId": "missing", "phoneNumber": "0712345678"})
    assert resp.status_code == 404


def test_provider_failure_returns_generic_payment_error(settings, db, cache, catalog, valid_submission):
    app = create_app(settings, db=db, cache=cache, provider=DarajaMockClient(accept_rate=0.0), catalog=catalog)
    with TestClient(app) as client:
        created = _submit(client, valid_submission)
        resp = client.post(
            "/api/initiate-payment",
            json={"serviceRequestId": created["id"], "phoneNumber": "0712345678"},
        )

    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Payment Error",
        "details": "Failed to initiate payment. Please try again later.",
    }


def test_callback_token_is_enforced_when_configured(db, cache, provider, catalog, valid_submission):
    settings = AppSettings(
        integrations_mode="mock",
        daraja=DarajaConfig(
            callback_url="https://portal.example.com/api/payment-callback",
            callback_token="s3cret",
        ),
        rate_limit=RateLimitConfig(enabled=False),
    )
    app = create_app(settings, db=db, cache=cache, provider=provider, catalog=catalog)
    with TestClient(app) as client:
        created = _submit(client, valid_submission)
        data = client.post(
            "/api/initiate-payment",
            json={"serviceRequestId": created["id"], "phoneNumber": "0712345678"},
        ).json()["data"]
        payload = provider.build_callback(data["correlationId"])

        assert client.post("/api/payment-callback", json=payload).status_code == 401
        assert client.post("/api/payment-callback?token=wrong", json=payload).status_code == 401
        assert client.post("/api/payment-callback?token=s3cret", json=payload).status_code == 200
        resp = client.post("/api/payment-callback", json=payload, headers={"X-Callback-Token": "s3cret"})
        assert resp.status_code == 200


def test_callback_ip_allow_list(db, cache, provider, catalog):
    settings = AppSettings(
        integrations_mode="mock",
        daraja=DarajaConfig(
            callback_url="https://portal.example.com/api/payment-callback",
            callback_allowed_ips=["196.201.214.200"],
        ),
        rate_limit=RateLimitConfig(enabled=False),
    )
    app = create_app(settings, db=db, cache=cache, provider=provider, catalog=catalog)
    with TestClient(app) as client:
        resp = client.post("/api/payment-callback", json=provider.build_callback("ws_CO_1"))
    assert resp.status_code == 403


def test_health_and_unknown_routes(client):
    for path in ("/health", "/api/health"):
        body = client.get(path).json()
        assert body["status"] == "OK"
        assert body["environment"] == "test"

    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Not Found"


def test_rate_limit(db, cache, provider, catalog):
    settings = AppSettings(
        integrations_mode="mock",
        daraja=DarajaConfig(callback_url="https://portal.example.com/api/payment-callback"),
        rate_limit=RateLimitConfig(enabled=True, requests=2, window_seconds=900),
    )
    app = create_app(settings, db=db, cache=cache, provider=provider, catalog=catalog)
    with TestClient(app) as client:
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/health").status_code == 200
        resp = client.get("/api/health")
        # Paths outside /api are not limited.
        assert client.get("/health").status_code == 200

    assert resp.status_code == 429
    assert resp.json()["error"] == "Too many requests"


def test_payment_callbacks_are_not_rate_limited(db, cache, provider, catalog, valid_submission):
    settings = AppSettings(
        integrations_mode="mock",
        daraja=DarajaConfig(callback_url="https://portal.example.com/api/payment-callback"),
        rate_limit=RateLimitConfig(enabled=True, requests=3, window_seconds=900),
    )
    app = create_app(settings, db=db, cache=cache, provider=provider, catalog=catalog)
    with TestClient(app) as client:
        created = _submit(client, valid_submission)
        data = client.post(
            "/api/initiate-payment",
            json={"serviceRequestId": created["id"], "phoneNumber": "0712345678"},
        ).json()["data"]
        assert client.get("/api/health").status_code == 200
        assert client.get("/api/health").status_code == 429

        first = client.post("/api/payment-callback", json=provider.build_callback(data["correlationId"], result_code=1))
        second = client.post("/api/mpesa/callback", json=provider.build_callback(data["correlationId"]))
        status = client.get("/health")

    assert first.status_code == 200
    assert second.status_code == 200
    assert status.status_code == 200
    assert db._requests[created["id"]].payment_status == "completed"


def test_provider_failure_is_logged_once_with_request_id(settings, db, cache, catalog, valid_submission, caplog):
    app = create_app(settings, db=db, cache=cache, provider=DarajaMockClient(accept_rate=0.0), catalog=catalog)
    with TestClient(app) as client:
        created = _submit(client, valid_submission)
        caplog.clear()
        with caplog.at_level(logging.ERROR):
            client.post(
                "/api/initiate-payment",
                json={"serviceRequestId": created["id"], "phoneNumber": "0712345678"},
            )

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert created["id"] in errors[0].getMessage()
