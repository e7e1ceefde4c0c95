"""Operator endpoints: listing, status changes, deletion and pricing."""


def _create(client, body):
    resp = client.post("/api/service-request", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["id"]


def _pay(client, provider, request_id):
    data = client.post(
        "/api/initiate-payment",
        json={"serviceRequestId": request_id, "phoneNumber": "0712345678"},
    ).json()["data"]
    client.post("/api/payment-callback", json=provider.build_callback(data["correlationId"]))


def test_admin_routes_require_api_key(client, api_key):
    assert client.get("/api/service-requests").status_code == 401
    resp = client.get("/api/service-requests", headers={"X-API-KEY": "wrong"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Unauthorized"
    assert client.put("/api/service-pricing", json={}).status_code == 401
    assert client.delete("/api/service-request/anything").status_code == 401


def test_list_service_requests_newest_first(client, api_key, valid_submission):
    first = _create(client, valid_submission)
    second = _create(client, dict(valid_submission, subService="PIN Update"))

    resp = client.get("/api/service-requests", headers={"X-API-KEY": api_key})

    body = resp.json()
    assert resp.status_code == 200
    assert body["count"] == 2
    assert [r["id"] for r in body["data"]] == [second, first]
    assert body["data"][0]["amount"] == 400


def test_status_update_requires_completed_payment(client, provider, api_key, valid_submission):
    request_id = _create(client, valid_submission)
    headers = {"X-API-KEY": api_key}

    resp = client.put(f"/api/service-request/{request_id}/status", json={"status": "completed"}, headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Payment not completed"

    resp = client.put(f"/api/service-request/{request_id}/status", json={"status": "bogus"}, headers=headers)
    assert resp.status_code == 400

    _pay(client, provider, request_id)
    resp = client.put(f"/api/service-request/{request_id}/status", json={"status": "completed"}, headers=headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "completed"

    resp = client.put("/api/service-request/missing/status", json={"status": "cancelled"}, headers=headers)
    assert resp.status_code == 404


def test_cancel_is_always_allowed(client, api_key, valid_submission):
    request_id = _create(client, valid_submission)
    resp = client.put(
        f"/api/service-request/{request_id}/status",
        json={"status": "cancelled"},
        headers={"X-API-KEY": api_key},
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "cancelled"

    resp = client.post("/api/initiate-payment", json={"serviceRequestId": request_id, "phoneNumber": "0712345678"})
    assert resp.status_code == 400


def test_delete_service_request(client, api_key, valid_submission):
    request_id = _create(client, valid_submission)
    headers = {"X-API-KEY": api_key}

    assert client.delete(f"/api/service-request/{request_id}", headers=headers).status_code == 200
    assert client.get(f"/api/service-request/{request_id}").status_code == 404
    assert client.delete(f"/api/service-request/{request_id}", headers=headers).status_code == 404


def test_pricing_read_and_update(client, api_key, valid_submission):
    pricing = client.get("/api/service-pricing").json()["data"]
    assert pricing["KRA"]["PIN Registration"] == 500

    resp = client.put(
        "/api/service-pricing",
        json={"serviceType": "KRA", "subService": "PIN Registration", "price": 750},
        headers={"X-API-KEY": api_key},
    )
    assert resp.status_code == 200
    assert resp.json()["data"] == {
        "serviceType": "KRA",
        "subService": "PIN Registration",
        "oldPrice": 500,
        "newPrice": 750,
    }

    assert client.get("/api/service-pricing").json()["data"]["KRA"]["PIN Registration"] == 750
    created = client.post("/api/service-request", json=valid_submission).json()["data"]
    assert created["amount"] == 750


def test_pricing_update_errors(client, api_key):
    headers = {"X-API-KEY": api_key}
    resp = client.put(
        "/api/service-pricing",
        json={"serviceType": "KRA", "subService": "PIN Registration", "price": -5},
        headers=headers,
    )
    assert resp.status_code == 400

    resp = client.put(
        "/api/service-pricing",
        json={"serviceType": "KRA", "subService": "Unknown", "price": 100},
        headers=headers,
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Sub-service not found"

    resp = client.put(
        "/api/service-pricing",
        json={"serviceType": "XYZ", "subService": "Unknown", "price": 100},
        headers=headers,
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "Service type not found"
