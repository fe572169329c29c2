from __future__ import annotations

from motorcover.utils import datasets
from motorcover.utils.time_utils import utcnow

from conftest import ADMIN, STAFF, customer_headers


def _create_policy(client, **overrides):
    body = {
        "name": "Comprehensive Plus",
        "coverage_type": "Comprehensive",
        "duration_months": 12,
        "base_amount": 1000,
        "description": "Own damage and third party",
    }
    body.update(overrides)
    resp = client.post("/api/policies", json=body, headers=ADMIN)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _create_customer(client, email="ravi@example.com", contact_number="9876543210"):
    resp = client.post(
        "/api/customers",
        json={
            "name": f"{datasets.random_first_name()} {datasets.random_surname()}",
            "contact_number": contact_number,
            "email": email,
            "address": f"12 MG Road, {datasets.random_city()}",
        },
        headers=STAFF,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def _register_vehicle(client, customer_id, plate="MH12AB1234"):
    resp = client.post(
        "/api/vehicles",
        json={
            "plate_number": plate,
            "vehicle_type": "FourWheeler",
            "model": datasets.random_model("FourWheeler"),
            "registration_year": utcnow().year - 3,
        },
        headers=customer_headers(customer_id),
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


def test_purchase_pay_and_claim_flow(client):
    policy = _create_policy(client)
    assert policy["human_code"] == "POL-00001"
    customer = _create_customer(client)
    me = customer_headers(customer["id"])
    vehicle = _register_vehicle(client, customer["id"])

    # 1. Preview the premium
    resp = client.post(
        "/api/policies/calculate-premium",
        json={"policy_id": policy["id"], "vehicle_id": vehicle["id"]},
        headers=me,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["final_amount"] == 940.0

    # 2. Purchase
    resp = client.post(f"/api/policies/{policy['id']}/purchase", json={"vehicle_id": vehicle["id"]}, headers=me)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["success"] is True
    premium = body["data"]["premium"]
    assert premium["payment_status"] == "Pending"
    assert body["data"]["renewal"]["renewal_status"] == "Pending"

    # 3. Pay, then pay again
    resp = client.put(f"/api/premiums/{premium['id']}/pay", json={"transaction_ref": "TXN-ABC123"}, headers=me)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["payment_status"] == "Paid"

    resp = client.put(f"/api/premiums/{premium['id']}/pay", headers=me)
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Premium already paid", "kind": "InvalidState"}

    # 4. Vehicle detail shows the active coverage
    resp = client.get(f"/api/vehicles/{vehicle['id']}", headers=me)
    assert [p["id"] for p in resp.json()["data"]["active_premiums"]] == [premium["id"]]

    # 5. File a claim and have it approved
    resp = client.post(
        "/api/claims",
        json={
            "policy_id": policy["id"],
            "vehicle_id": vehicle["id"],
            "premium_id": premium["id"],
            "reason": "Rear windscreen shattered by hail.",
        },
        headers=me,
    )
    assert resp.status_code == 201, resp.text
    claim = resp.json()["data"]
    assert claim["status"] == "Pending"

    resp = client.put(
        f"/api/claims/{claim['id']}/process",
        json={"status": "Approved", "claim_amount": 750, "admin_remarks": "surveyed"},
        headers=ADMIN,
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["claim_amount"] == 750.0

    # 6. Notifications reached the customer
    resp = client.get("/api/notifications/my", headers=me)
    types = {n["type"] for n in resp.json()["data"]}
    assert {"Payment", "ClaimUpdate"} <= types
    resp = client.put("/api/notifications/read-all", headers=me)
    assert resp.json()["data"]["updated"] >= 2
    resp = client.get("/api/notifications/unread-count", headers=me)
    assert resp.json()["data"] == {"unread": 0}

    # 7. Back office views
    resp = client.get("/api/dashboard", headers=STAFF)
    assert resp.status_code == 200
    dashboard = resp.json()["data"]
    assert dashboard["counts"]["premiums"] == 1
    assert dashboard["policies"]["total_revenue"] == 940.0
    assert dashboard["claims"]["by_status"]["Approved"]["count"] == 1

    resp = client.get("/api/events", params={"source": "claims"}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["data"]


def test_policy_list_pagination(client):
    for i, amount in enumerate((500, 1500, 2500)):
        _create_policy(client, name=f"Plan {i}", base_amount=amount)

    resp = client.get("/api/policies", params={"limit": 2, "page": 2, "sort_by": "base_amount", "order": "asc"}, headers=STAFF)
    assert resp.status_code == 200
    body = resp.json()
    assert [p["name"] for p in body["data"]] == ["Plan 2"]
    assert body["pagination"] == {
        "currentPage": 2,
        "totalPages": 2,
        "totalRecords": 3,
        "limit": 2,
        "hasNextPage": False,
        "hasPrevPage": True,
    }


def test_customers_only_see_active_policies(client):
    customer = _create_customer(client)
    keep = _create_policy(client, name="Shown")
    hidden = _create_policy(client, name="Hidden")
    client.patch(f"/api/policies/{hidden['id']}/toggle-status", headers=ADMIN)

    me = customer_headers(customer["id"])
    resp = client.get("/api/policies", params={"is_active": False}, headers=me)
    assert [p["id"] for p in resp.json()["data"]] == [keep["id"]]
    resp = client.get(f"/api/policies/{hidden['id']}", headers=me)
    assert resp.status_code == 404


def test_missing_identity_is_unauthorized(client):
    resp = client.get("/api/policies")
    assert resp.status_code == 401
    assert resp.json()["kind"] == "Unauthorized"

    resp = client.get("/api/policies", headers={"X-Caller-Id": "USR-1", "X-Caller-Role": "Root"})
    assert resp.status_code == 401


def test_role_and_ownership_checks(client):
    owner = _create_customer(client)
    other = _create_customer(client, email="neha@example.com", contact_number="9123456780")

    resp = client.get(f"/api/customers/{owner['id']}", headers=customer_headers(other["id"]))
    assert resp.status_code == 403
    assert resp.json()["kind"] == "Forbidden"

    resp = client.post("/api/renewals/sweep", headers=STAFF)
    assert resp.status_code == 403

    resp = client.get("/api/customers/me", headers=customer_headers(owner["id"]))
    assert resp.json()["data"]["email"] == "ravi@example.com"


def test_not_found_and_conflict_envelopes(client):
    resp = client.get("/api/policies/999", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json() == {"success": False, "message": "Policy not found", "kind": "NotFound"}

    resp = client.get("/api/nowhere", headers=ADMIN)
    assert resp.status_code == 404
    assert resp.json()["kind"] == "NotFound"

    _create_customer(client)
    resp = client.post(
        "/api/customers",
        json={"name": "Dup", "contact_number": "9000000000", "email": "ravi@example.com", "address": "x"},
        headers=STAFF,
    )
    assert resp.status_code == 409
    assert resp.json()["kind"] == "Conflict"


def test_request_validation_lists_fields(client):
    resp = client.post(
        "/api/customers",
        json={"name": "A", "contact_number": "123", "email": "not-an-email", "address": "x"},
        headers=STAFF,
    )
    assert resp.status_code == 422
    body = resp.json()
    assert body["success"] is False
    assert body["kind"] == "ValidationError"
    fields = {e["field"] for e in body["errors"]}
    assert {"name", "contact_number", "email"} <= fields


def test_service_validation_uses_same_envelope(client):
    customer = _create_customer(client)
    resp = client.post(
        "/api/vehicles",
        json={
            "plate_number": "MH12AB1234",
            "vehicle_type": "TwoWheeler",
            "model": "Activa",
            "registration_year": utcnow().year + 1,
        },
        headers=customer_headers(customer["id"]),
    )
    assert resp.status_code == 422
    assert resp.json()["errors"][0]["field"] == "registration_year"


def test_sweep_and_reminders_endpoints(client):
    customer = _create_customer(client)
    _register_vehicle(client, customer["id"])

    resp = client.post("/api/renewals/sweep", json={}, headers=ADMIN)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"expired": 0}

    resp = client.post("/api/renewals/reminders", headers=STAFF)
    assert resp.json()["data"] == {"sent": 0}

    resp = client.get("/api/renewals/expiring", params={"days": 30}, headers=STAFF)
    assert resp.json()["data"] == []
