"""
HTTP API tests.

Verifies:
- Requests without an actor return 401
- Capabilities gate create, payment, promotion management and deposit review
- Domain errors map to status codes with kind/details in the body
- The invoice flow works end to end over HTTP
"""

import pytest

from conftest import BRANCH, actor_headers, product_line, service_line


def create_invoice(client, headers, **overrides):
    body = {
        "branchId": BRANCH,
        "clientId": "client-1",
        "clientInfo": {"name": "Ana Reyes"},
        "services": [service_line(base_price=850, adjustment=-100)],
    }
    body.update(overrides)
    resp = client.post("/api/transactions", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["transaction"]


def create_promo(client, headers, **overrides):
    body = {
        "branchId": BRANCH,
        "promotionCode": "summer10",
        "title": "Summer",
        "discountType": "percentage",
        "discountValue": 10,
        "applicableTo": "services",
        "startDate": "2024-01-01",
        "endDate": "2024-12-31",
    }
    body.update(overrides)
    resp = client.post("/api/promotions", json=body, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["promotion"]


# =============================================================================
# ACCESS
# =============================================================================


class TestAccess:

    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/transactions?branch_id=branch-1"),
            ("POST", "/api/transactions"),
            ("POST", "/api/transactions/1/payment"),
            ("POST", "/api/transactions/1/void"),
            ("GET", "/api/promotions?branch_id=branch-1"),
            ("POST", "/api/deposits"),
            ("GET", "/api/reports/daily-sales?branch_id=branch-1&date=2024-03-01"),
        ],
    )
    def test_requires_actor(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_stylist_cannot_ring_up(self, client, db_session, stylist_headers):
        resp = client.post("/api/transactions", json={"branchId": BRANCH}, headers=stylist_headers)
        assert resp.status_code == 403
        assert resp.get_json()["required_capability"] == "CREATE_TRANSACTION"

    def test_receptionist_cannot_manage_promotions(self, client, db_session, receptionist_headers):
        resp = client.post("/api/promotions", json={"branchId": BRANCH}, headers=receptionist_headers)
        assert resp.status_code == 403


# =============================================================================
# INVOICE FLOW
# =============================================================================


class TestInvoiceFlow:

    def test_end_to_end(self, client, db_session, clock, receptionist_headers, manager_headers):
        promo = create_promo(client, manager_headers)
        tx = create_invoice(client, receptionist_headers)
        assert tx["status"] == "in_service"
        assert tx["services"][0]["adjustedPrice"] == 750.0
        assert tx["createdAt"] == "2024-03-01T10:00:00Z"

        resp = client.post(
            f"/api/transactions/{tx['id']}/promotion",
            json={"code": "SUMMER10"},
            headers=receptionist_headers,
        )
        assert resp.status_code == 200
        tx = resp.get_json()["transaction"]
        assert tx["appliedPromotion"]["discountAmount"] == 75.0
        assert tx["total"] == 675.0

        resp = client.post(
            f"/api/transactions/{tx['id']}/payment",
            json={"paymentMethod": "cash", "amountReceived": 700},
            headers=receptionist_headers,
        )
        assert resp.status_code == 200
        tx = resp.get_json()["transaction"]
        assert tx["status"] == "paid"
        assert tx["change"] == 25.0

        promotions = client.get(f"/api/promotions?branch_id={BRANCH}", headers=manager_headers).get_json()
        assert promotions["promotions"][0]["id"] == promo["id"]
        assert promotions["promotions"][0]["usageCount"] == 1

    def test_edit_paid_is_conflict(self, client, db_session, clock, receptionist_headers):
        tx = create_invoice(client, receptionist_headers)
        client.post(f"/api/transactions/{tx['id']}/payment", json={"paymentMethod": "card"}, headers=receptionist_headers)

        resp = client.patch(f"/api/transactions/{tx['id']}", json={"tax": 5}, headers=receptionist_headers)
        assert resp.status_code == 409
        assert resp.get_json()["kind"] == "invalid_state"

    def test_insufficient_cash(self, client, db_session, clock, receptionist_headers):
        tx = create_invoice(client, receptionist_headers)
        resp = client.post(
            f"/api/transactions/{tx['id']}/payment",
            json={"paymentMethod": "cash", "amountReceived": 500},
            headers=receptionist_headers,
        )
        assert resp.status_code == 400
        body = resp.get_json()
        assert body["kind"] == "insufficient_payment"
        assert body["details"]["shortBy"] == 250.0

    def test_stale_version_is_retryable(self, client, db_session, clock, receptionist_headers):
        tx = create_invoice(client, receptionist_headers)
        client.patch(f"/api/transactions/{tx['id']}", json={"tax": 5}, headers=receptionist_headers)

        resp = client.patch(
            f"/api/transactions/{tx['id']}",
            json={"tax": 10, "versionId": tx["versionId"]},
            headers=receptionist_headers,
        )
        assert resp.status_code == 503
        assert resp.get_json()["retryable"] is True

    def test_void_paid_needs_manager(self, client, db_session, clock, receptionist_headers, manager_headers):
        tx = create_invoice(client, receptionist_headers)
        client.post(f"/api/transactions/{tx['id']}/payment", json={"paymentMethod": "card"}, headers=receptionist_headers)

        resp = client.post(f"/api/transactions/{tx['id']}/void", json={"reason": "Refund"}, headers=receptionist_headers)
        assert resp.status_code == 403
        assert resp.get_json()["kind"] == "permission_denied"

        resp = client.post(f"/api/transactions/{tx['id']}/void", json={"reason": "Refund"}, headers=manager_headers)
        assert resp.status_code == 200
        voided = resp.get_json()["transaction"]
        assert voided["status"] == "voided"
        assert voided["voidedBy"] == "manager-1"

    def test_missing_transaction(self, client, db_session, receptionist_headers):
        resp = client.get("/api/transactions/9999", headers=receptionist_headers)
        assert resp.status_code == 404
        assert resp.get_json()["kind"] == "not_found"

    def test_list_requires_branch(self, client, db_session, receptionist_headers):
        resp = client.get("/api/transactions", headers=receptionist_headers)
        assert resp.status_code == 400

    def test_client_history(self, client, db_session, clock, receptionist_headers):
        create_invoice(client, receptionist_headers, clientId="client-42")
        create_invoice(client, receptionist_headers, clientId="client-43")
        resp = client.get("/api/clients/client-42/transactions", headers=receptionist_headers)
        assert resp.get_json()["count"] == 1

    def test_client_loyalty(self, client, db_session, clock, receptionist_headers):
        tx = create_invoice(client, receptionist_headers, services=[], products=[product_line(price=450)])
        client.post(f"/api/transactions/{tx['id']}/payment", json={"paymentMethod": "card"}, headers=receptionist_headers)

        resp = client.get("/api/clients/client-1/loyalty", headers=receptionist_headers)
        assert resp.status_code == 200
        assert resp.get_json()["loyaltyPoints"] == 4


# =============================================================================
# PROMOTIONS
# =============================================================================


class TestPromotionRoutes:

    def test_validate_ineligible_returns_reason(self, client, db_session, clock, manager_headers):
        create_promo(client, manager_headers, startDate="2024-06-01", endDate="2024-06-30")
        resp = client.post(
            "/api/promotions/validate",
            json={"code": "SUMMER10", "branchId": BRANCH, "clientId": "client-1"},
            headers=manager_headers,
        )
        assert resp.status_code == 422
        body = resp.get_json()
        assert body["kind"] == "promotion_ineligible"
        assert body["details"]["reason"] == "not_started"

    def test_validate_prices_cart(self, client, db_session, clock, manager_headers):
        create_promo(client, manager_headers)
        resp = client.post(
            "/api/promotions/validate",
            json={
                "code": "summer10",
                "branchId": BRANCH,
                "services": [service_line(base_price=850, adjustment=-100)],
            },
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["discount"]["discountAmount"] == 75.0

    def test_active_and_update(self, client, db_session, clock, manager_headers):
        promo = create_promo(client, manager_headers)
        resp = client.patch(f"/api/promotions/{promo['id']}", json={"isActive": False}, headers=manager_headers)
        assert resp.status_code == 200

        resp = client.get(f"/api/promotions/active?branch_id={BRANCH}", headers=manager_headers)
        assert resp.get_json()["promotions"] == []

    def test_duplicate_code(self, client, db_session, clock, manager_headers):
        create_promo(client, manager_headers)
        resp = client.post(
            "/api/promotions",
            json={
                "branchId": BRANCH, "promotionCode": "SUMMER10", "title": "Again",
                "discountType": "fixed", "discountValue": 50,
                "startDate": "2024-01-01", "endDate": "2024-12-31",
            },
            headers=manager_headers,
        )
        assert resp.status_code == 400


# =============================================================================
# DEPOSITS
# =============================================================================


class TestDepositRoutes:

    def test_submit_and_review(self, client, db_session, clock, receptionist_headers, manager_headers):
        tx = create_invoice(client, receptionist_headers)
        client.post(
            f"/api/transactions/{tx['id']}/payment",
            json={"paymentMethod": "cash", "amountReceived": 750},
            headers=receptionist_headers,
        )

        resp = client.get(f"/api/deposits/daily-total?branch_id={BRANCH}&date=2024-03-01", headers=receptionist_headers)
        assert resp.get_json()["dailySalesTotal"] == 750.0

        resp = client.post(
            "/api/deposits",
            json={"branchId": BRANCH, "depositDate": "2024-03-01", "amount": 750.5, "bankName": "BDO"},
            headers=receptionist_headers,
        )
        assert resp.status_code == 201
        deposit = resp.get_json()["deposit"]
        assert deposit["validationStatus"] == "match"
        assert deposit["submittedBy"] == "receptionist-1"

        resp = client.post(f"/api/deposits/{deposit['id']}/review", json={"action": "approve"}, headers=receptionist_headers)
        assert resp.status_code == 403

        resp = client.post(
            f"/api/deposits/{deposit['id']}/review",
            json={"action": "approve", "notes": "ok"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.get_json()["deposit"]["status"] == "approved"

        resp = client.post(f"/api/deposits/{deposit['id']}/review", json={"action": "reject"}, headers=manager_headers)
        assert resp.status_code == 409

    def test_classify_dry_run(self, client, db_session, receptionist_headers):
        resp = client.post(
            "/api/deposits/classify",
            json={"amount": 102, "dailySalesTotal": 100},
            headers=receptionist_headers,
        )
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["status"] == "manual_review"
        assert body["difference"] == 2.0
        assert body["hasAnomaly"] is True

    def test_daily_sales_report(self, client, db_session, clock, receptionist_headers, manager_headers):
        tx = create_invoice(client, receptionist_headers)
        client.post(f"/api/transactions/{tx['id']}/payment", json={"paymentMethod": "digital"}, headers=receptionist_headers)

        resp = client.get(f"/api/reports/daily-sales?branch_id={BRANCH}&date=2024-03-01", headers=manager_headers)
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["transactionCount"] == 1
        assert body["paymentMethods"] == {"digital": {"count": 1, "total": 750.0}}

    def test_unknown_deposit(self, client, db_session):
        resp = client.get("/api/deposits/77", headers=actor_headers("m", "branchManager"))
        assert resp.status_code == 404
