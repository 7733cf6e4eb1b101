"""API endpoint integration tests.

Tests the FastAPI endpoints for purchase orders, invoices and the budget view.
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient

from tests.conftest import PASSWORD, PROJECT_ID, USER_ID, USER_NAME

pytestmark = pytest.mark.asyncio

HEADERS = {"X-User-ID": USER_ID, "X-User-Name": USER_NAME}
BASE = f"/api/v1/projects/{PROJECT_ID}"

PO_PAYLOAD = {
    "supplier": "Grip & Light SL",
    "description": "Lighting package",
    "items": [
        {"description": "Lights", "sub_account_id": "A", "quantity": "1", "unit_price": "600", "vat_rate": "21"},
        {"description": "Generator", "sub_account_id": "B", "quantity": "2", "unit_price": "200"},
    ],
}


async def approved_po(client: AsyncClient) -> dict:
    response = await client.post(f"{BASE}/pos", headers=HEADERS, json=PO_PAYLOAD)
    assert response.status_code == 201, response.text
    po_id = response.json()["id"]
    await client.post(f"{BASE}/pos/{po_id}/submit", headers=HEADERS)
    response = await client.post(f"{BASE}/pos/{po_id}/approve", headers=HEADERS)
    assert response.status_code == 200, response.text
    return response.json()["purchase_order"]


async def sub_account(client: AsyncClient, sub_account_id: str) -> dict:
    budget = (await client.get(f"{BASE}/budget")).json()
    for account in budget["accounts"]:
        for sub in account["sub_accounts"]:
            if sub["sub_account_id"] == sub_account_id:
                return sub
    raise AssertionError(f"sub-account {sub_account_id} not in budget")


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        """Health endpoint should report the store."""
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["store"] == "healthy"

    async def test_readiness_check(self, client: AsyncClient):
        response = await client.get("/ready")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_liveness_check(self, client: AsyncClient):
        response = await client.get("/live")
        assert response.status_code == 200
        assert response.json()["status"] == "alive"


class TestPurchaseOrderEndpoints:
    """Test purchase order endpoints."""

    async def test_create_purchase_order(self, client: AsyncClient):
        """POST /pos should create a draft."""
        response = await client.post(f"{BASE}/pos", headers=HEADERS, json=PO_PAYLOAD)

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["status"] == "draft"
        assert data["number"] == "0001"
        assert Decimal(data["base_amount"]) == Decimal("1000")
        assert Decimal(data["total_amount"]) == Decimal("1126")

    async def test_user_header_required(self, client: AsyncClient):
        response = await client.post(f"{BASE}/pos", json=PO_PAYLOAD)

        assert response.status_code == 400
        assert "X-User-ID" in response.json()["detail"]

    async def test_get_and_list(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.get(f"{BASE}/pos/{po['id']}")
        assert response.status_code == 200
        assert response.json()["status"] == "approved"

        listing = (await client.get(f"{BASE}/pos", params={"status": "approved"})).json()
        assert listing["total"] == 1

    async def test_unknown_po_returns_404(self, client: AsyncClient):
        response = await client.get(f"{BASE}/pos/ghost")

        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_approve_commits_budget(self, client: AsyncClient):
        await approved_po(client)

        assert Decimal((await sub_account(client, "A"))["committed"]) == Decimal("600")
        assert Decimal((await sub_account(client, "B"))["committed"]) == Decimal("400")

    async def test_close_and_reopen(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.post(f"{BASE}/pos/{po['id']}/close", headers=HEADERS, json={"password": PASSWORD})
        assert response.status_code == 200, response.text
        data = response.json()
        assert data["purchase_order"]["status"] == "closed"
        assert data["reconciliation"]["applied"] == 2
        assert data["reconciliation"]["complete"] is True
        assert Decimal((await sub_account(client, "A"))["committed"]) == Decimal("0")

        response = await client.post(f"{BASE}/pos/{po['id']}/reopen", headers=HEADERS, json={"password": PASSWORD})
        assert response.status_code == 200
        assert Decimal((await sub_account(client, "A"))["committed"]) == Decimal("600")

    async def test_wrong_password_returns_401(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.post(f"{BASE}/pos/{po['id']}/close", headers=HEADERS, json={"password": "nope"})

        assert response.status_code == 401
        assert response.json()["code"] == "REAUTHENTICATION_REQUIRED"

    async def test_invalid_transition_returns_409(self, client: AsyncClient):
        response = await client.post(f"{BASE}/pos", headers=HEADERS, json=PO_PAYLOAD)
        po_id = response.json()["id"]

        response = await client.post(f"{BASE}/pos/{po_id}/approve", headers=HEADERS)

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"

    async def test_cancel_without_reason_returns_400(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.post(
            f"{BASE}/pos/{po['id']}/cancel", headers=HEADERS, json={"password": PASSWORD, "reason": ""}
        )

        assert response.status_code == 400

    async def test_modify(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.post(f"{BASE}/pos/{po['id']}/modify", headers=HEADERS, json={"reason": "New quote"})

        assert response.status_code == 200
        data = response.json()["purchase_order"]
        assert data["status"] == "draft"
        assert data["version"] == 2
        assert data["modification_history"][0]["user_name"] == USER_NAME

    @pytest.mark.parametrize("action", ["reject", "modify"])
    async def test_empty_reason_returns_400(self, client: AsyncClient, action):
        po = await approved_po(client)

        response = await client.post(f"{BASE}/pos/{po['id']}/{action}", headers=HEADERS, json={"reason": ""})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    async def test_edit_after_modify(self, client: AsyncClient):
        po = await approved_po(client)
        await client.post(f"{BASE}/pos/{po['id']}/modify", headers=HEADERS, json={"reason": "New quote"})
        payload = {
            "description": "Lighting package, reduced",
            "items": [{"description": "Lights", "sub_account_id": "A", "quantity": "1", "unit_price": "450"}],
        }

        response = await client.put(f"{BASE}/pos/{po['id']}", headers=HEADERS, json=payload)

        assert response.status_code == 200, response.text
        data = response.json()
        assert data["status"] == "draft"
        assert Decimal(data["base_amount"]) == Decimal("450")
        assert data["supplier"] == "Grip & Light SL"
        assert data["description"] == "Lighting package, reduced"

    async def test_edit_approved_returns_409(self, client: AsyncClient):
        po = await approved_po(client)

        response = await client.put(f"{BASE}/pos/{po['id']}", headers=HEADERS, json=PO_PAYLOAD)

        assert response.status_code == 409

    async def test_delete_draft_only(self, client: AsyncClient):
        po = await approved_po(client)
        response = await client.delete(f"{BASE}/pos/{po['id']}", headers=HEADERS)
        assert response.status_code == 400

        draft = (await client.post(f"{BASE}/pos", headers=HEADERS, json=PO_PAYLOAD)).json()
        response = await client.delete(f"{BASE}/pos/{draft['id']}", headers=HEADERS)
        assert response.status_code == 204


class TestInvoiceEndpoints:
    """Test invoice endpoints."""

    async def test_pay_and_cancel_invoice(self, client: AsyncClient):
        po = await approved_po(client)
        response = await client.post(
            f"{BASE}/invoices",
            headers=HEADERS,
            json={
                "po_id": po["id"],
                "due_date": "2026-04-01T00:00:00Z",
                "items": [{"description": "Lights", "sub_account_id": "A", "unit_price": "600"}],
            },
        )
        assert response.status_code == 201, response.text
        invoice_id = response.json()["id"]
        assert response.json()["status"] == "pending_approval"

        await client.post(f"{BASE}/invoices/{invoice_id}/approve", headers=HEADERS)
        response = await client.post(f"{BASE}/invoices/{invoice_id}/pay", headers=HEADERS)
        assert response.status_code == 200, response.text
        assert response.json()["invoice"]["status"] == "paid"

        sub_a = await sub_account(client, "A")
        assert Decimal(sub_a["actual"]) == Decimal("600")
        assert Decimal(sub_a["committed"]) == Decimal("0")
        assert Decimal(sub_a["executed"]) == Decimal("600")

        response = await client.post(
            f"{BASE}/invoices/{invoice_id}/cancel",
            headers=HEADERS,
            json={"password": PASSWORD, "reason": "Duplicate"},
        )
        assert response.status_code == 200
        sub_a = await sub_account(client, "A")
        assert Decimal(sub_a["actual"]) == Decimal("0")
        assert Decimal(sub_a["committed"]) == Decimal("600")

    async def test_overdue_on_list(self, client: AsyncClient, clock):
        response = await client.post(
            f"{BASE}/invoices",
            headers=HEADERS,
            json={
                "due_date": "2026-03-02T00:00:00Z",
                "items": [{"description": "Catering", "sub_account_id": "C", "unit_price": "90"}],
            },
        )
        invoice_id = response.json()["id"]
        await client.post(f"{BASE}/invoices/{invoice_id}/approve", headers=HEADERS)
        clock.advance(timedelta(days=3))

        listing = (await client.get(f"{BASE}/invoices")).json()

        assert listing["items"][0]["status"] == "overdue"

    async def test_delete_paid_invoice_refused(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/invoices",
            headers=HEADERS,
            json={"due_date": "2026-04-01T00:00:00Z", "items": [{"sub_account_id": "C", "unit_price": "90"}]},
        )
        invoice_id = response.json()["id"]
        await client.post(f"{BASE}/invoices/{invoice_id}/approve", headers=HEADERS)
        await client.post(f"{BASE}/invoices/{invoice_id}/pay", headers=HEADERS)

        response = await client.delete(f"{BASE}/invoices/{invoice_id}", headers=HEADERS)

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"


class TestBudgetEndpoint:
    """Test the budget view."""

    async def test_budget_totals(self, client: AsyncClient):
        await approved_po(client)

        data = (await client.get(f"{BASE}/budget")).json()

        assert Decimal(data["budgeted"]) == Decimal("12000")
        assert Decimal(data["committed"]) == Decimal("1000")
        assert Decimal(data["available"]) == Decimal("11000")

    async def test_sql_backed_flow(self, sql_client: AsyncClient):
        """The same approve/close flow over the SQL document store."""
        po = await approved_po(sql_client)

        response = await sql_client.post(
            f"{BASE}/pos/{po['id']}/close", headers=HEADERS, json={"password": PASSWORD}
        )

        assert response.status_code == 200, response.text
        assert Decimal((await sub_account(sql_client, "B"))["committed"]) == Decimal("0")
