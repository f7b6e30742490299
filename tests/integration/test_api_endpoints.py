"""API endpoint integration tests.

Drives the FastAPI app in-process against the in-memory ledger.
"""

from collections.abc import AsyncGenerator
from uuid import uuid4

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

from estimate_ledger.api.app import create_app
from estimate_ledger.models import NumberSequence

LIVING_ROOM = {
    "area_name": "Living room",
    "area_type": "indoor",
    "labor_hours": "36",
    "labor_rate": "50",
    "material_cost": "350",
}


@pytest_asyncio.fixture
async def client(ledger) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client bound to an app that uses the test ledger."""
    transport = ASGITransport(app=create_app(ledger))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create_estimate(client: AsyncClient, **overrides) -> dict:
    payload = {
        "client_id": str(uuid4()),
        "title": "Interior repaint",
        "markup_percentage": "15",
        "project_areas": [LIVING_ROOM],
    }
    payload.update(overrides)
    response = await client.post("/api/v1/estimates", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def _set_status(client: AsyncClient, kind: str, doc_id: str, status: str, **extra):
    return await client.patch(
        f"/api/v1/{kind}/{doc_id}/status", json={"status": status, **extra}
    )


async def _sent_invoice(client: AsyncClient, **convert) -> dict:
    estimate = await _create_estimate(client)
    await _set_status(client, "estimates", estimate["id"], "sent")
    await _set_status(client, "estimates", estimate["id"], "approved")
    response = await client.post(
        f"/api/v1/estimates/{estimate['id']}/convert", json=convert or None
    )
    assert response.status_code == 201, response.text
    response = await _set_status(client, "invoices", response.json()["id"], "sent")
    assert response.status_code == 200, response.text
    return response.json()


class TestHealthEndpoints:
    """Test health check endpoints."""

    async def test_health_check(self, client: AsyncClient):
        response = await client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["database"] == "healthy"
        assert data["sequences"] == ["estimate", "invoice"]
        assert "timestamp" in data

    async def test_readiness_and_liveness(self, client: AsyncClient):
        assert (await client.get("/ready")).json() == {"status": "ready"}
        assert (await client.get("/live")).json() == {"status": "alive"}

    async def test_not_ready_without_sequences(self, client: AsyncClient, ledger):
        async with ledger.session_factory() as session:
            await session.execute(
                delete(NumberSequence).where(NumberSequence.sequence_type == "invoice")
            )
            await session.commit()

        response = await client.get("/ready")

        assert response.status_code == 503
        assert response.json() == {"status": "not_ready", "missing": "invoice"}


class TestEstimateEndpoints:
    async def test_create_estimate(self, client: AsyncClient):
        data = await _create_estimate(client)

        assert data["estimate_number"] == "EST-0001"
        assert data["status"] == "draft"
        assert data["total_amount"] == "2472.50"
        assert data["labor_cost"] == "1800.00"
        assert data["project_areas"][0]["labor_cost"] == "1800.00"

    async def test_create_requires_areas(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/estimates",
            json={"client_id": str(uuid4()), "title": "Empty", "project_areas": []},
        )
        assert response.status_code == 422

    async def test_markup_out_of_range(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/estimates",
            json={
                "client_id": str(uuid4()),
                "title": "Too much",
                "markup_percentage": "150",
                "project_areas": [LIVING_ROOM],
            },
        )

        assert response.status_code == 422
        assert response.json() == {
            "code": "VALIDATION_ERROR",
            "detail": "markup_percentage must be between 0 and 100",
            "field": "markup_percentage",
        }

    async def test_get_list_update_delete(self, client: AsyncClient):
        estimate = await _create_estimate(client)
        url = f"/api/v1/estimates/{estimate['id']}"

        assert (await client.get(url)).json()["id"] == estimate["id"]

        listing = (await client.get("/api/v1/estimates", params={"status": "draft"})).json()
        assert listing["total"] == 1

        response = await client.patch(url, json={"markup_percentage": "0"})
        assert response.status_code == 200
        assert response.json()["total_amount"] == "2150.00"

        assert (await client.delete(url)).status_code == 204
        response = await client.get(url)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    async def test_delete_sent_estimate_conflicts(self, client: AsyncClient):
        estimate = await _create_estimate(client)
        await _set_status(client, "estimates", estimate["id"], "sent")

        response = await client.delete(f"/api/v1/estimates/{estimate['id']}")

        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"

    async def test_invalid_transition(self, client: AsyncClient):
        estimate = await _create_estimate(client)

        response = await _set_status(client, "estimates", estimate["id"], "approved")

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_TRANSITION"


class TestRevisionEndpoints:
    async def test_revise_and_read_history(self, client: AsyncClient):
        estimate = await _create_estimate(client)
        await _set_status(client, "estimates", estimate["id"], "sent")

        response = await client.post(
            f"/api/v1/estimates/{estimate['id']}/revisions",
            json={
                "revision_type": "price_adjustment",
                "change_summary": "Premium paint",
                "markup_percentage": "20",
            },
            headers={"X-Actor": "alice"},
        )

        assert response.status_code == 201, response.text
        result = response.json()
        assert result["estimate"]["estimate_number"] == "EST-0001-R2"
        assert result["estimate"]["total_amount"] == "2580.00"
        assert result["revision"]["total_delta"] == "107.50"
        assert result["revision"]["created_by"] == "alice"

        versions = (await client.get(f"/api/v1/estimates/{estimate['id']}/versions")).json()
        assert [v["is_current_version"] for v in versions] == [False, True]

        revisions = (await client.get(f"/api/v1/estimates/{estimate['id']}/revisions")).json()
        assert len(revisions) == 1

        timeline = (await client.get(f"/api/v1/estimates/{estimate['id']}/timeline")).json()
        assert [s["total_amount"] for s in timeline] == ["2472.50", "2580.00"]

        listing = (await client.get("/api/v1/estimates")).json()
        assert [e["estimate_number"] for e in listing["items"]] == ["EST-0001-R2"]
        everything = (
            await client.get("/api/v1/estimates", params={"include_superseded": "true"})
        ).json()
        assert everything["total"] == 2

    async def test_revising_a_draft_is_invalid_state(self, client: AsyncClient):
        estimate = await _create_estimate(client)

        response = await client.post(
            f"/api/v1/estimates/{estimate['id']}/revisions",
            json={"revision_type": "correction", "title": "Renamed"},
        )

        assert response.status_code == 409
        assert response.json()["code"] == "INVALID_STATE"


class TestInvoiceEndpoints:
    async def test_convert_send_and_pay(self, client: AsyncClient):
        invoice = await _sent_invoice(client, due_date="2026-12-31")

        assert invoice["invoice_number"] == "INV-1001"
        assert invoice["total_amount"] == "2472.50"
        assert invoice["outstanding_amount"] == "2472.50"

        response = await client.post(
            f"/api/v1/invoices/{invoice['id']}/payments",
            json={"amount": "2472.50", "payment_method": "Check", "payment_date": "2026-10-18"},
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["status"] == "paid"
        assert data["paid_amount"] == "2472.50"
        assert data["outstanding_amount"] == "0.00"
        assert data["payments"][0]["payment_method"] == "Check"

    async def test_overpayment_is_rejected(self, client: AsyncClient):
        invoice = await _sent_invoice(client)

        response = await client.post(
            f"/api/v1/invoices/{invoice['id']}/payments",
            json={"amount": "2472.51", "payment_date": "2026-10-18"},
        )

        assert response.status_code == 422
        assert response.json()["field"] == "amount"
        assert "2472.50" in response.json()["detail"]

    async def test_void_requires_reason(self, client: AsyncClient):
        invoice = await _sent_invoice(client)

        response = await _set_status(client, "invoices", invoice["id"], "void")
        assert response.status_code == 422
        assert response.json()["field"] == "void_reason"

        response = await _set_status(
            client, "invoices", invoice["id"], "void", void_reason="Duplicate"
        )
        assert response.status_code == 200
        assert response.json()["status"] == "void"

        estimate = await client.get(f"/api/v1/estimates/{invoice['estimate_id']}")
        assert estimate.json()["status"] == "approved"

    async def test_overdue_is_a_display_status(self, client: AsyncClient):
        invoice = await _sent_invoice(client, due_date="2026-01-31")

        response = await client.get("/api/v1/invoices/overdue", params={"as_of": "2026-02-01"})
        [item] = response.json()["items"]
        assert item["id"] == invoice["id"]
        assert item["status"] == "sent"
        assert item["display_status"] == "overdue"

        response = await _set_status(client, "invoices", invoice["id"], "overdue")
        assert response.status_code == 409

    async def test_standalone_invoice(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/invoices",
            json={"client_id": str(uuid4()), "title": "Touch-up", "total_amount": "180"},
        )

        assert response.status_code == 201, response.text
        data = response.json()
        assert data["estimate_id"] is None
        assert data["invoice_number"] is None
        assert data["total_amount"] == "180.00"

    async def test_unknown_invoice(self, client: AsyncClient):
        response = await client.get(f"/api/v1/invoices/{uuid4()}")
        assert response.status_code == 404


class TestPaymentEndpoints:
    async def test_correct_and_delete_payment(self, client: AsyncClient):
        invoice = await _sent_invoice(client)
        invoice_url = f"/api/v1/invoices/{invoice['id']}"
        await client.post(
            f"{invoice_url}/payments",
            json={"amount": "2472.50", "payment_date": "2026-10-18"},
        )
        [payment] = (await client.get(f"{invoice_url}/payments")).json()

        response = await client.patch(
            f"/api/v1/payments/{payment['id']}", json={"amount": "2000"}
        )
        assert response.status_code == 200
        assert response.json()["status"] == "sent"
        assert response.json()["paid_amount"] == "2000.00"

        response = await client.delete(f"/api/v1/payments/{payment['id']}")
        assert response.status_code == 200
        assert response.json()["paid_amount"] == "0.00"
        assert response.json()["payments"] == []

    async def test_sequences(self, client: AsyncClient):
        await _sent_invoice(client)

        response = await client.get("/api/v1/sequences")

        assert response.json() == {"sequences": {"estimate": 1, "invoice": 1001}}
