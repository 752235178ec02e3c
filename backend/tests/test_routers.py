"""
Tests for the HTTP surface: webhook receivers, admin routes and the catalog.
"""
from decimal import Decimal

from wholesale.models.job import JobStatus
from wholesale.repositories.job import JobRepository
from wholesale.schemas.jobs import CreateCustomerPayload
from tests.conftest import WEBHOOK_SECRET


class TestWebhookRoutes:
    async def test_bad_secret_rejected(self, async_client):
        response = await async_client.post(
            "/api/webhooks/zoho/items",
            params={"secret": "wrong"},
            json={"item_id": "1"},
        )

        assert response.status_code == 401
        assert response.json()["action"] == "unauthorized"

    async def test_secret_accepted_from_header(self, async_client):
        response = await async_client.post(
            "/api/webhooks/zoho/items",
            headers={"X-Webhook-Secret": WEBHOOK_SECRET},
            json={"item_id": "404", "action": "delete"},
        )

        assert response.status_code == 200
        assert response.json()["action"] == "not_found"

    async def test_non_json_body_answered_200(self, async_client):
        response = await async_client.post(
            "/api/webhooks/zoho/invoices",
            params={"secret": WEBHOOK_SECRET},
            content=b"not json",
        )

        assert response.status_code == 200
        assert response.json()["action"] == "invalid_payload"

    async def test_deliveries_show_in_stats(self, async_client, admin_headers):
        await async_client.post(
            "/api/webhooks/zoho/bills",
            params={"secret": WEBHOOK_SECRET},
            json={"action": "create", "bill": {"bill_id": "B1", "status": "draft"}},
        )

        response = await async_client.get("/api/admin/zoho/webhooks/stats", headers=admin_headers)

        data = response.json()
        assert data["today"]["total"] == 1
        assert data["today"]["byAction"] == {"bills.create": 1}
        assert data["recentEvents"][0]["type"] == "bills"

        cleared = await async_client.delete("/api/admin/zoho/webhooks/stats", headers=admin_headers)
        assert cleared.status_code == 204


class TestAdminRoutes:
    def test_admin_key_required(self, client):
        assert client.get("/api/admin/jobs").status_code == 401
        assert client.get("/api/admin/jobs", headers={"X-Admin-Key": "wrong"}).status_code == 401

    async def test_list_and_retry_jobs(self, async_client, admin_headers, session_context):
        async with session_context() as session:
            jobs = JobRepository(session)
            failed = await jobs.create_job(CreateCustomerPayload(email="a@example.com", contact_name="A"))
            await jobs.update(failed, {"status": JobStatus.FAILED.value, "attempts": 3})
            pending = await jobs.create_job(CreateCustomerPayload(email="b@example.com", contact_name="B"))

        listed = await async_client.get("/api/admin/jobs", params={"status": "failed"}, headers=admin_headers)
        assert [job["id"] for job in listed.json()] == [failed.id]
        assert listed.json()[0]["jobType"] == "create_zoho_customer"

        retried = await async_client.post(f"/api/admin/jobs/{failed.id}/retry", headers=admin_headers)
        assert retried.status_code == 200
        assert retried.json()["status"] == JobStatus.PENDING.value
        assert retried.json()["attempts"] == 0

        not_failed = await async_client.post(f"/api/admin/jobs/{pending.id}/retry", headers=admin_headers)
        assert not_failed.status_code == 400

        missing = await async_client.post("/api/admin/jobs/missing/retry", headers=admin_headers)
        assert missing.status_code == 404

    async def test_commerce_errors_mapped_to_status(self, async_client, admin_headers, make_user):
        user = await make_user()

        missing = await async_client.post("/api/admin/users/missing/approve", headers=admin_headers)
        already = await async_client.post(f"/api/admin/users/{user.id}/approve", headers=admin_headers)

        assert missing.status_code == 404
        assert missing.json()["detail"] == "User not found"
        assert missing.json()["type"] == "RecordNotFoundError"
        assert already.status_code == 400
        assert already.json()["detail"] == "User is already approved"


class TestProductRoutes:
    async def test_list_products(self, async_client, make_product):
        await make_product(sku="VIS-1", name="Visible", base_price=Decimal("3.50"))
        await make_product(sku="OFF-1", is_online=False)

        response = await async_client.get("/api/products")

        assert response.status_code == 200
        data = response.json()
        assert [p["sku"] for p in data] == ["VIS-1"]
        assert data[0]["stockQuantity"] == 10

    async def test_get_product(self, async_client, make_product):
        await make_product(sku="VIS-1")
        await make_product(sku="OFF-1", is_online=False)

        assert (await async_client.get("/api/products/VIS-1")).status_code == 200
        assert (await async_client.get("/api/products/OFF-1")).status_code == 404
        assert (await async_client.get("/api/products/NOPE")).status_code == 404
