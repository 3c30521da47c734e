"""
Integration Tests - HTTP API
"""
import csv
import io

import pytest
from httpx import ASGITransport, AsyncClient

from discount_analytics.serving.api.main import create_api_app

pytestmark = pytest.mark.integration

REPORTS = ["manage_store"]
CAPTURE = ["capture_orders"]


@pytest.fixture
async def client(provisioned_context):
    app = create_api_app(context=provisioned_context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth(make_token):
    def _headers(scopes=REPORTS):
        return {"Authorization": f"Bearer {make_token(scopes)}"}
    return _headers


@pytest.fixture
async def catalog(seeder):
    """Two discounted products, one full price and one with equal prices"""
    tools = await seeder.category("Tools")
    hammer = await seeder.product("Hammer", "100", "80", sku="HAM-1", categories=[tools])
    saw = await seeder.product("Saw", "50", "45", categories=[tools])
    await seeder.product("Nails", "10")
    await seeder.product("Glue", "8", "8")
    return {"tools": tools, "hammer": hammer, "saw": saw}


def csv_rows(text):
    return list(csv.reader(io.StringIO(text)))


class TestAuthorization:
    
    async def test_missing_token(self, client):
        response = await client.get("/api/v1/discounts/current-discounts")
        
        assert response.status_code == 401
        assert response.json()["detail"] == "Missing bearer token"
    
    async def test_bad_signature(self, client, make_token):
        token = make_token(REPORTS, secret="a-different-signing-secret-of-enough-length")
        response = await client.get(
            "/api/v1/discounts/current-discounts",
            headers={"Authorization": f"Bearer {token}"},
        )
        
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid token"
    
    async def test_missing_capability(self, client, auth):
        response = await client.get("/api/v1/discounts/discount-summary", headers=auth(["read"]))
        
        assert response.status_code == 403
    
    async def test_capture_scope_cannot_read_reports(self, client, auth):
        response = await client.get("/api/v1/discounts/discount-history", headers=auth(CAPTURE))
        
        assert response.status_code == 403
    
    async def test_reports_scope_cannot_deliver_webhooks(self, client, auth):
        response = await client.post(
            "/api/v1/webhooks/orders/status",
            json={"order_id": 1, "new_status": "processing"},
            headers=auth(REPORTS),
        )
        
        assert response.status_code == 403


class TestCurrentDiscounts:
    
    async def test_lists_discounted_products(self, client, auth, catalog):
        response = await client.get("/api/v1/discounts/current-discounts", headers=auth())
        
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        first = data["items"][0]
        assert first["id"] == catalog["hammer"]
        assert first["discount_amount"] == 20.0
        assert first["discount_pct"] == 20.0
        assert first["sale_status"] == "active"
        assert data["items"][1]["discount_pct"] == 10.0
    
    async def test_discount_range_filter(self, client, auth, catalog):
        response = await client.get(
            "/api/v1/discounts/current-discounts",
            params={"discount_min": 15},
            headers=auth(),
        )
        
        assert [item["id"] for item in response.json()["items"]] == [catalog["hammer"]]
    
    async def test_pagination(self, client, auth, catalog):
        response = await client.get(
            "/api/v1/discounts/current-discounts",
            params={"per_page": 1, "page": 2, "orderby": "name", "order": "ASC"},
            headers=auth(),
        )
        
        data = response.json()
        assert data["total"] == 2
        assert data["total_pages"] == 2
        assert [item["name"] for item in data["items"]] == ["Saw"]
    
    async def test_unknown_sale_status(self, client, auth, catalog):
        response = await client.get(
            "/api/v1/discounts/current-discounts",
            params={"sale_status": "soon"},
            headers=auth(),
        )
        
        assert response.status_code == 400


class TestHistoryAndExport:
    
    async def _capture(self, client, auth, seeder, catalog):
        order_id = await seeder.order([
            {"product_id": catalog["hammer"], "quantity": 2, "subtotal": "160"},
            {"product_id": catalog["saw"], "quantity": 1, "subtotal": "45"},
        ])
        response = await client.post(
            "/api/v1/webhooks/orders/status",
            json={"order_id": order_id, "old_status": "pending", "new_status": "processing"},
            headers=auth(CAPTURE),
        )
        return order_id, response
    
    async def test_webhook_capture(self, client, auth, seeder, catalog):
        order_id, response = await self._capture(client, auth, seeder, catalog)
        
        assert response.status_code == 200
        assert response.json() == {
            "order_id": order_id,
            "captured": True,
            "facts_captured": 2,
            "discounted_items": 2,
            "skipped_item_ids": [],
        }
    
    async def test_webhook_storage_failure_asks_for_retry(
        self, client, auth, seeder, catalog, provisioned_context, monkeypatch
    ):
        async def rejecting_insert(fact):
            return None
        
        monkeypatch.setattr(provisioned_context.store, "insert", rejecting_insert)
        order_id, response = await self._capture(client, auth, seeder, catalog)
        
        assert response.status_code == 503
        monkeypatch.undo()
        retry = await client.post(
            "/api/v1/webhooks/orders/status",
            json={"order_id": order_id, "new_status": "processing"},
            headers=auth(CAPTURE),
        )
        assert retry.json()["captured"] is True
        assert retry.json()["facts_captured"] == 2
    
    async def test_webhook_unknown_order(self, client, auth):
        response = await client.post(
            "/api/v1/webhooks/orders/status",
            json={"order_id": 31337, "new_status": "completed"},
            headers=auth(CAPTURE),
        )
        
        assert response.status_code == 200
        assert response.json()["captured"] is False
    
    async def test_history_grouped_by_product(self, client, auth, seeder, catalog):
        await self._capture(client, auth, seeder, catalog)
        
        response = await client.get(
            "/api/v1/discounts/discount-history",
            params={"group_by": "product"},
            headers=auth(),
        )
        
        items = response.json()["items"]
        assert [item["product_name"] for item in items] == ["Hammer", "Saw"]
        assert items[0]["units_sold"] == 2
        assert items[0]["total_discount"] == 40.0
    
    async def test_invalid_group_by(self, client, auth):
        response = await client.get(
            "/api/v1/discounts/discount-history",
            params={"group_by": "weekday"},
            headers=auth(),
        )
        
        assert response.status_code == 400
    
    async def test_summary(self, client, auth, seeder, catalog):
        await self._capture(client, auth, seeder, catalog)
        
        response = await client.get("/api/v1/discounts/discount-summary", headers=auth())
        
        data = response.json()
        assert data["total_discount"] == 45.0
        assert data["total_revenue"] == 205.0
        assert data["orders_count"] == 1
        assert data["top_discounted_products"][0]["product_name"] == "Hammer"
    
    async def test_history_export_matches_total(self, client, auth, seeder, catalog):
        await self._capture(client, auth, seeder, catalog)
        history = await client.get("/api/v1/discounts/discount-history", headers=auth())
        
        response = await client.get("/api/v1/discounts/export/discount-history", headers=auth())
        
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "filename=discount-history-" in response.headers["content-disposition"]
        rows = csv_rows(response.text)
        assert len(rows) - 1 == history.json()["total"]
    
    async def test_current_discounts_export(self, client, auth, catalog):
        response = await client.get("/api/v1/discounts/export/current-discounts", headers=auth())
        
        rows = csv_rows(response.text)
        assert len(rows) == 3
        assert rows[1][1] == "Hammer"
    
    async def test_unknown_export_type(self, client, auth):
        response = await client.get("/api/v1/discounts/export/everything", headers=auth())
        
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid export type."
    
    async def test_refund_removes_history(self, client, auth, seeder, catalog):
        order_id, capture = await self._capture(client, auth, seeder, catalog)
        history = await client.get("/api/v1/discounts/discount-history", headers=auth())
        hammer_item = history.json()["items"][0]["item_id"]
        
        response = await client.post(
            "/api/v1/webhooks/orders/refunds",
            json={"refund_id": 5, "order_item_ids": [hammer_item], "refunded_at": "2024-03-20T12:00:00Z"},
            headers=auth(CAPTURE),
        )
        
        assert response.json() == {"refund_id": 5, "items_changed": 1}
        after = await client.get("/api/v1/discounts/discount-history", headers=auth())
        assert after.json()["total"] == 1


class TestHealth:
    
    async def test_health(self, client):
        response = await client.get("/api/v1/health")
        
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"]["fact_store"]["status"] == "provisioned"
        assert data["checks"]["fact_store"]["history_source"] == "fact_store"
    
    async def test_degraded_without_fact_store(self, context):
        app = create_api_app(context=context)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            response = await ac.get("/api/v1/health")
        
        assert response.json()["status"] == "degraded"
    
    async def test_liveness_and_readiness(self, client):
        assert (await client.get("/api/v1/health/live")).json() == {"status": "alive"}
        assert (await client.get("/api/v1/health/ready")).json() == {"status": "ready"}
