"""
HTTP API tests

Routers exercised through FastAPI's TestClient with the catalog, generator
and ledger replaced through dependency overrides.
"""
import json

import pytest
from fastapi.testclient import TestClient

from launchcheck.auth import create_session_token, get_current_shop
from launchcheck.database import get_db
from launchcheck.dependencies import (
    get_batch_processor, get_catalog, get_fallback_generator, get_generator, get_ledger,
)
from launchcheck.main import app
from launchcheck.models.db_models import ProductHistoryDB, ShopDB
from launchcheck.models.domain import ChangeType, DenialReason, ListingImage
from launchcheck.services.batch import BatchProcessor, RateLimiter

from fakes import FakeLedger, denied, make_listing

PRODUCT_GID = "gid://shopify/Product/1001"


@pytest.fixture
def overrides(db_session, shop, catalog, generator, ledger):
    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_current_shop] = lambda: shop
    app.dependency_overrides[get_catalog] = lambda: catalog
    app.dependency_overrides[get_generator] = lambda: generator
    app.dependency_overrides[get_fallback_generator] = lambda: None
    app.dependency_overrides[get_ledger] = lambda: ledger
    app.dependency_overrides[get_batch_processor] = lambda: BatchProcessor(
        batch_size=5, batch_pause=0, item_delay=0, rate_limiter=RateLimiter(1000),
    )
    yield app.dependency_overrides
    app.dependency_overrides.clear()


@pytest.fixture
def client(overrides):
    return TestClient(app)


def sse_events(response):
    return [
        json.loads(chunk[len("data: "):])
        for chunk in response.text.split("\n\n")
        if chunk.startswith("data: ")
    ]


# =============================================================================
# APP
# =============================================================================

class TestApp:

    def test_health(self):
        response = TestClient(app).get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_requires_session_token(self, db_session):
        app.dependency_overrides[get_db] = lambda: db_session
        try:
            response = TestClient(app).get("/shop/checklist")
        finally:
            app.dependency_overrides.clear()
        assert response.status_code in (401, 403)

    def test_session_token_onboards_shop(self, db_session):
        app.dependency_overrides[get_db] = lambda: db_session
        try:
            token = create_session_token("fresh.myshopify.com")
            response = TestClient(app).get("/shop/checklist", headers={"Authorization": f"Bearer {token}"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 200
        assert len(response.json()) == 10
        assert db_session.query(ShopDB).filter(ShopDB.shop_domain == "fresh.myshopify.com").count() == 1

    def test_bad_token(self, db_session):
        app.dependency_overrides[get_db] = lambda: db_session
        try:
            response = TestClient(app).get("/shop/checklist", headers={"Authorization": "Bearer nope"})
        finally:
            app.dependency_overrides.clear()
        assert response.status_code == 401


# =============================================================================
# AUDITS
# =============================================================================

class TestAuditsApi:

    def test_run_and_read_audit(self, client, catalog):
        catalog.listings[PRODUCT_GID] = make_listing(seo_title=None)

        response = client.post("/audits/1001")
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "incomplete"
        assert body["score"] == 90
        assert [f["rule_key"] for f in body["available_fixes"]] == ["seo_title"]

        stored = client.get("/audits/1001").json()
        assert stored["score"] == 90
        assert len(stored["items"]) == 10

    def test_missing_product(self, client):
        assert client.post("/audits/404").status_code == 404
        assert client.get("/audits/404").status_code == 404

    def test_list_filters_by_status(self, client):
        client.post("/audits/1001")
        assert [a["product_id"] for a in client.get("/audits").json()] == [PRODUCT_GID]
        assert client.get("/audits", params={"status": "incomplete"}).json() == []


# =============================================================================
# FIXES AND HISTORY
# =============================================================================

class TestFixesApi:

    def test_auto_fix(self, client, catalog):
        catalog.listings[PRODUCT_GID] = make_listing(seo_title=None)
        response = client.post("/products/1001/fixes", json={"rule_key": "seo_title", "fix_type": "auto"})
        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["audit"]["status"] == "ready"
        assert catalog.listings[PRODUCT_GID].seo_title == "Organic Cotton Crew Neck T-Shirt"

    def test_noop_fix(self, client):
        body = client.post("/products/1001/fixes", json={"rule_key": "seo_title"}).json()
        assert body["success"] is True
        assert body["noop"] is True

    def test_collection_uses_shop_default(self, client, catalog):
        catalog.listings[PRODUCT_GID] = make_listing(collections=())
        response = client.post("/products/1001/fixes", json={"rule_key": "has_collections", "config": {}})
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert catalog.listings[PRODUCT_GID].has_collection("gid://shopify/Collection/99")

    def test_failure_is_reported_in_body(self, client, catalog, shop, db_session):
        shop.default_collection_id = None
        db_session.commit()
        catalog.listings[PRODUCT_GID] = make_listing(collections=())
        response = client.post("/products/1001/fixes", json={"rule_key": "has_collections"})
        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "message": "No default collection configured in settings",
            "rule_key": "has_collections",
            "fix_type": "auto",
            "noop": False,
            "audit": None,
        }

    def test_not_found(self, client):
        assert client.post("/products/404/fixes", json={"rule_key": "seo_title"}).status_code == 404

    def test_credit_denial(self, client, catalog, overrides):
        catalog.listings[PRODUCT_GID] = make_listing(seo_description="")
        overrides[get_ledger] = lambda: FakeLedger(denied(DenialReason.LOCKED, "AI features require Pro plan"))
        response = client.post("/products/1001/fixes", json={"rule_key": "seo_description"})
        assert response.status_code == 403
        assert response.json()["detail"] == {"message": "AI features require Pro plan", "reason": "locked"}

    def test_history_and_revert(self, client, catalog, db_session):
        catalog.listings[PRODUCT_GID] = make_listing(seo_title=None)
        client.post("/products/1001/fixes", json={"rule_key": "seo_title", "fix_type": "auto"})

        history = client.get("/products/1001/history").json()
        fix_entry = next(e for e in history if e["changed_field"] == "seo_title")
        assert fix_entry["change_type"] == "autofix"

        response = client.post(f"/products/1001/history/{fix_entry['id']}/revert")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert catalog.listings[PRODUCT_GID].seo_title == ""
        assert db_session.query(ProductHistoryDB).filter(
            ProductHistoryDB.change_type == ChangeType.REVERT
        ).count() == 1

    def test_revert_reaudits_current_listing(self, client, catalog):
        catalog.listings[PRODUCT_GID] = make_listing(seo_title=None)
        fixed = client.post("/products/1001/fixes", json={"rule_key": "seo_title", "fix_type": "auto"}).json()
        assert fixed["audit"]["status"] == "ready"

        history = client.get("/products/1001/history").json()
        fix_entry = next(e for e in history if e["changed_field"] == "seo_title")
        reverted = client.post(f"/products/1001/history/{fix_entry['id']}/revert").json()

        assert reverted["success"] is True
        assert reverted["audit"]["status"] == "incomplete"
        assert reverted["audit"]["score"] < 100
        stored = client.get("/audits/1001").json()
        assert stored["status"] == "incomplete"
        assert stored["score"] == reverted["audit"]["score"]

    def test_revert_unknown_entry(self, client):
        assert client.post("/products/1001/history/nope/revert").status_code == 404


# =============================================================================
# BULK
# =============================================================================

class TestBulkApi:

    def test_streams_progress(self, client, catalog, db_session):
        catalog.listings["gid://shopify/Product/1002"] = make_listing(id="gid://shopify/Product/1002", tags=())
        response = client.post("/bulk-fix", json={
            "operation": "apply_tags",
            "product_ids": ["1001", "1002", "404"],
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = sse_events(response)
        assert events[0] == {"type": "start", "total": 3}
        complete = events[-1]
        assert complete["type"] == "complete"
        assert complete["operation"] == "apply_tags"
        assert complete["successCount"] == 2
        assert complete["errorCount"] == 1
        assert [r["message"] for r in complete["results"]] == [
            "Added 1 tags", "Added 1 tags", "Product not found",
        ]
        assert db_session.query(ProductHistoryDB).filter(
            ProductHistoryDB.change_type == ChangeType.BULK_FIX
        ).count() == 2

    def test_commits_as_events_stream(self, client, db_session, monkeypatch):
        commits = []
        real_commit = db_session.commit

        def counting_commit():
            commits.append(1)
            real_commit()

        monkeypatch.setattr(db_session, "commit", counting_commit)
        response = client.post("/bulk-fix", json={"operation": "apply_tags", "product_ids": ["404", "405"]})

        events = sse_events(response)
        assert len(events) == 6
        assert len(commits) >= len(events)

    @pytest.mark.parametrize("body,message", [
        ({"operation": "wipe", "product_ids": ["1"]}, "Unknown operation"),
        ({"operation": "apply_tags", "product_ids": []}, "No products selected"),
        ({"operation": "apply_tags", "product_ids": [str(i) for i in range(51)]}, "Maximum 50 products"),
        ({"operation": "generate_all", "product_ids": ["1"], "selected_fields": ["price"]},
         "Invalid selectedFields format"),
    ])
    def test_rejects_bad_requests(self, client, body, message):
        response = client.post("/bulk-fix", json=body)
        assert response.status_code == 400
        assert message in response.json()["detail"]

    def test_plan_limit(self, client, shop, db_session):
        shop.plan = "free"
        db_session.commit()
        response = client.post("/bulk-fix", json={
            "operation": "apply_tags", "product_ids": [str(i) for i in range(11)],
        })
        assert response.status_code == 403
        assert response.json()["detail"]["reason"] == "plan_limit"

    def test_ai_operation_is_gated_up_front(self, client, overrides, catalog):
        overrides[get_ledger] = lambda: FakeLedger(denied())
        response = client.post("/bulk-fix", json={"operation": "generate_alt_text", "product_ids": ["1001"]})
        assert response.status_code == 403
        assert response.json()["detail"]["reason"] == "exhausted"
        assert catalog.fetches == []

    def test_generate_all_with_images(self, client, catalog, generator, ledger):
        catalog.listings[PRODUCT_GID] = make_listing(images=(ListingImage(id="a", alt_text="Front"),))
        response = client.post("/bulk-fix", json={
            "operation": "generate_all",
            "product_ids": ["1001"],
            "selected_fields": ["seoTitle"],
            "field_options": {"images": ["image"]},
        })
        complete = sse_events(response)[-1]
        assert complete["successCount"] == 1
        assert len(catalog.listings[PRODUCT_GID].images) == 3
        assert ledger.consume_calls == 1


# =============================================================================
# SHOP
# =============================================================================

class TestShopApi:

    def test_checklist(self, client):
        items = client.get("/shop/checklist").json()
        assert items[0]["key"] == "min_title_length"
        assert items[0]["config"] == {"min": 10}

    def test_update_checklist_item(self, client):
        item = client.get("/shop/checklist").json()[0]
        response = client.patch(f"/shop/checklist/{item['id']}", json={"weight": 3, "is_enabled": False})
        assert response.status_code == 200
        assert response.json()["weight"] == 3
        assert response.json()["is_enabled"] is False

    def test_bad_weight(self, client):
        item = client.get("/shop/checklist").json()[0]
        assert client.patch(f"/shop/checklist/{item['id']}", json={"weight": 0}).status_code == 400

    def test_unknown_item(self, client):
        assert client.patch("/shop/checklist/nope", json={"weight": 2}).status_code == 404

    def test_settings(self, client):
        response = client.patch("/shop/settings", json={"default_tags": ["sale"], "openai_api_key": "sk-shop"})
        body = response.json()
        assert body["default_tags"] == ["sale"]
        assert body["has_openai_api_key"] is True
        assert body["default_collection_id"] == "gid://shopify/Collection/99"

        cleared = client.patch("/shop/settings", json={"default_collection_id": None}).json()
        assert cleared["default_collection_id"] is None

    def test_auto_run_settings(self, client, shop):
        body = client.get("/shop/settings").json()
        assert body["auto_run_on_create"] is True
        assert body["auto_run_on_update"] is True

        body = client.patch("/shop/settings", json={"auto_run_on_update": False}).json()
        assert body["auto_run_on_create"] is True
        assert body["auto_run_on_update"] is False
        assert shop.auto_run_on_update is False

    def test_credits(self, client, overrides):
        del overrides[get_ledger]
        body = client.get("/shop/credits").json()
        assert body["plan"] == "pro"
        assert body["ai_allowed"] is True
        assert body["credits_limit"] == 100
        assert body["credits_used"] == 0
