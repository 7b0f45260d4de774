"""
Persistence tests

Checklist repository, audit store (one current audit per product),
product history with reverts, shop settings and the audit service.
"""
import asyncio

import pytest

from launchcheck.models.db_models import (
    ChecklistItemDB, ProductAuditDB, ProductAuditItemDB, ProductHistoryDB,
)
from launchcheck.models.domain import AuditStatus, ChangeType, ListingImage
from launchcheck.models.rule_configs import MinCountConfig
from launchcheck.services.audit_service import AuditService
from launchcheck.services.audit_store import AuditStore
from launchcheck.services.catalog.base import ListingUpdate
from launchcheck.services.checklist import DEFAULT_CHECKLIST_ITEMS, ChecklistRepository, run_checklist
from launchcheck.services.history import HistoryService, field_changes
from launchcheck.services.shop_service import get_or_create_shop, update_settings

from fakes import FakeCatalog, make_listing


def run(coro):
    return asyncio.run(coro)


# =============================================================================
# CHECKLIST REPOSITORY
# =============================================================================

class TestChecklistRepository:

    def test_onboarding_creates_default_checklist(self, db_session, shop):
        items = ChecklistRepository(db_session).list_items(shop)
        assert len(items) == len(DEFAULT_CHECKLIST_ITEMS)
        assert [i.position for i in items] == list(range(1, len(items) + 1))
        assert items[0].key == "min_title_length"

    def test_default_checklist_is_created_once(self, db_session, shop):
        repo = ChecklistRepository(db_session)
        repo.create_default_checklist(shop)
        assert len(repo.list_items(shop)) == len(DEFAULT_CHECKLIST_ITEMS)
        assert get_or_create_shop(db_session, shop.shop_domain).id == shop.id

    def test_definitions_have_parsed_config(self, db_session, shop):
        definition = ChecklistRepository(db_session).find_definition(shop, "min_images")
        assert definition.config == MinCountConfig(min=3)

    def test_malformed_config_is_flagged(self, db_session, shop):
        repo = ChecklistRepository(db_session)
        item = next(i for i in repo.list_items(shop) if i.key == "min_images")
        item.config_json = "{min: 3"
        db_session.flush()

        definition = repo.find_definition(shop, "min_images")
        assert definition.config is None
        assert "not valid JSON" in definition.config_error

        audit = run_checklist(make_listing(), repo.load_definitions(shop))
        assert "min_images" not in [i.rule_key for i in audit.items]

    def test_update_item(self, db_session, shop):
        repo = ChecklistRepository(db_session)
        item = repo.list_items(shop)[0]
        updated = repo.update_item(shop, item.id, enabled=False, weight=3)
        assert updated.is_enabled is False
        assert updated.weight == 3

    def test_update_item_rejects_bad_weight(self, db_session, shop):
        repo = ChecklistRepository(db_session)
        item = repo.list_items(shop)[0]
        with pytest.raises(ValueError, match="weight must be a positive integer"):
            repo.update_item(shop, item.id, weight=0)

    def test_update_missing_item(self, db_session, shop):
        assert ChecklistRepository(db_session).update_item(shop, "nope", enabled=True) is None


# =============================================================================
# AUDIT STORE
# =============================================================================

class TestAuditStore:

    def test_save_replaces_previous_audit(self, db_session, shop):
        repo = ChecklistRepository(db_session)
        store = AuditStore(db_session)
        definitions = repo.load_definitions(shop)

        failing = make_listing(vendor="", seo_title=None)
        store.save(shop.id, failing, run_checklist(failing, definitions))
        db_session.commit()
        passing = make_listing()
        store.save(shop.id, passing, run_checklist(passing, definitions))
        db_session.commit()

        audits = db_session.query(ProductAuditDB).all()
        assert len(audits) == 1
        assert audits[0].status == AuditStatus.READY
        assert audits[0].failed_count == 0
        assert db_session.query(ProductAuditItemDB).count() == len(definitions)

    def test_list_filters_by_status(self, db_session, shop):
        definitions = ChecklistRepository(db_session).load_definitions(shop)
        store = AuditStore(db_session)
        for listing in (make_listing(id="p1"), make_listing(id="p2", vendor="")):
            store.save(shop.id, listing, run_checklist(listing, definitions))
        db_session.commit()

        incomplete = store.list(shop.id, status=AuditStatus.INCOMPLETE)
        assert [a.product_id for a in incomplete] == ["p2"]
        assert len(store.list(shop.id)) == 2


# =============================================================================
# HISTORY
# =============================================================================

class TestHistory:

    def test_field_changes(self):
        listing = make_listing(tags=("cotton",), images=(ListingImage(id="a"),))
        update = ListingUpdate(tags=("cotton", "sale"), image_alt_texts={"a": "Front"}, media_urls=("u",))
        changes = field_changes(listing, update)
        assert changes["tags"] == (["cotton"], ["cotton", "sale"])
        assert changes["image_alt"] == ({"a": None}, {"a": "Front"})
        assert changes["images"] == (1, 2)

    def test_one_entry_per_field(self, db_session, shop):
        history = HistoryService(db_session, shop.id)
        listing = make_listing(seo_title=None)
        entries = history.record_fix(
            listing,
            ListingUpdate(title="New title", seo_title="New SEO"),
            ChangeType.BULK_FIX,
            description="Generated: title, seo_title",
        )
        assert sorted(e.changed_field for e in entries) == ["seo_title", "title"]
        assert history.list_for_product(listing.id)[0].change_type == ChangeType.BULK_FIX

    def test_revert_restores_previous_value(self, db_session, shop):
        history = HistoryService(db_session, shop.id)
        listing = make_listing()
        entry = history.record_fix(listing, ListingUpdate(title="Tee"), ChangeType.AI_FIX)[0]
        update = history.build_revert_update(entry)
        assert update == ListingUpdate(title="Organic Cotton Crew Neck T-Shirt")

    def test_revert_of_unset_seo_title_clears_it(self, db_session, shop):
        history = HistoryService(db_session, shop.id)
        entry = history.record_fix(make_listing(seo_title=None), ListingUpdate(seo_title="X"), ChangeType.AUTOFIX)[0]
        assert history.build_revert_update(entry).seo_title == ""

    def test_collections_are_not_revertable(self, db_session, shop):
        history = HistoryService(db_session, shop.id)
        entry = history.record_fix(
            make_listing(), ListingUpdate(add_collection_ids=("c1",)), ChangeType.AUTOFIX,
        )[0]
        with pytest.raises(ValueError, match="cannot be reverted"):
            history.build_revert_update(entry)

    def test_entries_are_scoped_to_shop(self, db_session, shop):
        entry = HistoryService(db_session, shop.id).record_fix(
            make_listing(), ListingUpdate(title="Tee"), ChangeType.AI_FIX,
        )[0]
        assert HistoryService(db_session, "other-shop").get_entry(entry.id) is None


# =============================================================================
# SHOP SETTINGS AND AUDIT SERVICE
# =============================================================================

class TestShopSettings:

    def test_update_settings(self, db_session, shop):
        update_settings(db_session, shop, default_tags=[" sale ", "", "new"], openai_api_key="sk-shop")
        assert shop.default_tags == ["sale", "new"]
        assert shop.openai_api_key == "sk-shop"
        assert shop.default_collection_id == "gid://shopify/Collection/99"

    def test_clear_collection(self, db_session, shop):
        update_settings(db_session, shop, default_collection_id=None)
        assert shop.default_collection_id is None


class TestAuditService:

    def test_audit_product_persists_and_logs(self, db_session, shop):
        catalog = FakeCatalog(make_listing(vendor=""))
        service = AuditService(db_session, shop, catalog)

        result = run(service.audit_product("gid://shopify/Product/1001"))

        assert result.status == AuditStatus.INCOMPLETE
        assert result.score == 90
        stored = AuditStore(db_session).get(shop.id, "gid://shopify/Product/1001")
        assert stored.score == 90
        entry = db_session.query(ProductHistoryDB).one()
        assert entry.change_type == ChangeType.AUDIT
        assert entry.score == 90

    def test_missing_product(self, db_session, shop):
        service = AuditService(db_session, shop, FakeCatalog())
        assert run(service.audit_product("gid://shopify/Product/404")) is None
        assert db_session.query(ProductAuditDB).count() == 0

    def test_disabled_item_changes_score(self, db_session, shop):
        vendor_item = db_session.query(ChecklistItemDB).filter(ChecklistItemDB.key == "has_vendor").one()
        vendor_item.is_enabled = False
        db_session.commit()
        service = AuditService(db_session, shop, FakeCatalog(make_listing(vendor="")))
        result = run(service.audit_product("gid://shopify/Product/1001"))
        assert result.is_ready
        assert result.total_count == len(DEFAULT_CHECKLIST_ITEMS) - 1
