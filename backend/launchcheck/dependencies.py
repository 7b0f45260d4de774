"""
Launch Checklist Engine - Request Dependencies

Per-request wiring of the catalog, generator, ledger and dispatcher for the
authenticated shop. Tests replace these through app.dependency_overrides.
"""
from typing import Callable, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from .auth import get_current_shop
from .database import get_db
from .models.db_models import ShopDB
from .services.audit_service import AuditService
from .services.batch.processor import BatchProcessor
from .services.billing.credit_ledger import CreditLedger, DatabaseCreditLedger
from .services.catalog.base import CatalogClient
from .services.catalog.shopify import ShopifyCatalogClient
from .services.checklist.repository import ChecklistRepository
from .services.generation.base import ContentGenerator
from .services.generation.openai_client import default_generator, generator_for_key
from .services.history import HistoryService
from .services.remediation.dispatcher import FixDispatcher


def catalog_for_shop(shop: ShopDB) -> CatalogClient:
    return ShopifyCatalogClient(shop.shop_domain, shop.access_token or "")


def get_catalog(shop: ShopDB = Depends(get_current_shop)) -> CatalogClient:
    return catalog_for_shop(shop)


def get_catalog_factory() -> Callable[[ShopDB], CatalogClient]:
    """Catalog builder for requests that are not made by a logged-in shop (webhooks)."""
    return catalog_for_shop


def get_generator() -> Optional[ContentGenerator]:
    return default_generator()


def get_fallback_generator(shop: ShopDB = Depends(get_current_shop)) -> Optional[ContentGenerator]:
    return generator_for_key(shop.openai_api_key)


def get_ledger(db: Session = Depends(get_db)) -> CreditLedger:
    return DatabaseCreditLedger(db)


def get_batch_processor() -> BatchProcessor:
    return BatchProcessor()


def get_audit_service(
    shop: ShopDB = Depends(get_current_shop),
    catalog: CatalogClient = Depends(get_catalog),
    db: Session = Depends(get_db),
) -> AuditService:
    return AuditService(db, shop, catalog)


def get_dispatcher(
    shop: ShopDB = Depends(get_current_shop),
    catalog: CatalogClient = Depends(get_catalog),
    ledger: CreditLedger = Depends(get_ledger),
    generator: Optional[ContentGenerator] = Depends(get_generator),
    fallback_generator: Optional[ContentGenerator] = Depends(get_fallback_generator),
    audit_service: AuditService = Depends(get_audit_service),
    db: Session = Depends(get_db),
) -> FixDispatcher:
    return FixDispatcher(
        shop_id=shop.id,
        catalog=catalog,
        ledger=ledger,
        generator=generator,
        fallback_generator=fallback_generator,
        definitions=ChecklistRepository(db).load_definitions(shop),
        defaults={"tags": list(shop.default_tags or []), "collection_id": shop.default_collection_id},
        history=HistoryService(db, shop.id),
        auditor=audit_service.audit_product,
    )
