"""
Launch Checklist Engine - Audit Service

fetch listing -> run checklist -> replace stored audit -> history entry
"""
import logging
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from ..models.db_models import ShopDB
from ..models.domain import AuditResult, ListingSnapshot
from .audit_store import AuditStore
from .catalog.base import CatalogClient
from .checklist.engine import run_checklist
from .checklist.repository import ChecklistRepository
from .history import HistoryService

logger = logging.getLogger(__name__)


class AuditService:
    def __init__(self, db: Session, shop: ShopDB, catalog: CatalogClient):
        self.db = db
        self.shop = shop
        self.catalog = catalog
        self.store = AuditStore(db)
        self.history = HistoryService(db, shop.id)
        self.checklist = ChecklistRepository(db)

    def audit_listing(self, listing: ListingSnapshot) -> AuditResult:
        """Audit an already-fetched listing and persist the result."""
        result = run_checklist(listing, self.checklist.load_definitions(self.shop))
        self.store.save(self.shop.id, listing, result)
        self.history.record_audit(listing, result)
        self.db.commit()
        logger.info(
            f"Audited {listing.id}: {result.status.value} "
            f"({result.passed_count}/{result.total_count}, score {result.score})"
        )
        return result

    async def audit_product(self, product_id: str) -> Optional[AuditResult]:
        """Fetch and audit one product. None if it does not exist."""
        audited = await self.fetch_and_audit(product_id)
        return audited[1] if audited else None

    async def fetch_and_audit(self, product_id: str) -> Optional[Tuple[ListingSnapshot, AuditResult]]:
        listing = await self.catalog.fetch_listing(product_id)
        if listing is None:
            return None
        return listing, self.audit_listing(listing)
