"""
Launch Checklist Engine - Audit Store

One current audit per shop+product. Saving replaces the previous audit and
all of its items; nothing is merged.
"""
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import ProductAuditDB, ProductAuditItemDB
from ..models.domain import AuditResult, AuditStatus, ListingSnapshot


class AuditStore:
    def __init__(self, db: Session):
        self.db = db

    def get(self, shop_id: str, product_id: str) -> Optional[ProductAuditDB]:
        return (
            self.db.query(ProductAuditDB)
            .filter(ProductAuditDB.shop_id == shop_id, ProductAuditDB.product_id == product_id)
            .first()
        )

    def list(self, shop_id: str, status: Optional[AuditStatus] = None) -> List[ProductAuditDB]:
        query = self.db.query(ProductAuditDB).filter(ProductAuditDB.shop_id == shop_id)
        if status is not None:
            query = query.filter(ProductAuditDB.status == status)
        return query.order_by(ProductAuditDB.updated_at.desc()).all()

    def save(self, shop_id: str, listing: ListingSnapshot, result: AuditResult) -> ProductAuditDB:
        """Replace the current audit for this listing with `result`."""
        audit = self.get(shop_id, listing.id)
        if audit is None:
            audit = ProductAuditDB(id=str(uuid4()), shop_id=shop_id, product_id=listing.id)
            self.db.add(audit)

        audit.product_title = listing.title
        audit.product_image = listing.featured_image_url
        audit.status = result.status
        audit.score = result.score
        audit.passed_count = result.passed_count
        audit.failed_count = result.failed_count
        audit.total_count = result.total_count
        audit.auto_fixable_count = result.auto_fixable_count
        audit.ai_fixable_count = result.ai_fixable_count

        # delete-orphan cascade removes the previous items
        audit.items = [
            ProductAuditItemDB(
                id=str(uuid4()),
                item_id=item.definition_id,
                rule_key=item.rule_key,
                label=item.label,
                position=position,
                status=item.status,
                details=item.details,
                can_auto_fix=item.can_auto_fix,
                fix_type=item.fix_type,
                target_field=item.target_field,
                weight=item.weight,
            )
            for position, item in enumerate(result.items)
        ]

        self.db.flush()
        return audit
