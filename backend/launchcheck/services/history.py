"""
Launch Checklist Engine - Product History

Append-only log of audits and field changes. Each successful mutation is
recorded per field with its previous and new value so it can be reverted
by hand.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import ProductHistoryDB
from ..models.domain import AuditResult, ChangeType, ListingSnapshot
from .catalog.base import ListingUpdate

logger = logging.getLogger(__name__)

REVERTABLE_FIELDS = ("title", "description", "tags", "seo_title", "seo_description", "image_alt")


def field_changes(listing: ListingSnapshot, update: ListingUpdate) -> Dict[str, Tuple[Any, Any]]:
    """Map each field touched by `update` to (previous value, new value)."""
    changes: Dict[str, Tuple[Any, Any]] = {}
    if update.title is not None:
        changes["title"] = (listing.title, update.title)
    if update.description_html is not None:
        changes["description"] = (listing.description_html, update.description_html)
    if update.tags is not None:
        changes["tags"] = (list(listing.tags), list(update.tags))
    if update.seo_title is not None:
        changes["seo_title"] = (listing.seo_title, update.seo_title)
    if update.seo_description is not None:
        changes["seo_description"] = (listing.seo_description, update.seo_description)
    if update.add_collection_ids:
        changes["collections"] = (
            [c.id for c in listing.collections],
            list(dict.fromkeys([c.id for c in listing.collections] + list(update.add_collection_ids))),
        )
    if update.image_alt_texts:
        previous = {img.id: img.alt_text for img in listing.images if img.id in update.image_alt_texts}
        changes["image_alt"] = (previous, dict(update.image_alt_texts))
    if update.media_urls:
        changes["images"] = (len(listing.images), len(listing.images) + len(update.media_urls))
    return changes


class HistoryService:
    """Writes and reads the product history log for one shop."""

    def __init__(self, db: Session, shop_id: str):
        self.db = db
        self.shop_id = shop_id

    def record_audit(self, listing: ListingSnapshot, result: AuditResult) -> ProductHistoryDB:
        entry = ProductHistoryDB(
            id=str(uuid4()),
            shop_id=self.shop_id,
            product_id=listing.id,
            product_title=listing.title,
            change_type=ChangeType.AUDIT,
            score=result.score,
            passed_count=result.passed_count,
            failed_count=result.failed_count,
            description=f"Audit: {result.passed_count}/{result.total_count} passed",
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def record_fix(
        self,
        listing: ListingSnapshot,
        update: ListingUpdate,
        change_type: ChangeType,
        description: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> List[ProductHistoryDB]:
        """One entry per changed field."""
        entries = []
        for field_name, (previous, new) in field_changes(listing, update).items():
            entry = ProductHistoryDB(
                id=str(uuid4()),
                shop_id=self.shop_id,
                product_id=listing.id,
                product_title=listing.title,
                change_type=change_type,
                changed_field=field_name,
                previous_value=previous,
                new_value=new,
                description=description,
                extra=extra,
            )
            self.db.add(entry)
            entries.append(entry)
        self.db.flush()
        return entries

    def list_for_product(self, product_id: str, limit: int = 50) -> List[ProductHistoryDB]:
        return (
            self.db.query(ProductHistoryDB)
            .filter(ProductHistoryDB.shop_id == self.shop_id, ProductHistoryDB.product_id == product_id)
            .order_by(ProductHistoryDB.created_at.desc())
            .limit(limit)
            .all()
        )

    def get_entry(self, entry_id: str) -> Optional[ProductHistoryDB]:
        return (
            self.db.query(ProductHistoryDB)
            .filter(ProductHistoryDB.shop_id == self.shop_id, ProductHistoryDB.id == entry_id)
            .first()
        )

    def build_revert_update(self, entry: ProductHistoryDB) -> ListingUpdate:
        """
        Update that restores the previous value recorded on `entry`.

        Raises:
            ValueError: the entry is not a field change or its field is add-only
        """
        field_name = entry.changed_field
        if field_name not in REVERTABLE_FIELDS:
            raise ValueError(f"Changes to '{field_name or entry.change_type.value}' cannot be reverted")

        previous = entry.previous_value
        if field_name == "title":
            return ListingUpdate(title=previous or "")
        if field_name == "description":
            return ListingUpdate(description_html=previous or "")
        if field_name == "tags":
            return ListingUpdate(tags=tuple(previous or ()))
        if field_name == "seo_title":
            return ListingUpdate(seo_title=previous or "")
        if field_name == "seo_description":
            return ListingUpdate(seo_description=previous or "")
        return ListingUpdate(
            image_alt_texts={image_id: alt or "" for image_id, alt in (previous or {}).items()}
        )
