"""
Launch Checklist Engine - Shop Service

Shop rows, onboarding and per-shop remediation settings.
"""
import logging
from typing import List, Optional
from uuid import uuid4

from sqlalchemy.orm import Session

from ..models.db_models import ShopDB
from .checklist.repository import ChecklistRepository

logger = logging.getLogger(__name__)

_UNSET = object()


def get_shop_by_domain(db: Session, shop_domain: str) -> Optional[ShopDB]:
    return db.query(ShopDB).filter(ShopDB.shop_domain == shop_domain).first()


def get_or_create_shop(db: Session, shop_domain: str) -> ShopDB:
    """Return the shop, onboarding it with the default checklist on first sight."""
    shop = get_shop_by_domain(db, shop_domain)
    if shop is not None:
        return shop

    shop = ShopDB(id=str(uuid4()), shop_domain=shop_domain, plan="free", default_tags=[],
                  auto_run_on_create=True, auto_run_on_update=True)
    db.add(shop)
    db.flush()
    ChecklistRepository(db).create_default_checklist(shop)
    db.commit()
    logger.info(f"Onboarded shop {shop_domain}")
    return shop


def update_settings(
    db: Session,
    shop: ShopDB,
    default_tags: Optional[List[str]] = None,
    default_collection_id=_UNSET,
    openai_api_key=_UNSET,
    auto_run_on_create: Optional[bool] = None,
    auto_run_on_update: Optional[bool] = None,
) -> ShopDB:
    """Pass None for collection or key to clear it; omit to leave it unchanged."""
    if default_tags is not None:
        shop.default_tags = [t.strip() for t in default_tags if t and t.strip()]
    if default_collection_id is not _UNSET:
        shop.default_collection_id = default_collection_id or None
    if openai_api_key is not _UNSET:
        shop.openai_api_key = openai_api_key or None
    if auto_run_on_create is not None:
        shop.auto_run_on_create = auto_run_on_create
    if auto_run_on_update is not None:
        shop.auto_run_on_update = auto_run_on_update
    db.commit()
    return shop
