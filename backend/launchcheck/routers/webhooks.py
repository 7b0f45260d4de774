"""
Launch Checklist Engine - Webhooks Router

Shopify product webhooks. A created or updated product is re-audited so the
stored audit stays current, unless the shop turned that off in settings.

Shopify retries any non-2xx answer, so once the signature checks out every
outcome (skipped, missing product, catalog error) is answered with 200.
"""
import json
import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import verify_webhook_hmac
from ..database import get_db
from ..dependencies import get_catalog_factory
from ..errors import CatalogError
from ..models.db_models import ShopDB
from ..services.audit_service import AuditService
from ..services.catalog.base import CatalogClient
from ..services.catalog.shopify import to_product_gid
from ..services.shop_service import get_shop_by_domain

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class WebhookResponse(BaseModel):
    status: str  # audited | skipped | ignored | not_found | error
    product_id: Optional[str] = None
    audit_status: Optional[str] = None
    score: Optional[int] = None


# =============================================================================
# HELPERS
# =============================================================================

def product_gid_from_payload(payload: dict) -> Optional[str]:
    gid = payload.get("admin_graphql_api_id")
    if gid:
        return to_product_gid(str(gid))
    if payload.get("id") is not None:
        return to_product_gid(str(payload["id"]))
    return None


async def handle_product_webhook(
    topic: str,
    enabled: Callable[[ShopDB], bool],
    request: Request,
    db: Session,
    catalog_factory: Callable[[ShopDB], CatalogClient],
) -> WebhookResponse:
    body = await request.body()
    if not verify_webhook_hmac(body, request.headers.get("X-Shopify-Hmac-Sha256")):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    shop_domain = request.headers.get("X-Shopify-Shop-Domain")
    if not shop_domain:
        raise HTTPException(status_code=400, detail="Missing shop domain")
    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.info(f"Received {topic} webhook for {shop_domain}")

    shop = get_shop_by_domain(db, shop_domain)
    if shop is None or not shop.access_token:
        logger.warning(f"{topic} webhook for unknown or unauthorized shop {shop_domain}, ignoring")
        return WebhookResponse(status="ignored")

    product_id = product_gid_from_payload(payload if isinstance(payload, dict) else {})
    if product_id is None:
        raise HTTPException(status_code=400, detail="Webhook payload has no product id")

    if not enabled(shop):
        logger.info(f"Auto-run for {topic} disabled for {shop_domain}, skipping audit")
        return WebhookResponse(status="skipped", product_id=product_id)

    audit_service = AuditService(db, shop, catalog_factory(shop))
    try:
        result = await audit_service.audit_product(product_id)
    except CatalogError as e:
        logger.error(f"{topic} webhook audit failed for {product_id}: {e}")
        return WebhookResponse(status="error", product_id=product_id)

    if result is None:
        return WebhookResponse(status="not_found", product_id=product_id)

    return WebhookResponse(
        status="audited",
        product_id=product_id,
        audit_status=result.status.value,
        score=result.score,
    )


# =============================================================================
# PRODUCT WEBHOOKS
# =============================================================================

@router.post("/products/create", response_model=WebhookResponse)
async def product_created(
    request: Request,
    db: Session = Depends(get_db),
    catalog_factory: Callable[[ShopDB], CatalogClient] = Depends(get_catalog_factory),
):
    return await handle_product_webhook(
        "products/create", lambda shop: bool(shop.auto_run_on_create), request, db, catalog_factory,
    )


@router.post("/products/update", response_model=WebhookResponse)
async def product_updated(
    request: Request,
    db: Session = Depends(get_db),
    catalog_factory: Callable[[ShopDB], CatalogClient] = Depends(get_catalog_factory),
):
    return await handle_product_webhook(
        "products/update", lambda shop: bool(shop.auto_run_on_update), request, db, catalog_factory,
    )
