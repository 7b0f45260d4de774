"""
Launch Checklist Engine - Audits API Router

Run and read product audits. One current audit per product; running again
replaces it.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_shop
from ..database import get_db
from ..dependencies import get_audit_service
from ..models.db_models import ProductAuditDB, ShopDB
from ..models.domain import AuditStatus
from ..services.audit_service import AuditService
from ..services.audit_store import AuditStore
from ..services.catalog.shopify import to_product_gid
from ..services.remediation.strategies import available_fixes

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/audits", tags=["audits"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class AuditItemResponse(BaseModel):
    item_id: str
    rule_key: str
    label: str
    status: str
    details: Optional[str] = None
    can_auto_fix: bool
    fix_type: str
    target_field: Optional[str] = None
    weight: int


class AvailableFixResponse(BaseModel):
    rule_key: str
    label: str
    fix_type: str
    target_field: Optional[str] = None


class AuditResponse(BaseModel):
    product_id: str
    product_title: str
    product_image: Optional[str] = None
    status: str
    score: int
    passed_count: int
    failed_count: int
    total_count: int
    auto_fixable_count: int
    ai_fixable_count: int
    items: List[AuditItemResponse] = []
    available_fixes: List[AvailableFixResponse] = []
    updated_at: Optional[datetime] = None


class AuditListItem(BaseModel):
    product_id: str
    product_title: str
    status: str
    score: int
    failed_count: int
    total_count: int
    updated_at: Optional[datetime] = None


def audit_to_response(audit: ProductAuditDB) -> AuditResponse:
    return AuditResponse(
        product_id=audit.product_id,
        product_title=audit.product_title,
        product_image=audit.product_image,
        status=audit.status.value,
        score=audit.score,
        passed_count=audit.passed_count,
        failed_count=audit.failed_count,
        total_count=audit.total_count,
        auto_fixable_count=audit.auto_fixable_count,
        ai_fixable_count=audit.ai_fixable_count,
        items=[
            AuditItemResponse(
                item_id=item.item_id,
                rule_key=item.rule_key,
                label=item.label,
                status=item.status.value,
                details=item.details,
                can_auto_fix=item.can_auto_fix,
                fix_type=item.fix_type.value,
                target_field=item.target_field,
                weight=item.weight,
            )
            for item in audit.items
        ],
        available_fixes=[AvailableFixResponse(**fix) for fix in available_fixes(audit.items)],
        updated_at=audit.updated_at,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/{product_id}", response_model=AuditResponse)
async def run_audit(
    product_id: str,
    shop: ShopDB = Depends(get_current_shop),
    audit_service: AuditService = Depends(get_audit_service),
    db: Session = Depends(get_db),
):
    """Fetch the product, run the shop's checklist and store the result."""
    gid = to_product_gid(product_id)
    result = await audit_service.audit_product(gid)
    if result is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return audit_to_response(AuditStore(db).get(shop.id, gid))


@router.get("/{product_id}", response_model=AuditResponse)
async def get_audit(
    product_id: str,
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    audit = AuditStore(db).get(shop.id, to_product_gid(product_id))
    if audit is None:
        raise HTTPException(status_code=404, detail="No audit for this product")
    return audit_to_response(audit)


@router.get("", response_model=List[AuditListItem])
async def list_audits(
    status: Optional[AuditStatus] = None,
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Current audits for the shop, most recently updated first."""
    return [
        AuditListItem(
            product_id=audit.product_id,
            product_title=audit.product_title,
            status=audit.status.value,
            score=audit.score,
            failed_count=audit.failed_count,
            total_count=audit.total_count,
            updated_at=audit.updated_at,
        )
        for audit in AuditStore(db).list(shop.id, status=status)
    ]
