"""
Launch Checklist Engine - Products API Router

Single-product fixes and the product change history (with revert).
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_shop
from ..database import get_db
from ..dependencies import get_audit_service, get_catalog, get_dispatcher
from ..errors import CatalogError
from ..models.db_models import ShopDB
from ..models.domain import AuditResult, ChangeType, FixType
from ..services.audit_service import AuditService
from ..services.catalog.base import CatalogClient
from ..services.catalog.shopify import to_product_gid
from ..services.history import HistoryService
from ..services.remediation.dispatcher import PRODUCT_NOT_FOUND, FixDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class FixRequest(BaseModel):
    rule_key: str
    fix_type: Optional[FixType] = None
    config: Dict[str, Any] = {}


class AuditSummary(BaseModel):
    status: str
    score: int
    passed_count: int
    failed_count: int
    total_count: int


class FixResponse(BaseModel):
    success: bool
    message: str
    rule_key: Optional[str] = None
    fix_type: Optional[str] = None
    noop: bool = False
    audit: Optional[AuditSummary] = None


class HistoryEntryResponse(BaseModel):
    id: str
    change_type: str
    changed_field: Optional[str] = None
    previous_value: Any = None
    new_value: Any = None
    description: Optional[str] = None
    score: Optional[int] = None
    created_at: datetime


class RevertResponse(BaseModel):
    success: bool
    message: str
    audit: Optional[AuditSummary] = None


def audit_summary(result: Optional[AuditResult]) -> Optional[AuditSummary]:
    if result is None:
        return None
    return AuditSummary(
        status=result.status.value,
        score=result.score,
        passed_count=result.passed_count,
        failed_count=result.failed_count,
        total_count=result.total_count,
    )


# =============================================================================
# FIXES
# =============================================================================

@router.post("/{product_id}/fixes", response_model=FixResponse)
async def apply_fix(
    product_id: str,
    request: FixRequest,
    dispatcher: FixDispatcher = Depends(get_dispatcher),
    db: Session = Depends(get_db),
):
    """
    Fix one failed checklist item. Failures are reported in the body;
    policy denials are 403 and unknown products 404.
    """
    outcome = await dispatcher.apply_fix(
        to_product_gid(product_id),
        request.rule_key,
        fix_config=request.config,
        fix_type=request.fix_type,
    )
    db.commit()

    if not outcome.success and outcome.message == PRODUCT_NOT_FOUND:
        raise HTTPException(status_code=404, detail=PRODUCT_NOT_FOUND)
    if outcome.denied_reason is not None:
        raise HTTPException(
            status_code=403,
            detail={"message": outcome.message, "reason": outcome.denied_reason.value},
        )

    return FixResponse(
        success=outcome.success,
        message=outcome.message,
        rule_key=outcome.rule_key,
        fix_type=outcome.fix_type.value if outcome.fix_type else None,
        noop=outcome.noop,
        audit=audit_summary(outcome.audit),
    )


# =============================================================================
# HISTORY
# =============================================================================

@router.get("/{product_id}/history", response_model=List[HistoryEntryResponse])
async def get_history(
    product_id: str,
    limit: int = 50,
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    entries = HistoryService(db, shop.id).list_for_product(to_product_gid(product_id), limit=limit)
    return [
        HistoryEntryResponse(
            id=entry.id,
            change_type=entry.change_type.value,
            changed_field=entry.changed_field,
            previous_value=entry.previous_value,
            new_value=entry.new_value,
            description=entry.description,
            score=entry.score,
            created_at=entry.created_at,
        )
        for entry in entries
    ]


@router.post("/{product_id}/history/{entry_id}/revert", response_model=RevertResponse)
async def revert_change(
    product_id: str,
    entry_id: str,
    shop: ShopDB = Depends(get_current_shop),
    catalog: CatalogClient = Depends(get_catalog),
    audit_service: AuditService = Depends(get_audit_service),
    db: Session = Depends(get_db),
):
    """Restore the previous value recorded on a history entry."""
    gid = to_product_gid(product_id)
    history = HistoryService(db, shop.id)

    entry = history.get_entry(entry_id)
    if entry is None or entry.product_id != gid:
        raise HTTPException(status_code=404, detail="History entry not found")

    try:
        update = history.build_revert_update(entry)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    try:
        listing = await catalog.fetch_listing(gid)
        if listing is None:
            raise HTTPException(status_code=404, detail=PRODUCT_NOT_FOUND)
        result = await catalog.mutate_listing(gid, update)
    except CatalogError as e:
        return RevertResponse(success=False, message=str(e))

    if not result.success:
        return RevertResponse(success=False, message=result.message or "Update failed")

    history.record_fix(
        listing, update, ChangeType.REVERT,
        description=f"Reverted {entry.changed_field}",
        extra={"reverted_entry_id": entry.id},
    )
    db.commit()
    logger.info(f"Reverted {entry.changed_field} on {gid} from entry {entry.id}")

    # Audit the listing as it is now, not the snapshot taken before the revert
    try:
        audit = await audit_service.audit_product(gid)
    except CatalogError as e:
        logger.warning(f"Re-audit after revert failed for {gid}: {e}")
        audit = None
    return RevertResponse(success=True, message=f"Reverted {entry.changed_field}", audit=audit_summary(audit))
