"""
Launch Checklist Engine - Shop API Router

Checklist configuration, remediation defaults and AI credit status.
"""
import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_shop
from ..database import get_db
from ..dependencies import get_ledger
from ..models.db_models import ChecklistItemDB, ShopDB
from ..services.billing.credit_ledger import DatabaseCreditLedger
from ..services.checklist.repository import ChecklistRepository
from ..services.shop_service import update_settings

router = APIRouter(prefix="/shop", tags=["shop"])


# =============================================================================
# PYDANTIC MODELS FOR API
# =============================================================================

class ChecklistItemResponse(BaseModel):
    id: str
    key: str
    label: str
    description: Optional[str] = None
    config: Dict[str, Any] = {}
    weight: int
    fix_type: str
    target_field: Optional[str] = None
    is_enabled: bool
    position: int


class ChecklistItemUpdate(BaseModel):
    is_enabled: Optional[bool] = None
    weight: Optional[int] = None


class SettingsUpdate(BaseModel):
    default_tags: Optional[List[str]] = None
    default_collection_id: Optional[str] = None
    openai_api_key: Optional[str] = None
    auto_run_on_create: Optional[bool] = None
    auto_run_on_update: Optional[bool] = None


class SettingsResponse(BaseModel):
    shop_domain: str
    plan: str
    default_tags: List[str] = []
    default_collection_id: Optional[str] = None
    has_openai_api_key: bool
    auto_run_on_create: bool = True
    auto_run_on_update: bool = True


class CreditsResponse(BaseModel):
    plan: str
    ai_allowed: bool
    in_trial: bool
    is_dev_store: bool
    has_own_key: bool
    using_fallback_key: bool
    credits_used: int
    own_key_credits_used: int
    credits_limit: Optional[int] = None  # None means unlimited
    credits_remaining: Optional[int] = None
    reset_at: Optional[datetime] = None


def item_to_response(item: ChecklistItemDB) -> ChecklistItemResponse:
    try:
        config = json.loads(item.config_json or "{}")
    except ValueError:
        config = {}
    return ChecklistItemResponse(
        id=item.id,
        key=item.key,
        label=item.label,
        description=item.description,
        config=config if isinstance(config, dict) else {},
        weight=item.weight,
        fix_type=item.fix_type.value,
        target_field=item.target_field,
        is_enabled=item.is_enabled,
        position=item.position,
    )


def settings_to_response(shop: ShopDB) -> SettingsResponse:
    return SettingsResponse(
        shop_domain=shop.shop_domain,
        plan=shop.plan,
        default_tags=list(shop.default_tags or []),
        default_collection_id=shop.default_collection_id,
        has_openai_api_key=bool(shop.openai_api_key),
        auto_run_on_create=bool(shop.auto_run_on_create),
        auto_run_on_update=bool(shop.auto_run_on_update),
    )


def _finite(value: float) -> Optional[int]:
    return None if value == float("inf") else int(value)


# =============================================================================
# CHECKLIST
# =============================================================================

@router.get("/checklist", response_model=List[ChecklistItemResponse])
async def get_checklist(
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    return [item_to_response(item) for item in ChecklistRepository(db).list_items(shop)]


@router.patch("/checklist/{item_id}", response_model=ChecklistItemResponse)
async def update_checklist_item(
    item_id: str,
    request: ChecklistItemUpdate,
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Enable/disable an item or change its weight."""
    try:
        item = ChecklistRepository(db).update_item(
            shop, item_id, enabled=request.is_enabled, weight=request.weight,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if item is None:
        raise HTTPException(status_code=404, detail="Checklist item not found")
    db.commit()
    return item_to_response(item)


# =============================================================================
# SETTINGS AND CREDITS
# =============================================================================

@router.get("/settings", response_model=SettingsResponse)
async def get_settings(shop: ShopDB = Depends(get_current_shop)):
    return settings_to_response(shop)


@router.patch("/settings", response_model=SettingsResponse)
async def patch_settings(
    request: SettingsUpdate,
    shop: ShopDB = Depends(get_current_shop),
    db: Session = Depends(get_db),
):
    """Fields left out of the body are unchanged; explicit nulls clear them."""
    changes = {name: getattr(request, name) for name in request.model_fields_set}
    shop = update_settings(db, shop, **changes)
    return settings_to_response(shop)


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(
    shop: ShopDB = Depends(get_current_shop),
    ledger: DatabaseCreditLedger = Depends(get_ledger),
):
    status = ledger.credit_status(shop.id)
    counters = status.counters
    return CreditsResponse(
        plan=status.plan.value,
        ai_allowed=status.allowed,
        in_trial=status.in_trial,
        is_dev_store=status.is_dev_store,
        has_own_key=status.has_own_key,
        using_fallback_key=counters.using_fallback_key,
        credits_used=counters.consumed,
        own_key_credits_used=counters.fallback_consumed,
        credits_limit=_finite(counters.limit),
        credits_remaining=_finite(counters.remaining),
        reset_at=counters.reset_at,
    )
