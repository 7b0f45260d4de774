"""
Launch Checklist Engine - Bulk Fix API Router

Applies one operation across many products and streams progress as
server-sent events:

    data: {"type": "start", "total": 3}
    data: {"type": "processing", "productId": "...", "index": 0, "total": 3}
    data: {"type": "progress", "productId": "...", "processed": 1, ...}
    data: {"type": "complete", "results": [...], ...}
"""
import json
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import get_current_shop
from ..database import get_db
from ..dependencies import get_batch_processor, get_dispatcher, get_ledger
from ..errors import BatchValidationError
from ..models.db_models import ShopDB
from ..services.batch.operations import (
    build_item_handler, is_ai_operation, parse_operation, runs_sequentially, validate_fields,
)
from ..services.batch.processor import BatchProcessor
from ..services.billing.credit_ledger import CreditLedger
from ..services.billing.plans import bulk_limit_for
from ..services.catalog.shopify import to_product_gid
from ..services.remediation.dispatcher import FixDispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["bulk"])


class BulkFixRequest(BaseModel):
    operation: str
    product_ids: List[Any] = []
    selected_fields: Optional[List[Any]] = None
    field_options: Optional[Dict[str, Any]] = None


def sse(payload: Dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


@router.post("/bulk-fix")
async def bulk_fix(
    request: BulkFixRequest,
    shop: ShopDB = Depends(get_current_shop),
    processor: BatchProcessor = Depends(get_batch_processor),
    dispatcher: FixDispatcher = Depends(get_dispatcher),
    ledger: CreditLedger = Depends(get_ledger),
    db: Session = Depends(get_db),
):
    """
    Validate the whole request up front, then stream per-item progress.
    Malformed requests are 400; plan and credit denials are 403.
    """
    try:
        operation = parse_operation(request.operation)
        validate_fields(request.selected_fields, request.field_options)
        product_ids = processor.validate(request.product_ids)
    except BatchValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    limit = bulk_limit_for(shop.plan)
    if len(product_ids) > limit:
        raise HTTPException(
            status_code=403,
            detail={"message": f"Your plan allows {limit} products per bulk operation", "reason": "plan_limit"},
        )

    if is_ai_operation(operation):
        decision = ledger.gate(shop.id)
        if not decision.allowed:
            raise HTTPException(
                status_code=403,
                detail={"message": decision.message, "reason": decision.reason.value},
            )

    config: Dict[str, Any] = dict(dispatcher.defaults)
    config["selected_fields"] = request.selected_fields or []
    config["field_options"] = request.field_options or {}
    handler = build_item_handler(dispatcher, operation, config)
    sequential = runs_sequentially(operation, request.field_options)
    ids = [to_product_gid(pid) for pid in product_ids]

    logger.info(f"Bulk {operation.value} requested by {shop.shop_domain} for {len(ids)} products")

    async def event_stream():
        try:
            async for event in processor.run(ids, operation.value, handler, sequential=sequential):
                # History and credits for finished items persist even if the client disconnects
                db.commit()
                yield sse(event.to_dict())
        finally:
            db.close()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
