"""
Launch Checklist Engine - Bulk Operations

Maps an operation selector to the remediation strategy it applies and
builds the per-item handler the batch processor runs.
"""
import logging
from enum import Enum
from typing import Any, Dict, List, Optional

from ...errors import BatchValidationError
from ...models.domain import BatchItemResult, ChangeType
from ..remediation.dispatcher import FixDispatcher
from ..remediation.strategies import (
    GENERATE_ALL_FIELDS, IMAGE_OPTIONS, AddToCollection, ApplyDefaultTags, GenerateAll, GeneratedAltText,
    GeneratedSeoDescription, GeneratedTags, RemediationStrategy,
)
from .processor import ItemHandler

logger = logging.getLogger(__name__)


class BatchOperation(str, Enum):
    APPLY_TAGS = "apply_tags"
    APPLY_COLLECTION = "apply_collection"
    GENERATE_ALT_TEXT = "generate_alt_text"
    GENERATE_SEO_DESC = "generate_seo_desc"
    GENERATE_TAGS = "generate_tags"
    GENERATE_ALL = "generate_all"


OPERATION_STRATEGIES: Dict[BatchOperation, RemediationStrategy] = {
    BatchOperation.APPLY_TAGS: ApplyDefaultTags(),
    BatchOperation.APPLY_COLLECTION: AddToCollection(),
    BatchOperation.GENERATE_ALT_TEXT: GeneratedAltText(),
    BatchOperation.GENERATE_SEO_DESC: GeneratedSeoDescription(),
    BatchOperation.GENERATE_TAGS: GeneratedTags(),
    BatchOperation.GENERATE_ALL: GenerateAll(),
}


def parse_operation(raw: Any) -> BatchOperation:
    """
    Raises:
        BatchValidationError: unknown selector
    """
    try:
        return BatchOperation(raw)
    except ValueError:
        raise BatchValidationError(f"Unknown operation: {raw!r}")


def validate_fields(
    selected_fields: Optional[List[str]],
    field_options: Optional[Dict[str, List[str]]],
) -> None:
    """
    Raises:
        BatchValidationError: malformed selectedFields / fieldOptions
    """
    if selected_fields is not None:
        if not isinstance(selected_fields, list) or any(f not in GENERATE_ALL_FIELDS for f in selected_fields):
            raise BatchValidationError("Invalid selectedFields format")
    if field_options is not None:
        if not isinstance(field_options, dict):
            raise BatchValidationError("Invalid fieldOptions format")
        for key, options in field_options.items():
            if key != "images" or not isinstance(options, list) or any(o not in IMAGE_OPTIONS for o in options):
                raise BatchValidationError("Invalid fieldOptions format")


def is_ai_operation(operation: BatchOperation) -> bool:
    return OPERATION_STRATEGIES[operation].uses_ai


def runs_sequentially(operation: BatchOperation, field_options: Optional[Dict[str, List[str]]]) -> bool:
    """Image synthesis is slow and rate limited; those batches run one item at a time."""
    if operation != BatchOperation.GENERATE_ALL:
        return False
    return "image" in ((field_options or {}).get("images") or [])


def build_item_handler(
    dispatcher: FixDispatcher,
    operation: BatchOperation,
    config: Dict[str, Any],
) -> ItemHandler:
    """Handler that fetches one listing and applies the operation's strategy to it."""
    strategy = OPERATION_STRATEGIES[operation]

    async def handle(listing_id: str) -> BatchItemResult:
        listing, error = await dispatcher.fetch_listing(listing_id)
        if listing is None:
            return BatchItemResult(listing_id=listing_id, success=False, message=error)

        outcome = await dispatcher.apply_strategy(listing, strategy, dict(config), ChangeType.BULK_FIX)
        return BatchItemResult(
            listing_id=listing_id,
            success=outcome.success,
            message=outcome.message,
            noop=outcome.noop,
        )

    return handle
