"""
Launch Checklist Engine - Domain Models

Listing snapshots are read-only inputs. Audit results are produced only by
the audit engine and are superseded, never merged, by the next audit run.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .rule_configs import RuleConfig, RuleKey


# =============================================================================
# ENUMS
# =============================================================================

class RuleStatus(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class FixType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"
    AI = "ai"


class AuditStatus(str, Enum):
    READY = "ready"
    INCOMPLETE = "incomplete"


class DenialReason(str, Enum):
    """Why the credit ledger refused an AI operation."""
    LOCKED = "locked"
    EXHAUSTED = "exhausted"


class ChangeType(str, Enum):
    AUDIT = "audit"
    AUTOFIX = "autofix"
    AI_FIX = "ai_fix"
    BULK_FIX = "bulk_fix"
    REVERT = "revert"


class ProgressEventType(str, Enum):
    START = "start"
    PROCESSING = "processing"
    PROGRESS = "progress"
    COMPLETE = "complete"


# =============================================================================
# LISTING SNAPSHOT (read-only input)
# =============================================================================

@dataclass(frozen=True)
class ListingImage:
    id: str
    url: Optional[str] = None
    alt_text: Optional[str] = None


@dataclass(frozen=True)
class CollectionRef:
    id: str
    title: str = ""


@dataclass(frozen=True)
class Metafield:
    namespace: str
    key: str
    value: Optional[str] = None


@dataclass(frozen=True)
class ListingSnapshot:
    """A product as fetched from the catalog for one audit pass."""
    id: str
    title: str = ""
    description_html: str = ""
    vendor: str = ""
    product_type: str = ""
    tags: Tuple[str, ...] = ()
    images: Tuple[ListingImage, ...] = ()
    seo_title: Optional[str] = None
    seo_description: Optional[str] = None
    collections: Tuple[CollectionRef, ...] = ()
    metafields: Tuple[Metafield, ...] = ()
    status: str = "ACTIVE"
    featured_image_url: Optional[str] = None

    def metafield(self, namespace: str, key: str) -> Optional[Metafield]:
        for mf in self.metafields:
            if mf.namespace == namespace and mf.key == key:
                return mf
        return None

    def has_collection(self, collection_id: str) -> bool:
        return any(c.id == collection_id for c in self.collections)


# =============================================================================
# CHECKLIST DEFINITIONS AND AUDIT OUTPUT
# =============================================================================

@dataclass(frozen=True)
class RuleDefinition:
    """
    One checklist item as configured for a shop.

    `config` is parsed once at load time. When parsing failed, `config` is
    None and `config_error` explains why; the engine skips such items.
    """
    id: str
    key: str
    label: str
    config: Optional[RuleConfig] = None
    enabled: bool = True
    weight: int = 1
    fix_type: FixType = FixType.MANUAL
    target_field: Optional[str] = None
    position: int = 0
    description: Optional[str] = None
    config_error: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.weight, bool) or not isinstance(self.weight, int) or self.weight < 1:
            raise ValueError(f"Checklist item {self.id}: weight must be a positive integer, got {self.weight!r}")

    @property
    def rule_key(self) -> Optional[RuleKey]:
        return RuleKey.lookup(self.key)


@dataclass(frozen=True)
class RuleOutcome:
    """
    A rule's own answer for one listing.

    fix_type / target_field, when set, override the checklist item's declared
    defaults for this invocation only.
    """
    status: RuleStatus
    details: Optional[str] = None
    can_auto_fix: bool = False
    fix_type: Optional[FixType] = None
    target_field: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == RuleStatus.PASSED


@dataclass(frozen=True)
class EvaluationFault:
    """A rule implementation raised instead of returning an outcome."""
    rule_key: str
    error: str


@dataclass(frozen=True)
class RuleResult:
    """RuleOutcome resolved against its RuleDefinition, tagged with the item id."""
    definition_id: str
    rule_key: str
    label: str
    status: RuleStatus
    weight: int
    details: Optional[str] = None
    can_auto_fix: bool = False
    fix_type: FixType = FixType.MANUAL
    target_field: Optional[str] = None

    @property
    def passed(self) -> bool:
        return self.status == RuleStatus.PASSED


@dataclass(frozen=True)
class AuditResult:
    """Aggregate of all enabled checklist items for one listing."""
    listing_id: str
    items: Tuple[RuleResult, ...]
    passed_count: int
    failed_count: int
    auto_fixable_count: int
    ai_fixable_count: int
    total_count: int
    status: AuditStatus
    score: int

    @property
    def is_ready(self) -> bool:
        return self.status == AuditStatus.READY

    def failed_items(self) -> List[RuleResult]:
        return [item for item in self.items if not item.passed]


# =============================================================================
# REMEDIATION
# =============================================================================

@dataclass
class FixOutcome:
    success: bool
    message: str
    rule_key: Optional[str] = None
    fix_type: Optional[FixType] = None
    noop: bool = False
    denied_reason: Optional[DenialReason] = None
    audit: Optional[AuditResult] = None


# =============================================================================
# CREDIT LEDGER BOUNDARY
# =============================================================================

@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[DenialReason] = None
    message: Optional[str] = None
    credits_remaining: Optional[float] = None
    credits_limit: Optional[float] = None
    using_fallback_key: bool = False


@dataclass(frozen=True)
class CreditCounters:
    consumed: int
    fallback_consumed: int
    limit: float
    remaining: float
    reset_at: Optional[datetime] = None
    using_fallback_key: bool = False


# =============================================================================
# BATCH PROCESSING
# =============================================================================

@dataclass(frozen=True)
class BatchItemResult:
    listing_id: str
    success: bool
    message: str
    noop: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "productId": self.listing_id,
            "success": self.success,
            "message": self.message,
            "noop": self.noop,
        }


@dataclass
class BatchSummary:
    operation: str
    total: int
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    cancelled: bool = False
    results: List[BatchItemResult] = field(default_factory=list)


@dataclass(frozen=True)
class ProgressEvent:
    type: ProgressEventType
    total: int
    listing_id: Optional[str] = None
    index: Optional[int] = None
    processed: int = 0
    success_count: int = 0
    error_count: int = 0
    summary: Optional[BatchSummary] = None

    def to_dict(self) -> Dict[str, Any]:
        """Wire shape for the progress stream."""
        if self.type == ProgressEventType.START:
            return {"type": self.type.value, "total": self.total}
        if self.type == ProgressEventType.PROCESSING:
            return {
                "type": self.type.value,
                "productId": self.listing_id,
                "index": self.index,
                "total": self.total,
            }
        if self.type == ProgressEventType.PROGRESS:
            return {
                "type": self.type.value,
                "productId": self.listing_id,
                "processed": self.processed,
                "total": self.total,
                "successCount": self.success_count,
                "errorCount": self.error_count,
            }
        summary = self.summary
        return {
            "type": self.type.value,
            "operation": summary.operation if summary else None,
            "totalProcessed": self.processed,
            "total": self.total,
            "successCount": self.success_count,
            "errorCount": self.error_count,
            "cancelled": summary.cancelled if summary else False,
            "results": [r.to_dict() for r in summary.results] if summary else [],
        }
