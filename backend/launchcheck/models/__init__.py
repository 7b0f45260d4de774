"""Launch Checklist Engine - Data Models"""
from .rule_configs import (
    RuleKey, RuleConfig, NoConfig, MinLengthConfig, MinCountConfig,
    SeoDescriptionConfig, MetafieldConfig, TagPatternConfig, parse_rule_config,
)
from .domain import (
    # Enums
    RuleStatus, FixType, AuditStatus, DenialReason, ChangeType, ProgressEventType,
    # Listing snapshot
    ListingImage, CollectionRef, Metafield, ListingSnapshot,
    # Audit
    RuleDefinition, RuleOutcome, EvaluationFault, RuleResult, AuditResult,
    # Remediation and credits
    FixOutcome, GateDecision, CreditCounters,
    # Batch
    BatchItemResult, BatchSummary, ProgressEvent,
)

__all__ = [
    "RuleKey", "RuleConfig", "NoConfig", "MinLengthConfig", "MinCountConfig",
    "SeoDescriptionConfig", "MetafieldConfig", "TagPatternConfig", "parse_rule_config",
    "RuleStatus", "FixType", "AuditStatus", "DenialReason", "ChangeType", "ProgressEventType",
    "ListingImage", "CollectionRef", "Metafield", "ListingSnapshot",
    "RuleDefinition", "RuleOutcome", "EvaluationFault", "RuleResult", "AuditResult",
    "FixOutcome", "GateDecision", "CreditCounters",
    "BatchItemResult", "BatchSummary", "ProgressEvent",
]
