"""Launch Checklist Engine - Bulk batch processing"""
from .operations import (
    BatchOperation, build_item_handler, is_ai_operation, parse_operation, runs_sequentially, validate_fields,
)
from .pacing import RateLimiter
from .processor import BatchProcessor

__all__ = [
    "BatchOperation",
    "build_item_handler",
    "is_ai_operation",
    "parse_operation",
    "runs_sequentially",
    "validate_fields",
    "RateLimiter",
    "BatchProcessor",
]
