"""Launch Checklist Engine - Checklist Rules and Audit Engine

Rules are pure checks; the engine is the only place results are counted
and scored.
"""
from .engine import AuditEngine, compute_weighted_score, run_checklist
from .repository import ChecklistRepository, to_definition
from .rules import RULES, evaluate_rule, get_rule, plain_text
from .templates import DEFAULT_CHECKLIST_ITEMS, ChecklistItemTemplate

__all__ = [
    "AuditEngine",
    "compute_weighted_score",
    "run_checklist",
    "ChecklistRepository",
    "to_definition",
    "RULES",
    "evaluate_rule",
    "get_rule",
    "plain_text",
    "DEFAULT_CHECKLIST_ITEMS",
    "ChecklistItemTemplate",
]
