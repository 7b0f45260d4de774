"""
Launch Checklist Engine - Plan Configuration
"""
from enum import Enum
from typing import Any, Dict


class Plan(str, Enum):
    FREE = "free"
    STARTER = "starter"
    PRO = "pro"


PLAN_CONFIG: Dict[Plan, Dict[str, Any]] = {
    Plan.FREE: {
        "name": "Free",
        "ai_generation": False,
        "ai_credits": 0,
        "trial_ai_credits": 0,
        "bulk_limit": 10,
    },
    Plan.STARTER: {
        "name": "Starter",
        "ai_generation": False,
        "ai_credits": 0,
        "trial_ai_credits": 0,
        "bulk_limit": 100,
    },
    Plan.PRO: {
        "name": "Pro",
        "ai_generation": True,
        "ai_credits": 100,  # per month
        "trial_ai_credits": 15,
        "bulk_limit": 100,
    },
}


def resolve_plan(raw: str) -> Plan:
    """Unknown or missing plan names fall back to Free."""
    try:
        return Plan((raw or "").lower())
    except ValueError:
        return Plan.FREE


def bulk_limit_for(raw_plan: str) -> int:
    return PLAN_CONFIG[resolve_plan(raw_plan)]["bulk_limit"]
