"""Launch Checklist Engine - Fix registry and dispatcher"""
from .dispatcher import FixDispatcher
from .strategies import FIX_STRATEGIES, FixContext, RemediationStrategy, available_fixes, get_strategies

__all__ = [
    "FixDispatcher",
    "FIX_STRATEGIES",
    "FixContext",
    "RemediationStrategy",
    "available_fixes",
    "get_strategies",
]
