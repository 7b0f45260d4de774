"""Launch Checklist Engine - Plans and AI credit ledger"""
from .credit_ledger import (
    CreditLedger, CreditStatus, DatabaseCreditLedger, is_in_trial, next_month_reset, parse_override,
)
from .plans import PLAN_CONFIG, Plan, bulk_limit_for, resolve_plan

__all__ = [
    "CreditLedger",
    "CreditStatus",
    "DatabaseCreditLedger",
    "is_in_trial",
    "next_month_reset",
    "parse_override",
    "PLAN_CONFIG",
    "Plan",
    "bulk_limit_for",
    "resolve_plan",
]
