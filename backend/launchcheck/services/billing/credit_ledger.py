"""
Launch Checklist Engine - AI Credit Ledger

Gates and accounts for AI-consuming operations per shop.

Contract:
- gate() is side-effect-free. It may be called any number of times.
- consume() is called only after an AI operation has visibly succeeded,
  at most once per operation. It never decreases a counter.
- The monthly reset is detected lazily: gate() reports post-reset values
  without writing, the next consume() writes the reset.

Known race: gate() and consume() are separate reads/writes. Concurrent
items for the same shop can each pass the gate on the last credit and
consume past the nominal limit. This is accepted; consume() clamps
nothing and never raises for it.
"""
import logging
import math
import os
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Callable, Optional, Protocol, Tuple

from dateutil.relativedelta import relativedelta
from sqlalchemy.orm import Session

from ...models.db_models import ShopDB
from ...models.domain import CreditCounters, DenialReason, GateDecision
from .plans import PLAN_CONFIG, Plan, resolve_plan

logger = logging.getLogger(__name__)

# "unlimited" or an integer limit, for testing credits in production
AI_CREDITS_OVERRIDE = os.getenv("AI_CREDITS_OVERRIDE")

LOCKED_MESSAGE = "AI features require Pro plan"


class CreditLedger(Protocol):
    def gate(self, shop_id: str) -> GateDecision:
        ...

    def consume(self, shop_id: str) -> CreditCounters:
        ...


@dataclass(frozen=True)
class CreditStatus:
    plan: Plan
    allowed: bool
    in_trial: bool
    is_dev_store: bool
    has_own_key: bool
    counters: CreditCounters


def next_month_reset(now: datetime) -> datetime:
    """First instant of the month after `now`."""
    return (now + relativedelta(months=1)).replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def is_in_trial(shop: ShopDB, now: datetime) -> bool:
    return shop.trial_ends_at is not None and now < shop.trial_ends_at


def parse_override(raw: Optional[str]) -> Optional[float]:
    """math.inf for "unlimited", an int limit, or None when unset/unusable."""
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in ("unlimited", "infinity"):
        return math.inf
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring unusable AI_CREDITS_OVERRIDE={raw!r}")
        return None


class DatabaseCreditLedger:
    """Credit ledger backed by counters on the `shops` row."""

    def __init__(
        self,
        db: Session,
        override: Optional[str] = AI_CREDITS_OVERRIDE,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.db = db
        self.override = parse_override(override)
        self.clock = clock

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _get_shop(self, shop_id: str) -> Optional[ShopDB]:
        return self.db.query(ShopDB).filter(ShopDB.id == shop_id).first()

    def _limit(self, shop: ShopDB, now: datetime) -> float:
        if self.override is not None:
            return self.override
        config = PLAN_CONFIG[resolve_plan(shop.plan)]
        return config["trial_ai_credits"] if is_in_trial(shop, now) else config["ai_credits"]

    def _reset_due(self, shop: ShopDB, now: datetime) -> bool:
        return shop.ai_credits_reset_at is not None and now > shop.ai_credits_reset_at

    def _effective_counters(self, shop: ShopDB, now: datetime) -> Tuple[int, int]:
        """(app credits used, own-key credits used) as of `now`, after any due reset."""
        if self._reset_due(shop, now):
            return 0, 0
        return shop.ai_credits_used or 0, shop.own_key_credits_used or 0

    def _ai_enabled(self, shop: ShopDB) -> bool:
        if self.override == math.inf:
            return True
        return bool(PLAN_CONFIG[resolve_plan(shop.plan)]["ai_generation"])

    # =========================================================================
    # CONTRACT
    # =========================================================================

    def gate(self, shop_id: str) -> GateDecision:
        """Is an AI operation allowed for this shop right now?"""
        shop = self._get_shop(shop_id)
        if shop is None:
            return GateDecision(allowed=False, reason=DenialReason.LOCKED, message="Shop not found")

        if self.override == math.inf or shop.is_dev_store:
            return GateDecision(allowed=True, credits_remaining=math.inf, credits_limit=math.inf)

        if not self._ai_enabled(shop):
            logger.info(f"AI gate locked for {shop.shop_domain} (plan={shop.plan})")
            return GateDecision(allowed=False, reason=DenialReason.LOCKED, message=LOCKED_MESSAGE)

        now = self.clock()
        limit = self._limit(shop, now)
        used, _ = self._effective_counters(shop, now)
        remaining = max(0, limit - used)

        if remaining > 0:
            return GateDecision(allowed=True, credits_remaining=remaining, credits_limit=limit)

        if shop.openai_api_key:
            return GateDecision(
                allowed=True,
                credits_remaining=0,
                credits_limit=limit,
                using_fallback_key=True,
            )

        logger.info(f"AI gate exhausted for {shop.shop_domain} ({used}/{limit})")
        return GateDecision(
            allowed=False,
            reason=DenialReason.EXHAUSTED,
            message=(
                f"AI credit limit reached ({used}/{limit}). "
                "Add your own OpenAI API key for unlimited access."
            ),
            credits_remaining=0,
            credits_limit=limit,
        )

    def consume(self, shop_id: str) -> CreditCounters:
        """
        Record one successful AI operation.

        App credits are consumed first, then the shop's own-key counter.
        Dev stores and locked plans are never charged.
        """
        shop = self._get_shop(shop_id)
        if shop is None:
            raise ValueError(f"Shop {shop_id} not found")

        now = self.clock()
        if self._reset_due(shop, now):
            logger.info(f"Resetting AI credits for {shop.shop_domain}")
            shop.ai_credits_used = 0
            shop.own_key_credits_used = 0
            shop.ai_credits_reset_at = next_month_reset(now)

        if shop.is_dev_store or not self._ai_enabled(shop):
            self.db.commit()
            return self._counters(shop, now)

        limit = self._limit(shop, now)
        used_fallback = False
        if (shop.ai_credits_used or 0) < limit:
            shop.ai_credits_used = (shop.ai_credits_used or 0) + 1
            if shop.ai_credits_reset_at is None:
                shop.ai_credits_reset_at = next_month_reset(now)
        elif shop.openai_api_key:
            shop.own_key_credits_used = (shop.own_key_credits_used or 0) + 1
            used_fallback = True
        else:
            # gate/consume race: another item took the last credit
            shop.ai_credits_used = (shop.ai_credits_used or 0) + 1
            logger.warning(f"AI credits for {shop.shop_domain} consumed past limit {limit}")

        self.db.commit()
        counters = self._counters(shop, now)
        if used_fallback:
            counters = replace(counters, using_fallback_key=True)
        return counters

    def credit_status(self, shop_id: str) -> Optional[CreditStatus]:
        shop = self._get_shop(shop_id)
        if shop is None:
            return None
        now = self.clock()
        decision = self.gate(shop_id)
        counters = self._counters(shop, now)
        return CreditStatus(
            plan=resolve_plan(shop.plan),
            allowed=decision.allowed,
            in_trial=is_in_trial(shop, now),
            is_dev_store=bool(shop.is_dev_store),
            has_own_key=bool(shop.openai_api_key),
            counters=replace(counters, using_fallback_key=decision.using_fallback_key),
        )

    def _counters(self, shop: ShopDB, now: datetime) -> CreditCounters:
        used, fallback_used = self._effective_counters(shop, now)
        if shop.is_dev_store or self.override == math.inf:
            limit: float = math.inf
        elif not self._ai_enabled(shop):
            limit = 0
        else:
            limit = self._limit(shop, now)
        reset_at = shop.ai_credits_reset_at
        if self._reset_due(shop, now):
            reset_at = next_month_reset(now)
        return CreditCounters(
            consumed=used,
            fallback_consumed=fallback_used,
            limit=limit,
            remaining=max(0, limit - used),
            reset_at=reset_at,
        )
