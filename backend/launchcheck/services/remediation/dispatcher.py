"""
Launch Checklist Engine - Fix Dispatcher

Routes a failed checklist item to a remediation strategy and applies it:

    registry lookup -> fetch -> re-check rule -> resolve fix type
      -> pre-check (no-op?) -> gate (AI only) -> build update
      -> ONE catalog mutation -> consume (AI only) -> history -> re-audit

Every failure comes back as a FixOutcome with a message. Credits are
consumed only after the mutation succeeded. A rejected mutation is not
re-audited unless the catalog reports that some of its fields were written
before the error; those fields are logged to history like any other change.
"""
import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable, Dict, Optional, Sequence, Tuple

from ...errors import CatalogError, GenerationError, RuleConfigError
from ...models.domain import (
    AuditResult, ChangeType, EvaluationFault, FixOutcome, FixType, GateDecision, ListingSnapshot,
    RuleDefinition,
)
from ...models.rule_configs import RuleKey, parse_rule_config
from ..billing.credit_ledger import CreditLedger
from ..catalog.base import CatalogClient, ListingUpdate
from ..checklist.rules import evaluate_rule, get_rule
from ..generation.base import ContentGenerator, GenerationContext, GenerationKind, GenerationResult
from ..generation.polling import await_generation
from ..history import HistoryService
from .strategies import FixContext, RemediationStrategy, get_strategies

logger = logging.getLogger(__name__)

Auditor = Callable[[str], Awaitable[Optional[AuditResult]]]

PRODUCT_NOT_FOUND = "Product not found"


def fix_type_value(fix_type: Any) -> Optional[FixType]:
    if fix_type is None or isinstance(fix_type, FixType):
        return fix_type
    try:
        return FixType(str(fix_type).lower())
    except ValueError:
        return None


class FixDispatcher:
    """
    Applies fixes for one shop.

    Args:
        shop_id: Shop whose credits and history are used
        catalog: Catalog client for the shop
        ledger: Credit ledger (gate/consume) for AI fixes
        generator: Content generator billed to the app
        fallback_generator: Generator using the shop's own key, used when the
            ledger reports app credits are exhausted
        definitions: The shop's checklist, for rule config and fix defaults
        defaults: Shop-level fix config (default_tags, collection_id)
        history: Product history log; skipped when None
        auditor: Re-audits a listing after a successful fix
    """

    def __init__(
        self,
        shop_id: str,
        catalog: CatalogClient,
        ledger: CreditLedger,
        generator: Optional[ContentGenerator] = None,
        fallback_generator: Optional[ContentGenerator] = None,
        definitions: Sequence[RuleDefinition] = (),
        defaults: Optional[Dict[str, Any]] = None,
        history: Optional[HistoryService] = None,
        auditor: Optional[Auditor] = None,
    ):
        self.shop_id = shop_id
        self.catalog = catalog
        self.ledger = ledger
        self.generator = generator
        self.fallback_generator = fallback_generator
        self.definitions = list(definitions)
        self.defaults = dict(defaults or {})
        self.history = history
        self.auditor = auditor

    # =========================================================================
    # SINGLE-ITEM FIX
    # =========================================================================

    async def apply_fix(
        self,
        listing_id: str,
        rule_key: str,
        fix_config: Optional[Dict[str, Any]] = None,
        fix_type: Optional[FixType] = None,
    ) -> FixOutcome:
        """
        Fix one failed checklist item on one listing.

        Args:
            listing_id: Catalog id of the listing
            rule_key: Checklist rule key to fix
            fix_config: Caller config, merged over shop defaults (caller wins)
            fix_type: Force auto/ai instead of the resolved fix type

        Returns:
            FixOutcome; never raises for expected failures
        """
        logger.info(f"Fix requested: {rule_key} on {listing_id}")

        strategies = get_strategies(rule_key)
        if not strategies:
            return FixOutcome(success=False, message=f'No auto-fix available for "{rule_key}"', rule_key=rule_key)

        listing, error = await self._fetch(listing_id)
        if listing is None:
            return FixOutcome(success=False, message=error, rule_key=rule_key)

        definition = self._definition(rule_key)
        rule_config = self._rule_config(rule_key, definition)

        outcome = None
        rule = get_rule(rule_key)
        if rule is not None and rule_config is not None:
            outcome = evaluate_rule(rule_key, rule, listing, rule_config)
            if getattr(outcome, "passed", False):
                label = definition.label if definition else rule_key
                return FixOutcome(
                    success=True, message=f"{label} already passes", rule_key=rule_key, noop=True,
                )

        resolved = fix_type_value(fix_type) or self._resolve_fix_type(outcome, definition)
        if resolved == FixType.MANUAL:
            label = definition.label if definition else rule_key
            return FixOutcome(
                success=False,
                message=f"{label} requires manual attention",
                rule_key=rule_key,
                fix_type=FixType.MANUAL,
            )

        strategy = strategies.get(resolved)
        if strategy is None:
            return FixOutcome(
                success=False,
                message=f'No {resolved.value} fix available for "{rule_key}"',
                rule_key=rule_key,
                fix_type=resolved,
            )

        config = dict(self.defaults)
        if rule_config is not None:
            config.update(asdict(rule_config))
        config.update(fix_config or {})

        change_type = ChangeType.AI_FIX if strategy.uses_ai else ChangeType.AUTOFIX
        fix = await self.apply_strategy(listing, strategy, config, change_type)
        fix.rule_key = rule_key
        return fix

    # =========================================================================
    # STRATEGY PIPELINE (shared with bulk operations)
    # =========================================================================

    async def apply_strategy(
        self,
        listing: ListingSnapshot,
        strategy: RemediationStrategy,
        config: Dict[str, Any],
        change_type: ChangeType,
    ) -> FixOutcome:
        """Run one strategy against an already-fetched listing."""
        fix_type = strategy.fix_type

        reason = strategy.unavailable(listing, config)
        if reason:
            return FixOutcome(success=False, message=reason, fix_type=fix_type)

        noop = strategy.precheck(listing, config)
        if noop:
            return FixOutcome(success=True, message=noop, fix_type=fix_type, noop=True)

        decision: Optional[GateDecision] = None
        if strategy.uses_ai:
            decision = self.ledger.gate(self.shop_id)
            if not decision.allowed:
                return FixOutcome(
                    success=False,
                    message=decision.message or "AI features are not available",
                    fix_type=fix_type,
                    denied_reason=decision.reason,
                )

        ctx = FixContext(listing=listing, config=config, generate=self._generate_fn(decision))
        try:
            update = await strategy.build_update(ctx)
        except GenerationError as exc:
            logger.warning(f"Generation failed for {strategy.field} on {listing.id}: {exc}")
            return FixOutcome(success=False, message=str(exc), fix_type=fix_type)

        if update.is_empty():
            return FixOutcome(success=True, message=strategy.noop_message, fix_type=fix_type, noop=True)

        try:
            result = await self.catalog.mutate_listing(listing.id, update)
        except CatalogError as exc:
            return FixOutcome(success=False, message=str(exc), fix_type=fix_type)
        extra = {"fix_type": fix_type.value, "using_fallback_key": bool(decision and decision.using_fallback_key)}
        if not result.success:
            message = result.message or "Update failed"
            logger.info(f"Catalog rejected {strategy.field} fix on {listing.id}: {message}")
            if not result.applied_fields:
                return FixOutcome(success=False, message=message, fix_type=fix_type)

            # Earlier steps of the mutation went through; log them and refresh the audit
            applied = update.only(result.applied_fields)
            self._record_fix(
                listing, applied, change_type,
                f"Partially applied ({', '.join(result.applied_fields)}): {message}",
                {**extra, "partial": True},
            )
            audit = await self._reaudit(listing.id)
            return FixOutcome(success=False, message=message, fix_type=fix_type, audit=audit)

        if strategy.uses_ai:
            self._consume_credit(listing.id)

        message = strategy.describe(listing, update)
        self._record_fix(listing, update, change_type, message, extra)

        audit = await self._reaudit(listing.id)
        logger.info(f"Fix applied on {listing.id}: {message}")
        return FixOutcome(success=True, message=message, fix_type=fix_type, audit=audit)

    # =========================================================================
    # AFTER A MUTATION
    # =========================================================================
    # The catalog already changed at this point, so none of these steps may
    # turn the outcome into a failure.

    def _consume_credit(self, listing_id: str) -> None:
        try:
            self.ledger.consume(self.shop_id)
        except Exception:
            logger.error(f"Credit consumption failed after fix on {listing_id}", exc_info=True)

    def _record_fix(
        self,
        listing: ListingSnapshot,
        update: ListingUpdate,
        change_type: ChangeType,
        description: str,
        extra: Dict[str, Any],
    ) -> None:
        if self.history is None:
            return
        try:
            self.history.record_fix(listing, update, change_type, description=description, extra=extra)
        except Exception:
            logger.error(f"Could not record history for {listing.id}", exc_info=True)

    async def _reaudit(self, listing_id: str) -> Optional[AuditResult]:
        if self.auditor is None:
            return None
        try:
            return await self.auditor(listing_id)
        except Exception:
            logger.error(f"Re-audit failed after fix on {listing_id}", exc_info=True)
            return None

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def fetch_listing(self, listing_id: str) -> Tuple[Optional[ListingSnapshot], Optional[str]]:
        return await self._fetch(listing_id)

    async def _fetch(self, listing_id: str) -> Tuple[Optional[ListingSnapshot], Optional[str]]:
        try:
            listing = await self.catalog.fetch_listing(listing_id)
        except CatalogError as exc:
            return None, str(exc)
        if listing is None:
            return None, PRODUCT_NOT_FOUND
        return listing, None

    def _definition(self, rule_key: str) -> Optional[RuleDefinition]:
        for definition in self.definitions:
            if definition.key == rule_key:
                return definition
        return None

    def _rule_config(self, rule_key: str, definition: Optional[RuleDefinition]):
        if definition is not None and definition.config is not None:
            return definition.config
        if definition is not None and definition.config_error:
            return None
        key = RuleKey.lookup(rule_key)
        try:
            return parse_rule_config(key, None) if key is not None else None
        except RuleConfigError:
            return None

    def _resolve_fix_type(self, outcome, definition: Optional[RuleDefinition]) -> FixType:
        # A rule that raised is attributed to a human, same as in the audit
        if isinstance(outcome, EvaluationFault):
            return FixType.MANUAL
        outcome_type = getattr(outcome, "fix_type", None)
        if outcome_type is not None:
            return outcome_type
        if definition is not None and definition.fix_type is not None:
            return definition.fix_type
        return FixType.MANUAL

    def _generate_fn(self, decision: Optional[GateDecision]):
        generator = self.generator
        if decision is not None and decision.using_fallback_key and self.fallback_generator is not None:
            generator = self.fallback_generator
        if generator is None:
            return None

        async def generate(kind: GenerationKind, context: GenerationContext) -> GenerationResult:
            return await await_generation(generator, kind, context)

        return generate
