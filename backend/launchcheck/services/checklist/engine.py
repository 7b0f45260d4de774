"""
Launch Checklist Engine - Audit Engine

Runs a shop's enabled checklist items against one listing snapshot and
produces the AuditResult. This is the ONLY place rule results are resolved,
counted and scored.
"""
from __future__ import annotations
import logging
import math
from typing import Iterable, List, Optional, Sequence, Union

from ...errors import RuleConfigError
from ...models.domain import (
    AuditResult, AuditStatus, EvaluationFault, FixType, ListingSnapshot, RuleDefinition,
    RuleOutcome, RuleResult, RuleStatus,
)
from ...models.rule_configs import RuleConfig, parse_rule_config
from .rules import evaluate_rule, get_rule

logger = logging.getLogger(__name__)


def compute_weighted_score(results: Iterable[RuleResult]) -> int:
    """
    Percentage of total weight carried by passing results, rounded half up.

    An empty checklist scores 100. A checklist with any failure never rounds
    up to 100.
    """
    total_weight = 0
    passed_weight = 0
    for result in results:
        total_weight += result.weight
        if result.passed:
            passed_weight += result.weight

    if total_weight == 0:
        return 100

    score = math.floor(100 * passed_weight / total_weight + 0.5)
    if passed_weight < total_weight:
        score = min(score, 99)
    return max(0, min(100, score))


class AuditEngine:
    """
    Evaluates checklist items in position order.

    Items are independent: each is evaluated exactly once and no item can
    see another item's result. Unknown keys and unusable configuration are
    skipped with a warning; a rule that raises becomes a failed result.
    """

    def run_checklist(
        self,
        listing: ListingSnapshot,
        definitions: Sequence[RuleDefinition],
    ) -> AuditResult:
        """
        Args:
            listing: Snapshot fetched for this audit pass
            definitions: The shop's checklist items, enabled or not

        Returns:
            AuditResult with items in position order
        """
        enabled = sorted(
            (d for d in definitions if d.enabled),
            key=lambda d: d.position,
        )

        results: List[RuleResult] = []
        for definition in enabled:
            result = self._evaluate_definition(listing, definition)
            if result is not None:
                results.append(result)

        return self._aggregate(listing.id, results)

    def _evaluate_definition(
        self,
        listing: ListingSnapshot,
        definition: RuleDefinition,
    ) -> Optional[RuleResult]:
        rule = get_rule(definition.key)
        if rule is None:
            logger.warning(f"Unknown rule key '{definition.key}' on checklist item {definition.id}, skipping")
            return None

        config = self._resolve_config(definition)
        if config is None:
            return None

        outcome = evaluate_rule(definition.key, rule, listing, config)
        return self._to_result(definition, outcome)

    def _resolve_config(self, definition: RuleDefinition) -> Optional[RuleConfig]:
        if definition.config_error:
            logger.warning(
                f"Checklist item {definition.id} ({definition.key}) has unusable config, "
                f"skipping: {definition.config_error}"
            )
            return None
        if definition.config is not None:
            return definition.config

        try:
            return parse_rule_config(definition.rule_key, None)
        except RuleConfigError as exc:
            logger.warning(f"Checklist item {definition.id} has no usable default config, skipping: {exc}")
            return None

    def _to_result(
        self,
        definition: RuleDefinition,
        outcome: Union[RuleOutcome, EvaluationFault],
    ) -> RuleResult:
        if isinstance(outcome, EvaluationFault):
            return RuleResult(
                definition_id=definition.id,
                rule_key=definition.key,
                label=definition.label,
                status=RuleStatus.FAILED,
                weight=definition.weight,
                details=f"Error evaluating rule: {outcome.error}",
                can_auto_fix=False,
                fix_type=FixType.MANUAL,
                target_field=definition.target_field,
            )

        return RuleResult(
            definition_id=definition.id,
            rule_key=definition.key,
            label=definition.label,
            status=outcome.status,
            weight=definition.weight,
            details=outcome.details,
            can_auto_fix=outcome.can_auto_fix,
            fix_type=outcome.fix_type or definition.fix_type or FixType.MANUAL,
            target_field=outcome.target_field or definition.target_field,
        )

    def _aggregate(self, listing_id: str, results: List[RuleResult]) -> AuditResult:
        passed = sum(1 for r in results if r.passed)
        failed = len(results) - passed
        auto_fixable = sum(
            1 for r in results
            if not r.passed and r.can_auto_fix and r.fix_type == FixType.AUTO
        )
        ai_fixable = sum(
            1 for r in results
            if not r.passed and r.can_auto_fix and r.fix_type == FixType.AI
        )

        return AuditResult(
            listing_id=listing_id,
            items=tuple(results),
            passed_count=passed,
            failed_count=failed,
            auto_fixable_count=auto_fixable,
            ai_fixable_count=ai_fixable,
            total_count=len(results),
            status=AuditStatus.READY if failed == 0 else AuditStatus.INCOMPLETE,
            score=compute_weighted_score(results),
        )


# =============================================================================
# FACTORY FUNCTION
# =============================================================================

def run_checklist(listing: ListingSnapshot, definitions: Sequence[RuleDefinition]) -> AuditResult:
    """Audit one listing against a checklist."""
    return AuditEngine().run_checklist(listing, definitions)
