"""
Rule evaluation: cooldown suppression plus AND/OR combination of conditions.
"""

from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import Any

import structlog

from src.rules.condition_evaluator import ConditionEvaluator
from src.rules.models import (
    ConditionResult,
    LogicOperator,
    Rule,
    RuleEvaluation,
    SkipReason,
    ensure_utc,
)

logger = structlog.get_logger(__name__)


def in_cooldown(rule: Rule, now: datetime) -> bool:
    """
    True while the rule may not fire again.

    Measured from the last firing. A never-fired rule has no cooldown, and a
    ``now`` earlier than the last firing (clock skew) counts as cooldown.
    """
    if rule.last_triggered_at is None:
        return False
    elapsed = ensure_utc(now) - ensure_utc(rule.last_triggered_at)
    if elapsed < timedelta(0):
        return True
    return elapsed < timedelta(minutes=rule.cooldown_minutes)


def combine(results: list[bool], logic_operator: LogicOperator) -> bool:
    """Combine condition outcomes. With one condition the operator is ignored."""
    if len(results) == 1:
        return results[0]
    if logic_operator == LogicOperator.OR:
        return any(results)
    return all(results)


class RuleEvaluator:
    """
    Decides whether a rule fires at a given tick.

    Pure function of its inputs: dispatching and committing
    ``trigger_count``/``last_triggered_at`` belong to the caller.
    """

    def __init__(self, condition_evaluator: ConditionEvaluator | None = None):
        self.condition_evaluator = condition_evaluator or ConditionEvaluator()

    def evaluate(
        self,
        rule: Rule,
        snapshot: Mapping[str, Any],
        now: datetime,
        previous_snapshot: Mapping[str, Any] | None = None,
    ) -> RuleEvaluation:
        """
        Evaluate a rule against a snapshot.

        Args:
            rule: Rule to evaluate
            snapshot: Current metric values
            now: Evaluation instant
            previous_snapshot: Prior values, used as the baseline of ``changed_by`` conditions

        Returns:
            A fired evaluation, or a skipped one carrying the reason
        """
        if not rule.is_active:
            return RuleEvaluation.skipped(rule.id, SkipReason.INACTIVE, now)

        if in_cooldown(rule, now):
            return RuleEvaluation.skipped(rule.id, SkipReason.COOLDOWN, now)

        if not rule.conditions:
            logger.warning("Rule has no conditions", rule_id=rule.id)
            return RuleEvaluation.skipped(rule.id, SkipReason.NO_CONDITIONS, now)

        previous_snapshot = previous_snapshot or {}
        results: list[bool] = []
        details: list[ConditionResult] = []
        for condition in rule.conditions:
            satisfied, metadata = self.condition_evaluator.evaluate(
                condition, snapshot, previous_snapshot.get(condition.metric)
            )
            results.append(satisfied)
            details.append(ConditionResult(condition=condition.describe(), satisfied=satisfied, details=metadata))

        if combine(results, rule.logic_operator):
            logger.debug("Rule fired", rule_id=rule.id, results=results)
            return RuleEvaluation.fired(rule.id, now, details)

        return RuleEvaluation.skipped(rule.id, SkipReason.CONDITIONS_NOT_MET, now, details)


_default_evaluator = RuleEvaluator()


def evaluate_rule(
    rule: Rule,
    snapshot: Mapping[str, Any],
    now: datetime,
    previous_snapshot: Mapping[str, Any] | None = None,
) -> RuleEvaluation:
    """Evaluate ``rule`` with the shared evaluator."""
    return _default_evaluator.evaluate(rule, snapshot, now, previous_snapshot)
