"""
Applies the rule evaluator to a whole rule set for one snapshot tick.
"""

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

import structlog

from src.rules.evaluator import RuleEvaluator
from src.rules.models import Rule, RuleEvaluation, SkipReason

logger = structlog.get_logger(__name__)


def priority_order(rules: Iterable[Rule]) -> list[Rule]:
    """Descending priority, ties broken by id ascending."""
    return sorted(rules, key=lambda rule: (-rule.priority, rule.id))


def evaluate_all(
    rules: Iterable[Rule],
    snapshot: Mapping[str, Any],
    now: datetime,
    previous_snapshot: Mapping[str, Any] | None = None,
    evaluator: RuleEvaluator | None = None,
) -> list[tuple[Rule, RuleEvaluation]]:
    """
    Evaluate every rule in priority order, fired or not.

    A rule whose evaluation raises is logged and reported as skipped with
    reason ``error``; the rest of the batch still runs.
    """
    evaluator = evaluator or RuleEvaluator()
    outcomes: list[tuple[Rule, RuleEvaluation]] = []
    for rule in priority_order(rules):
        try:
            evaluation = evaluator.evaluate(rule, snapshot, now, previous_snapshot)
        except Exception as e:
            logger.error("Error evaluating rule", rule_id=rule.id, error=str(e), exc_info=True)
            evaluation = RuleEvaluation.skipped(rule.id, SkipReason.ERROR, now)
        outcomes.append((rule, evaluation))
    return outcomes


def scan_rules(
    rules: Iterable[Rule],
    snapshot: Mapping[str, Any],
    now: datetime,
    previous_snapshot: Mapping[str, Any] | None = None,
    evaluator: RuleEvaluator | None = None,
) -> list[tuple[Rule, RuleEvaluation]]:
    """
    Return the rules that fire for this tick, in priority order.

    Rules fire independently: the scan never stops at the first firing and
    never mutates a rule.
    """
    fired = [
        (rule, evaluation)
        for rule, evaluation in evaluate_all(rules, snapshot, now, previous_snapshot, evaluator)
        if evaluation.is_fired
    ]
    logger.debug("Scan complete", fired=[rule.id for rule, _ in fired])
    return fired
