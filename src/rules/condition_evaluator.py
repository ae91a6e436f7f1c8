"""
Condition evaluator for single metric comparisons.

Every failure mode (missing metric, unparseable threshold, missing or zero
baseline) resolves to "not satisfied" so that an unmeasured condition never
triggers an action.
"""

import math
import operator
from collections.abc import Callable, Mapping
from typing import Any

import structlog

from src.rules.models import ComparisonOperator, RuleCondition

logger = structlog.get_logger(__name__)

COMPARATORS: dict[ComparisonOperator, Callable[[float, float], bool]] = {
    ComparisonOperator.LT: operator.lt,
    ComparisonOperator.GT: operator.gt,
    ComparisonOperator.LE: operator.le,
    ComparisonOperator.GE: operator.ge,
    ComparisonOperator.EQ: operator.eq,
    ComparisonOperator.NE: operator.ne,
}


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def percent_change(current: float, previous: float | None) -> float | None:
    """Relative change from previous to current in percent, or None without a usable baseline."""
    if previous is None or previous == 0:
        return None
    return (current - previous) / previous * 100


class ConditionEvaluator:
    """
    Evaluates one condition against a metric snapshot.

    Pure: no state, no I/O. The metadata returned next to the boolean is only
    used for explanation and logging.
    """

    def evaluate(
        self,
        condition: RuleCondition,
        snapshot: Mapping[str, Any],
        previous_value: Any = None,
    ) -> tuple[bool, dict[str, Any]]:
        """
        Evaluate a condition.

        Args:
            condition: The condition to check
            snapshot: Current metric values
            previous_value: Baseline for ``changed_by``; ignored by other operators

        Returns:
            Tuple of (satisfied, metadata)
        """
        metadata: dict[str, Any] = {"metric": condition.metric, "operator": condition.operator.value}

        if condition.metric not in snapshot:
            logger.debug("Metric missing from snapshot", metric=condition.metric)
            metadata["reason"] = "metric_missing"
            return False, metadata

        current = _as_number(snapshot[condition.metric])
        if current is None:
            logger.debug("Metric is not numeric", metric=condition.metric, value=snapshot[condition.metric])
            metadata["reason"] = "metric_not_numeric"
            return False, metadata
        metadata["current"] = current

        threshold = condition.numeric_threshold()
        if threshold is None:
            logger.debug("Threshold could not be parsed", metric=condition.metric, raw=condition.threshold_string)
            metadata["reason"] = "invalid_threshold"
            return False, metadata
        metadata["threshold"] = threshold

        if condition.operator == ComparisonOperator.CHANGED_BY:
            previous = _as_number(previous_value)
            metadata["previous"] = previous
            change = percent_change(current, previous)
            if change is None:
                metadata["reason"] = "no_baseline"
                return False, metadata
            metadata["percent_change"] = change
            # A zero threshold means "any nonzero change".
            result = change != 0 and abs(change) >= threshold
        else:
            result = COMPARATORS[condition.operator](current, threshold)

        metadata["result"] = result
        return result, metadata


_default_evaluator = ConditionEvaluator()


def evaluate_condition(
    condition: RuleCondition,
    snapshot: Mapping[str, Any],
    previous_value: Any = None,
) -> bool:
    """Return whether ``condition`` holds for ``snapshot``."""
    satisfied, _ = _default_evaluator.evaluate(condition, snapshot, previous_value)
    return satisfied
