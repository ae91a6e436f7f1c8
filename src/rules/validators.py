"""
Rule definition validation.

Applied when a rule is created or edited (API, rule file). The evaluator
never raises on a bad rule; this is where bad rules are rejected instead.
"""

from typing import Any

import structlog
from pydantic import ValidationError

from src.core.errors import RuleValidationError
from src.rules.models import Rule

logger = structlog.get_logger(__name__)


def _format_pydantic_errors(error: ValidationError) -> list[str]:
    messages = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "rule"
        messages.append(f"{location}: {item['msg']}")
    return messages


def collect_rule_errors(rule: Rule) -> list[str]:
    """Return every semantic problem with an already-parsed rule."""
    errors: list[str] = []

    if not rule.name.strip():
        errors.append("name: must not be empty")

    if not rule.conditions:
        errors.append("conditions: at least one condition is required")

    for index, condition in enumerate(rule.conditions):
        if not condition.metric.strip():
            errors.append(f"conditions.{index}.metric: must not be empty")
        if condition.numeric_threshold() is None:
            raw = condition.threshold_string if condition.threshold_string is not None else condition.threshold
            errors.append(f"conditions.{index}.threshold: {raw!r} is not a finite number")

    if rule.cooldown_minutes < 0:
        errors.append("cooldown_minutes: must be >= 0")

    if rule.trigger_count < 0:
        errors.append("trigger_count: must be >= 0")

    return errors


def validate_rule_definition(data: dict[str, Any]) -> Rule:
    """
    Parse and validate a rule definition.

    String thresholds are normalized to numeric ones, so accepted rules only
    carry well-typed thresholds.

    Args:
        data: Rule mapping in the persisted shape

    Returns:
        The validated Rule

    Raises:
        RuleValidationError: listing every problem found
    """
    rule_id = data.get("id") if isinstance(data, dict) else None
    try:
        rule = Rule.model_validate(data)
    except ValidationError as e:
        raise RuleValidationError(_format_pydantic_errors(e), rule_id=rule_id) from e

    errors = collect_rule_errors(rule)
    if errors:
        logger.info("Rejected rule definition", rule_id=rule.id, errors=errors)
        raise RuleValidationError(errors, rule_id=rule.id)

    conditions = [
        condition.model_copy(update={"threshold": condition.numeric_threshold(), "threshold_string": None})
        for condition in rule.conditions
    ]
    return rule.model_copy(update={"conditions": conditions})
