# Rules package

from src.rules.condition_evaluator import ConditionEvaluator, evaluate_condition
from src.rules.evaluator import RuleEvaluator, evaluate_rule
from src.rules.models import (
    ComparisonOperator,
    LogicOperator,
    MetricSnapshot,
    Rule,
    RuleCondition,
    RuleEvaluation,
    SkipReason,
    TriggerType,
)
from src.rules.scanner import scan_rules

__all__ = [
    "ComparisonOperator",
    "ConditionEvaluator",
    "LogicOperator",
    "MetricSnapshot",
    "Rule",
    "RuleCondition",
    "RuleEvaluation",
    "RuleEvaluator",
    "SkipReason",
    "TriggerType",
    "evaluate_condition",
    "evaluate_rule",
    "scan_rules",
]
