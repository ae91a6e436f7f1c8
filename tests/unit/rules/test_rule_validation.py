"""Tests for rule definition validation at the create/edit boundary."""

import pytest

from src.core.errors import RuleValidationError
from src.rules.models import ComparisonOperator, LogicOperator
from src.rules.validators import validate_rule_definition


def definition(**overrides: object) -> dict[str, object]:
    data: dict[str, object] = {
        "id": "r1",
        "name": "Consistency critical",
        "conditions": [{"metric": "consistency_score", "operator": "<", "threshold": 50}],
    }
    data.update(overrides)
    return data


class TestValidateRuleDefinition:
    def test_valid_definition(self) -> None:
        rule = validate_rule_definition(definition(logic_operator="OR", cooldown_minutes=15))
        assert rule.conditions[0].operator == ComparisonOperator.LT
        assert rule.logic_operator == LogicOperator.OR
        assert rule.cooldown_minutes == 15

    def test_string_threshold_is_normalized_to_number(self) -> None:
        rule = validate_rule_definition(
            definition(conditions=[{"metric": "risk_score", "operator": ">", "threshold": "70"}])
        )
        assert rule.conditions[0].threshold == 70.0
        assert rule.conditions[0].threshold_string is None

    def test_threshold_string_field_is_normalized(self) -> None:
        rule = validate_rule_definition(
            definition(conditions=[{"metric": "risk_score", "operator": ">", "threshold_string": "12.5"}])
        )
        assert rule.conditions[0].threshold == 12.5

    def test_empty_conditions_rejected(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule_definition(definition(conditions=[]))
        assert "conditions: at least one condition is required" in exc_info.value.errors
        assert exc_info.value.rule_id == "r1"

    def test_unparseable_threshold_rejected(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule_definition(
                definition(conditions=[{"metric": "risk_score", "operator": ">", "threshold": "high"}])
            )
        assert exc_info.value.errors == ["conditions.0.threshold: 'high' is not a finite number"]

    def test_unknown_operator_rejected(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule_definition(
                definition(conditions=[{"metric": "risk_score", "operator": "~=", "threshold": 1}])
            )
        assert any(error.startswith("conditions.0.operator") for error in exc_info.value.errors)

    def test_unknown_logic_operator_rejected(self) -> None:
        with pytest.raises(RuleValidationError):
            validate_rule_definition(definition(logic_operator="XOR"))

    def test_all_problems_reported_together(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule_definition(
                definition(
                    name=" ",
                    cooldown_minutes=-5,
                    conditions=[
                        {"metric": "", "operator": ">", "threshold": 1},
                        {"metric": "risk_score", "operator": ">"},
                    ],
                )
            )
        errors = exc_info.value.errors
        assert "name: must not be empty" in errors
        assert "cooldown_minutes: must be >= 0" in errors
        assert "conditions.0.metric: must not be empty" in errors
        assert "conditions.1.threshold: None is not a finite number" in errors

    def test_legacy_modules_field_name_accepted(self) -> None:
        rule = validate_rule_definition(definition(hermes_modules_to_trigger=["H1", "H3"]))
        assert rule.modules_to_trigger == ["H1", "H3"]

    def test_error_details_shape(self) -> None:
        with pytest.raises(RuleValidationError) as exc_info:
            validate_rule_definition(definition(conditions=[]))
        assert exc_info.value.to_details() == {
            "rule_id": "r1",
            "errors": ["conditions: at least one condition is required"],
        }
