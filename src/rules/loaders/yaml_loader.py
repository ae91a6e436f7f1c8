"""
YAML rule file loader.

Reads seed rules from a ``rules:`` list in a YAML file.
"""

from pathlib import Path
from typing import Any

import structlog
import yaml

from src.core.errors import RulesFileNotFoundError, RuleValidationError
from src.rules.models import Rule
from src.rules.validators import validate_rule_definition

logger = structlog.get_logger(__name__)


class YamlRuleLoader:
    """Loads and validates rules from a YAML file. Invalid entries are skipped."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> list[Rule]:
        if not self.path.is_file():
            logger.warning("Rules file not found", path=str(self.path))
            raise RulesFileNotFoundError(f"Rules file not found: {self.path}")

        content = self.path.read_text(encoding="utf-8")
        return self.parse(content, source=str(self.path))

    @staticmethod
    def parse(content: str, source: str = "<string>") -> list[Rule]:
        rules_data = yaml.safe_load(content)
        if not isinstance(rules_data, dict) or "rules" not in rules_data:
            logger.warning("No rules found", source=source)
            return []

        if not isinstance(rules_data["rules"], list):
            logger.warning("Rules key is not a list", source=source)
            return []

        rules: list[Rule] = []
        seen_ids: set[str] = set()
        for index, rule_data in enumerate(rules_data["rules"]):
            if not isinstance(rule_data, dict):
                logger.warning("Skipping non-mapping rule entry", source=source, index=index)
                continue
            try:
                rule = validate_rule_definition(_with_default_id(rule_data, index))
            except RuleValidationError as e:
                logger.error("Skipping invalid rule", source=source, index=index, errors=e.errors)
                continue
            if rule.id in seen_ids:
                logger.error("Skipping duplicate rule id", source=source, rule_id=rule.id)
                continue
            seen_ids.add(rule.id)
            rules.append(rule)

        logger.info("Loaded rules", source=source, count=len(rules))
        return rules


def _with_default_id(rule_data: dict[str, Any], index: int) -> dict[str, Any]:
    if rule_data.get("id"):
        return rule_data
    return {**rule_data, "id": f"rule-{index + 1}"}
