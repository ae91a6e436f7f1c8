"""
In-memory rule store.
"""

import asyncio
from datetime import datetime

import structlog

from src.core.errors import ConcurrentUpdateError, RuleAlreadyExistsError, RuleNotFoundError
from src.rules.interface import RuleStore
from src.rules.models import Rule, ensure_utc
from src.rules.scanner import priority_order

logger = structlog.get_logger(__name__)


class InMemoryRuleStore(RuleStore):
    """Process-local rule store. Returned rules are copies; edits go through the store."""

    def __init__(self, rules: list[Rule] | None = None):
        self._rules: dict[str, Rule] = {rule.id: rule for rule in rules or []}
        self._lock = asyncio.Lock()

    async def list_rules(self) -> list[Rule]:
        async with self._lock:
            return [rule.model_copy(deep=True) for rule in priority_order(self._rules.values())]

    async def get_rule(self, rule_id: str) -> Rule:
        async with self._lock:
            return self._get(rule_id).model_copy(deep=True)

    async def create_rule(self, rule: Rule) -> Rule:
        async with self._lock:
            if rule.id in self._rules:
                raise RuleAlreadyExistsError(rule.id)
            self._rules[rule.id] = rule.model_copy(deep=True)
            logger.info("Created rule", rule_id=rule.id)
            return self._rules[rule.id].model_copy(deep=True)

    async def save_rule(self, rule: Rule) -> Rule:
        async with self._lock:
            self._rules[rule.id] = rule.model_copy(deep=True)
            logger.info("Saved rule", rule_id=rule.id)
            return self._rules[rule.id].model_copy(deep=True)

    async def update_definition(self, rule: Rule) -> Rule:
        async with self._lock:
            current = self._get(rule.id)
            updated = rule.model_copy(
                update={
                    "trigger_count": current.trigger_count,
                    "last_triggered_at": current.last_triggered_at,
                },
                deep=True,
            )
            self._rules[rule.id] = updated
            logger.info("Updated rule definition", rule_id=rule.id)
            return updated.model_copy(deep=True)

    async def set_active(self, rule_id: str, is_active: bool) -> Rule:
        async with self._lock:
            updated = self._get(rule_id).model_copy(update={"is_active": is_active})
            self._rules[rule_id] = updated
            logger.info("Toggled rule", rule_id=rule_id, is_active=is_active)
            return updated.model_copy(deep=True)

    async def delete_rule(self, rule_id: str) -> None:
        async with self._lock:
            self._get(rule_id)
            del self._rules[rule_id]
            logger.info("Deleted rule", rule_id=rule_id)

    async def commit_firing(
        self,
        rule_id: str,
        fired_at: datetime,
        expected_last_triggered_at: datetime | None,
    ) -> Rule:
        async with self._lock:
            current = self._get(rule_id)
            expected = ensure_utc(expected_last_triggered_at) if expected_last_triggered_at else None
            if current.last_triggered_at != expected:
                raise ConcurrentUpdateError(rule_id)

            updated = current.model_copy(
                update={
                    "trigger_count": current.trigger_count + 1,
                    "last_triggered_at": ensure_utc(fired_at),
                }
            )
            self._rules[rule_id] = updated
            return updated.model_copy(deep=True)

    async def replace_all(self, rules: list[Rule]) -> None:
        """Swap the whole rule set, e.g. after loading a rule file."""
        async with self._lock:
            self._rules = {rule.id: rule.model_copy(deep=True) for rule in rules}

    def _get(self, rule_id: str) -> Rule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise RuleNotFoundError(rule_id)
        return rule


# Global rule store instance
rule_store = InMemoryRuleStore()
