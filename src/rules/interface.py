from abc import ABC, abstractmethod
from datetime import datetime

from src.rules.models import Rule


class RuleStore(ABC):
    """
    Abstract interface for persisting trigger rules.

    This interface allows us to swap out different rule backends
    (in-memory, hosted entity store, database) without changing the engine.
    """

    @abstractmethod
    async def list_rules(self) -> list[Rule]:
        """Return all rules ordered by descending priority, then id."""
        pass

    @abstractmethod
    async def get_rule(self, rule_id: str) -> Rule:
        """Return one rule. Raises RuleNotFoundError if absent."""
        pass

    @abstractmethod
    async def create_rule(self, rule: Rule) -> Rule:
        """Add a new rule. Raises RuleAlreadyExistsError if the id is taken."""
        pass

    @abstractmethod
    async def save_rule(self, rule: Rule) -> Rule:
        """Create or replace a rule, firing history included. Used for seeding."""
        pass

    @abstractmethod
    async def update_definition(self, rule: Rule) -> Rule:
        """
        Replace an existing rule's definition, keeping its stored firing history
        (``trigger_count``, ``last_triggered_at``). Raises RuleNotFoundError if absent.
        """
        pass

    @abstractmethod
    async def set_active(self, rule_id: str, is_active: bool) -> Rule:
        """Enable or disable a rule. Raises RuleNotFoundError if absent."""
        pass

    @abstractmethod
    async def delete_rule(self, rule_id: str) -> None:
        """Remove a rule. Raises RuleNotFoundError if absent."""
        pass

    @abstractmethod
    async def commit_firing(
        self,
        rule_id: str,
        fired_at: datetime,
        expected_last_triggered_at: datetime | None,
    ) -> Rule:
        """
        Record a firing: ``trigger_count += 1`` and ``last_triggered_at = fired_at``.

        Compare-and-swap on ``last_triggered_at``: raises ConcurrentUpdateError
        when the stored value no longer equals ``expected_last_triggered_at``.
        """
        pass
