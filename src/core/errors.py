"""
Core error classes for the Hermes trigger engine.
"""

from typing import Any


class RuleValidationError(Exception):
    """Raised when a rule definition is rejected at create/edit time."""

    def __init__(self, errors: list[str], rule_id: str | None = None) -> None:
        self.errors = errors
        self.rule_id = rule_id
        super().__init__(f"Invalid rule definition: {'; '.join(errors)}")

    def to_details(self) -> dict[str, Any]:
        return {"rule_id": self.rule_id, "errors": self.errors}


class RuleNotFoundError(Exception):
    """Raised when a rule id is not present in the store."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule not found: {rule_id}")


class RuleAlreadyExistsError(Exception):
    """Raised when creating a rule whose id is already taken."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule already exists: {rule_id}")


class ConcurrentUpdateError(Exception):
    """Raised when a firing commit loses a compare-and-swap race."""

    def __init__(self, rule_id: str) -> None:
        self.rule_id = rule_id
        super().__init__(f"Rule {rule_id} was modified concurrently")


class RulesFileNotFoundError(Exception):
    """Raised when the configured rules file does not exist."""

    pass


class DispatchError(Exception):
    """Raised when one or more downstream actions for a fired rule failed."""

    def __init__(
        self,
        rule_id: str,
        failures: dict[str, str],
        results: dict[str, Any] | None = None,
    ) -> None:
        self.rule_id = rule_id
        self.failures = failures
        # modules that succeeded before the failure was raised
        self.results = results or {}
        super().__init__(f"Dispatch for rule {rule_id} failed: {failures}")
