"""
Rule file configuration.
"""

from dataclasses import dataclass


@dataclass
class RulesConfig:
    """Where seed rules are read from."""

    base_path: str = ".hermes"
    rules_file: str = "rules.yaml"
    load_on_startup: bool = True

    @property
    def rules_file_path(self) -> str:
        return f"{self.base_path}/{self.rules_file}"
