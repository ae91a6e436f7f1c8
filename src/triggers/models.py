from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from src.rules.models import Rule, RuleEvaluation


class TriggerEvent(BaseModel):
    """A committed firing of a rule, handed to the dispatcher."""

    rule: Rule
    snapshot: dict[str, Any] = Field(default_factory=dict)
    fired_at: datetime
    manual: bool = False
    evaluation: RuleEvaluation | None = None

    @property
    def rule_id(self) -> str:
        return self.rule.id

    def task_payload(self) -> dict[str, Any]:
        """Identity of this firing, used to deduplicate queued dispatches."""
        return {
            "rule_id": self.rule.id,
            "fired_at": self.fired_at.isoformat(),
            "trigger_count": self.rule.trigger_count,
            "manual": self.manual,
        }
