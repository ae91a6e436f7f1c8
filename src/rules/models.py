import math
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

# Metric name -> value at a single evaluation instant.
MetricSnapshot = dict[str, float]


class TriggerType(str, Enum):
    """Categorical tag for a rule. Informational only."""

    RISK_THRESHOLD = "risk_threshold"
    WEAK_SIGNAL = "weak_signal"
    KPI_CHANGE = "kpi_change"
    VECTOR_DEVIATION = "vector_deviation"
    PATTERN_MATCH = "pattern_match"
    SCHEDULED = "scheduled"
    MANUAL = "manual"


class ComparisonOperator(str, Enum):
    """Operators a condition may apply between a metric and its threshold."""

    LT = "<"
    GT = ">"
    LE = "<="
    GE = ">="
    EQ = "=="
    NE = "!="
    CHANGED_BY = "changed_by"


class LogicOperator(str, Enum):
    """How a rule combines the results of its conditions."""

    AND = "AND"
    OR = "OR"


class NotificationSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class NotificationConfig(BaseModel):
    """Hints for the downstream action when a rule fires."""

    severity: NotificationSeverity = NotificationSeverity.WARNING
    create_task: bool = True


class RuleCondition(BaseModel):
    """A single metric/operator/threshold comparison."""

    model_config = ConfigDict(frozen=True)

    metric: str
    operator: ComparisonOperator
    threshold: float | None = None
    threshold_string: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _split_string_threshold(cls, data: Any) -> Any:
        # The UI stores some thresholds as strings; keep them out of the numeric field.
        if isinstance(data, dict) and isinstance(data.get("threshold"), str):
            data = dict(data)
            data.setdefault("threshold_string", data["threshold"])
            data["threshold"] = None
        return data

    def numeric_threshold(self) -> float | None:
        """Threshold as a float, or None when neither field parses."""
        if self.threshold is not None:
            value = float(self.threshold)
        elif self.threshold_string is not None:
            try:
                value = float(self.threshold_string.strip())
            except ValueError:
                return None
        else:
            return None
        return value if math.isfinite(value) else None

    def describe(self) -> str:
        threshold = self.threshold if self.threshold is not None else self.threshold_string
        return f"{self.metric} {self.operator.value} {threshold}"


class Rule(BaseModel):
    """A named, prioritized condition set plus the action metadata used when it fires."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: str = ""
    trigger_type: TriggerType = TriggerType.RISK_THRESHOLD
    conditions: list[RuleCondition] = Field(default_factory=list)
    logic_operator: LogicOperator = LogicOperator.AND
    is_active: bool = True
    cooldown_minutes: int = 60
    priority: int = 50
    trigger_count: int = 0
    last_triggered_at: datetime | None = None
    modules_to_trigger: list[str] = Field(
        default_factory=lambda: ["FULL"],
        validation_alias=AliasChoices("modules_to_trigger", "hermes_modules_to_trigger"),
    )
    notification_config: NotificationConfig = Field(default_factory=NotificationConfig)

    @field_validator("last_triggered_at")
    @classmethod
    def _assume_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None


class EvaluationStatus(str, Enum):
    FIRED = "fired"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    """Why a rule did not fire on a given tick."""

    INACTIVE = "inactive"
    COOLDOWN = "cooldown"
    NO_CONDITIONS = "invalid: no conditions"
    CONDITIONS_NOT_MET = "conditions not met"
    ERROR = "error"


class ConditionResult(BaseModel):
    """Outcome of one condition, kept for explanation."""

    condition: str
    satisfied: bool
    details: dict[str, Any] = Field(default_factory=dict)


class RuleEvaluation(BaseModel):
    """Decision for one rule at one tick: fired, or skipped with a reason."""

    rule_id: str
    status: EvaluationStatus
    reason: SkipReason | None = None
    evaluated_at: datetime
    condition_results: list[ConditionResult] = Field(default_factory=list)

    @classmethod
    def fired(cls, rule_id: str, now: datetime, results: list[ConditionResult]) -> "RuleEvaluation":
        return cls(rule_id=rule_id, status=EvaluationStatus.FIRED, evaluated_at=now, condition_results=results)

    @classmethod
    def skipped(
        cls,
        rule_id: str,
        reason: SkipReason,
        now: datetime,
        results: list[ConditionResult] | None = None,
    ) -> "RuleEvaluation":
        return cls(
            rule_id=rule_id,
            status=EvaluationStatus.SKIPPED,
            reason=reason,
            evaluated_at=now,
            condition_results=results or [],
        )

    @property
    def is_fired(self) -> bool:
        return self.status == EvaluationStatus.FIRED


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def utc_now() -> datetime:
    return datetime.now(UTC)
