import uuid
from typing import Any

import structlog
from fastapi import APIRouter, Depends, Response, status
from pydantic import AliasChoices, BaseModel, Field

from src.api.dependencies import get_engine, get_rule_store
from src.core.config import config
from src.rules.interface import RuleStore
from src.rules.models import Rule
from src.rules.validators import validate_rule_definition
from src.triggers.engine import TriggerEngine

logger = structlog.get_logger(__name__)

router = APIRouter()


class RuleDefinitionRequest(BaseModel):
    """Editable part of a rule. Conditions stay loose so the rule validator reports every condition problem."""

    id: str | None = None
    name: str
    description: str = ""
    trigger_type: str = "risk_threshold"
    conditions: list[dict[str, Any]] = Field(default_factory=list)
    logic_operator: str = "AND"
    is_active: bool = True
    cooldown_minutes: int | None = None
    priority: int = 50
    modules_to_trigger: list[str] = Field(
        default_factory=lambda: ["FULL"],
        validation_alias=AliasChoices("modules_to_trigger", "hermes_modules_to_trigger"),
    )
    notification_config: dict[str, Any] = Field(default_factory=dict)

    def to_rule_data(self) -> dict[str, Any]:
        data = self.model_dump(exclude={"id", "cooldown_minutes"})
        if self.cooldown_minutes is None:
            data["cooldown_minutes"] = config.engine.default_cooldown_minutes
        else:
            data["cooldown_minutes"] = self.cooldown_minutes
        return data


class ActiveToggleRequest(BaseModel):
    is_active: bool


class ManualTriggerRequest(BaseModel):
    snapshot: dict[str, float] = Field(default_factory=dict)


@router.get("/rules", response_model=list[Rule])
async def list_rules(store: RuleStore = Depends(get_rule_store)) -> list[Rule]:
    """List rules ordered by descending priority."""
    return await store.list_rules()


@router.get("/rules/stats")
async def rule_stats(engine: TriggerEngine = Depends(get_engine)) -> dict[str, Any]:
    return await engine.stats()


@router.post("/rules", response_model=Rule, status_code=status.HTTP_201_CREATED)
async def create_rule(request: RuleDefinitionRequest, store: RuleStore = Depends(get_rule_store)) -> Rule:
    data = request.to_rule_data()
    data["id"] = request.id or uuid.uuid4().hex
    rule = await store.create_rule(validate_rule_definition(data))
    logger.info("Rule created", rule_id=rule.id, name=rule.name)
    return rule


@router.get("/rules/{rule_id}", response_model=Rule)
async def get_rule(rule_id: str, store: RuleStore = Depends(get_rule_store)) -> Rule:
    return await store.get_rule(rule_id)


@router.put("/rules/{rule_id}", response_model=Rule)
async def update_rule(
    rule_id: str,
    request: RuleDefinitionRequest,
    store: RuleStore = Depends(get_rule_store),
) -> Rule:
    """Full edit. Firing history (trigger_count, last_triggered_at) is preserved."""
    data = request.to_rule_data()
    data["id"] = rule_id
    rule = validate_rule_definition(data)
    updated = await store.update_definition(rule)
    logger.info("Rule updated", rule_id=rule_id)
    return updated


@router.patch("/rules/{rule_id}/active", response_model=Rule)
async def toggle_rule(
    rule_id: str,
    request: ActiveToggleRequest,
    store: RuleStore = Depends(get_rule_store),
) -> Rule:
    return await store.set_active(rule_id, request.is_active)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_rule(rule_id: str, store: RuleStore = Depends(get_rule_store)) -> Response:
    await store.delete_rule(rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/rules/{rule_id}/trigger")
async def trigger_rule(
    rule_id: str,
    request: ManualTriggerRequest | None = None,
    engine: TriggerEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Fire a rule now, regardless of its conditions and cooldown."""
    event = await engine.trigger_manually(rule_id, snapshot=request.snapshot if request else None)
    return {
        "status": "triggered",
        "rule_id": event.rule_id,
        "trigger_count": event.rule.trigger_count,
        "last_triggered_at": event.fired_at,
    }
