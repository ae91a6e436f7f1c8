from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from src.api.dependencies import get_engine, get_scheduler, get_snapshot_provider
from src.snapshots.provider import StaticSnapshotProvider
from src.tasks.scheduler.evaluation_scheduler import EvaluationScheduler
from src.triggers.engine import TriggerEngine

router = APIRouter()


class EvaluationRequest(BaseModel):
    snapshot: dict[str, float]
    previous_snapshot: dict[str, float] | None = None
    now: datetime | None = None


class MetricsUpdateRequest(BaseModel):
    metrics: dict[str, float] = Field(default_factory=dict)


@router.post("/evaluate")
async def evaluate_snapshot(request: EvaluationRequest, engine: TriggerEngine = Depends(get_engine)) -> dict[str, Any]:
    """Dry run: report every rule's decision without committing or dispatching."""
    outcomes = await engine.preview(request.snapshot, now=request.now, previous_snapshot=request.previous_snapshot)
    return {
        "fired": [rule.id for rule, evaluation in outcomes if evaluation.is_fired],
        "evaluations": [evaluation.model_dump(mode="json") for _, evaluation in outcomes],
    }


@router.post("/tick")
async def run_tick(request: EvaluationRequest, engine: TriggerEngine = Depends(get_engine)) -> dict[str, Any]:
    """Evaluate a snapshot now, committing and dispatching every firing."""
    fired = await engine.run_tick(request.snapshot, now=request.now, previous_snapshot=request.previous_snapshot)
    return {
        "fired": [
            {"rule_id": event.rule_id, "trigger_count": event.rule.trigger_count, "fired_at": event.fired_at}
            for event in fired
        ]
    }


@router.post("/metrics")
async def push_metrics(
    request: MetricsUpdateRequest,
    provider: StaticSnapshotProvider = Depends(get_snapshot_provider),
) -> dict[str, Any]:
    """Update the values the scheduler evaluates on its next tick."""
    provider.update(request.metrics)
    return {"status": "accepted", "metrics": sorted(request.metrics)}


@router.get("/status")
async def get_engine_status(
    engine: TriggerEngine = Depends(get_engine),
    scheduler: EvaluationScheduler = Depends(get_scheduler),
) -> dict[str, Any]:
    return {
        "scheduler": scheduler.get_status(),
        "task_queue": engine.queue.get_status(),
        "last_evaluation_at": engine.last_evaluation_at,
    }
