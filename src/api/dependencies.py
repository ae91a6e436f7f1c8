from src.rules.interface import RuleStore
from src.rules.store import rule_store
from src.snapshots.provider import StaticSnapshotProvider, snapshot_provider
from src.tasks.scheduler.evaluation_scheduler import EvaluationScheduler, get_evaluation_scheduler
from src.triggers.engine import TriggerEngine, get_trigger_engine

# --- Service Dependencies ---  # DI: swap for fakes in tests via app.dependency_overrides.


def get_rule_store() -> RuleStore:
    return rule_store


def get_engine() -> TriggerEngine:
    return get_trigger_engine()


def get_scheduler() -> EvaluationScheduler:
    return get_evaluation_scheduler()


def get_snapshot_provider() -> StaticSnapshotProvider:
    return snapshot_provider
