from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.api.dependencies import get_engine, get_rule_store, get_scheduler, get_snapshot_provider
from src.main import app
from src.rules.models import Rule
from src.rules.store import InMemoryRuleStore
from src.snapshots.provider import StaticSnapshotProvider
from src.tasks.scheduler.evaluation_scheduler import EvaluationScheduler
from src.tasks.task_queue import TaskQueue
from src.triggers.dispatcher import ModuleDispatcher
from src.triggers.engine import TriggerEngine


@pytest.fixture
def store(risk_rule: Rule) -> InMemoryRuleStore:
    return InMemoryRuleStore([risk_rule])


@pytest.fixture
def engine(store: InMemoryRuleStore) -> TriggerEngine:
    return TriggerEngine(store=store, trigger_dispatcher=ModuleDispatcher(), queue=TaskQueue())


@pytest.fixture
def provider() -> StaticSnapshotProvider:
    return StaticSnapshotProvider()


@pytest_asyncio.fixture
async def client(
    store: InMemoryRuleStore, engine: TriggerEngine, provider: StaticSnapshotProvider
) -> AsyncIterator[AsyncClient]:
    """API client wired to a fresh store and engine instead of the process-wide ones."""
    scheduler = EvaluationScheduler(engine=engine, provider=provider)
    app.dependency_overrides[get_rule_store] = lambda: store
    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_scheduler] = lambda: scheduler
    app.dependency_overrides[get_snapshot_provider] = lambda: provider
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
