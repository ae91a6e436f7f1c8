"""Tests for the trigger engine: ticks, firing commits and dispatch hand-off."""

import asyncio
import gc
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from src.core.errors import ConcurrentUpdateError, DispatchError, RuleNotFoundError
from src.rules.models import Rule
from src.rules.store import InMemoryRuleStore
from src.tasks.task_queue import TaskQueue
from src.triggers.engine import DISPATCH_EVENT_TYPE, TriggerEngine
from src.triggers.models import TriggerEvent

HIGH_RISK = {"risk_score": 82}


@pytest.fixture
def store(risk_rule: Rule) -> InMemoryRuleStore:
    return InMemoryRuleStore([risk_rule])


@pytest.fixture
def trigger_dispatcher() -> AsyncMock:
    mock = AsyncMock()
    mock.dispatch.return_value = {"FULL": {"status": "processed"}}
    return mock


@pytest.fixture
def queue() -> TaskQueue:
    return TaskQueue()


@pytest.fixture
def engine(store: InMemoryRuleStore, trigger_dispatcher: AsyncMock, queue: TaskQueue) -> TriggerEngine:
    return TriggerEngine(store=store, trigger_dispatcher=trigger_dispatcher, queue=queue)


class TestRunTick:
    @pytest.mark.asyncio
    async def test_firing_is_committed_and_queued(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        fired = await engine.run_tick(HIGH_RISK, now=now)

        assert [event.rule_id for event in fired] == ["risk-high"]
        assert fired[0].rule.trigger_count == 1
        assert fired[0].evaluation is not None and fired[0].evaluation.is_fired

        rule = await store.get_rule("risk-high")
        assert rule.trigger_count == 1
        assert rule.last_triggered_at == now

        assert queue.queue.qsize() == 1
        task = queue.queue.get_nowait()
        assert task.event_type == DISPATCH_EVENT_TYPE
        assert task.payload["rule_id"] == "risk-high"

    @pytest.mark.asyncio
    async def test_unmet_conditions_commit_nothing(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        assert await engine.run_tick({"risk_score": 55}, now=now) == []
        assert (await store.get_rule("risk-high")).trigger_count == 0
        assert queue.queue.empty()

    @pytest.mark.asyncio
    async def test_second_tick_inside_cooldown_does_not_fire(self, engine: TriggerEngine, now: datetime) -> None:
        assert len(await engine.run_tick(HIGH_RISK, now=now)) == 1
        assert await engine.run_tick(HIGH_RISK, now=now + timedelta(minutes=10)) == []
        assert len(await engine.run_tick(HIGH_RISK, now=now + timedelta(minutes=60))) == 1

    @pytest.mark.asyncio
    async def test_concurrent_ticks_fire_once(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        results = await asyncio.gather(*(engine.run_tick(HIGH_RISK, now=now) for _ in range(5)))

        assert sum(len(fired) for fired in results) == 1
        assert (await store.get_rule("risk-high")).trigger_count == 1
        assert queue.queue.qsize() == 1

    @pytest.mark.asyncio
    async def test_lost_commit_race_is_skipped(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        with patch.object(store, "commit_firing", AsyncMock(side_effect=ConcurrentUpdateError("risk-high"))):
            assert await engine.run_tick(HIGH_RISK, now=now) == []
        assert queue.queue.empty()

    @pytest.mark.asyncio
    async def test_rule_changed_after_scan_is_re_evaluated(
        self, engine: TriggerEngine, store: InMemoryRuleStore, now: datetime
    ) -> None:
        await store.set_active("risk-high", False)
        assert await engine._fire_if_eligible("risk-high", HIGH_RISK, now, None) is None
        await store.delete_rule("risk-high")
        assert await engine._fire_if_eligible("risk-high", HIGH_RISK, now, None) is None

    @pytest.mark.asyncio
    async def test_previous_tick_is_changed_by_baseline(self, store: InMemoryRuleStore, now: datetime) -> None:
        await store.save_rule(
            Rule(
                id="success-moved",
                name="Success rate moved",
                conditions=[{"metric": "success_rate", "operator": "changed_by", "threshold": 20}],
            )
        )
        engine = TriggerEngine(store=store, trigger_dispatcher=AsyncMock(), queue=TaskQueue())

        assert await engine.run_tick({"success_rate": 80}, now=now) == []
        fired = await engine.run_tick({"success_rate": 60}, now=now + timedelta(minutes=5))

        assert [event.rule_id for event in fired] == ["success-moved"]
        assert engine.previous_snapshot == {"success_rate": 60}
        assert engine.last_evaluation_at == now + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_fired_rules_in_priority_order(
        self, store: InMemoryRuleStore, engine: TriggerEngine, now: datetime
    ) -> None:
        urgent = Rule(
            id="urgent",
            name="Urgent",
            priority=90,
            conditions=[{"metric": "risk_score", "operator": ">", "threshold": 50}],
        )
        await store.save_rule(urgent)
        fired = await engine.run_tick(HIGH_RISK, now=now)
        assert [event.rule_id for event in fired] == ["urgent", "risk-high"]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_workers_dispatch_committed_firings(
        self, engine: TriggerEngine, trigger_dispatcher: AsyncMock, queue: TaskQueue, now: datetime
    ) -> None:
        await queue.start_workers(num_workers=1)
        try:
            fired = await engine.run_tick(HIGH_RISK, now=now)
            await queue.queue.join()
        finally:
            await queue.stop_workers()

        trigger_dispatcher.dispatch.assert_awaited_once()
        dispatched: TriggerEvent = trigger_dispatcher.dispatch.await_args.args[0]
        assert dispatched.rule_id == fired[0].rule_id

    @pytest.mark.asyncio
    async def test_dispatch_failure_keeps_commit(
        self, engine: TriggerEngine, store: InMemoryRuleStore, trigger_dispatcher: AsyncMock, now: datetime
    ) -> None:
        trigger_dispatcher.dispatch.side_effect = DispatchError("risk-high", {"FULL": "down"})
        fired = await engine.run_tick(HIGH_RISK, now=now)

        with pytest.raises(DispatchError):
            await engine._dispatch(fired[0])

        rule = await store.get_rule("risk-high")
        assert rule.trigger_count == 1
        assert rule.last_triggered_at == now
        assert await engine.run_tick(HIGH_RISK, now=now + timedelta(minutes=1)) == []

    @pytest.mark.asyncio
    async def test_dispatch_is_attempted_once_by_default(
        self, engine: TriggerEngine, trigger_dispatcher: AsyncMock, now: datetime
    ) -> None:
        trigger_dispatcher.dispatch.side_effect = RuntimeError("down")
        fired = await engine.run_tick(HIGH_RISK, now=now)
        with pytest.raises(RuntimeError):
            await engine._dispatch(fired[0])
        assert trigger_dispatcher.dispatch.await_count == 1

    @pytest.mark.asyncio
    async def test_dispatch_retries_when_configured(
        self, store: InMemoryRuleStore, trigger_dispatcher: AsyncMock, now: datetime
    ) -> None:
        trigger_dispatcher.dispatch.side_effect = [RuntimeError("flaky"), {"FULL": {"status": "processed"}}]
        engine = TriggerEngine(
            store=store, trigger_dispatcher=trigger_dispatcher, queue=TaskQueue(), dispatch_max_attempts=2
        )
        fired = await engine.run_tick(HIGH_RISK, now=now)

        result = await engine._dispatch(fired[0])

        assert result == {"FULL": {"status": "processed"}}
        assert trigger_dispatcher.dispatch.await_count == 2

    @pytest.mark.asyncio
    async def test_retry_runs_only_failed_modules(
        self, store: InMemoryRuleStore, trigger_dispatcher: AsyncMock, risk_rule: Rule, now: datetime
    ) -> None:
        await store.save_rule(risk_rule.model_copy(update={"modules_to_trigger": ["H1", "H2", "H3"]}))
        trigger_dispatcher.dispatch.side_effect = [
            DispatchError("risk-high", {"H2": "down"}, {"H1": {"status": "processed"}, "H3": {"status": "processed"}}),
            {"H2": {"status": "processed"}},
        ]
        engine = TriggerEngine(
            store=store, trigger_dispatcher=trigger_dispatcher, queue=TaskQueue(), dispatch_max_attempts=2
        )
        fired = await engine.run_tick(HIGH_RISK, now=now)

        result = await engine._dispatch(fired[0])

        first_call, second_call = trigger_dispatcher.dispatch.await_args_list
        assert first_call.kwargs["modules"] is None
        assert second_call.kwargs["modules"] == ["H2"]
        assert set(result) == {"H1", "H2", "H3"}

    @pytest.mark.asyncio
    async def test_slow_dispatch_times_out(self, store: InMemoryRuleStore, now: datetime) -> None:
        async def slow_dispatch(event: TriggerEvent) -> dict:
            await asyncio.sleep(1)
            return {}

        trigger_dispatcher = AsyncMock()
        trigger_dispatcher.dispatch.side_effect = slow_dispatch
        engine = TriggerEngine(
            store=store, trigger_dispatcher=trigger_dispatcher, queue=TaskQueue(), dispatch_timeout_seconds=0.01
        )
        fired = await engine.run_tick(HIGH_RISK, now=now)

        with pytest.raises(TimeoutError):
            await engine._dispatch(fired[0])


class TestRuleLocks:
    @pytest.mark.asyncio
    async def test_locks_are_not_kept_for_idle_or_deleted_rules(
        self, engine: TriggerEngine, store: InMemoryRuleStore, now: datetime
    ) -> None:
        await engine.run_tick(HIGH_RISK, now=now)
        await store.delete_rule("risk-high")
        with pytest.raises(RuleNotFoundError):
            await engine.trigger_manually("risk-high")
        gc.collect()

        assert "risk-high" not in engine._rule_locks
        assert len(engine._rule_locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_shared_while_held(self, engine: TriggerEngine) -> None:
        lock = engine._lock_for("risk-high")
        async with lock:
            assert engine._lock_for("risk-high") is lock


class TestManualTrigger:
    @pytest.mark.asyncio
    async def test_bypasses_conditions_and_cooldown(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        await engine.run_tick(HIGH_RISK, now=now)

        event = await engine.trigger_manually("risk-high", snapshot={"risk_score": 1}, now=now + timedelta(minutes=1))

        assert event.manual is True
        assert event.rule.trigger_count == 2
        assert (await store.get_rule("risk-high")).last_triggered_at == now + timedelta(minutes=1)
        assert queue.queue.qsize() == 2

    @pytest.mark.asyncio
    async def test_unknown_rule(self, engine: TriggerEngine) -> None:
        with pytest.raises(RuleNotFoundError):
            await engine.trigger_manually("ghost")


class TestPreviewAndStats:
    @pytest.mark.asyncio
    async def test_preview_commits_nothing(
        self, engine: TriggerEngine, store: InMemoryRuleStore, queue: TaskQueue, now: datetime
    ) -> None:
        outcomes = await engine.preview(HIGH_RISK, now=now)

        assert [(rule.id, evaluation.is_fired) for rule, evaluation in outcomes] == [("risk-high", True)]
        assert (await store.get_rule("risk-high")).trigger_count == 0
        assert queue.queue.empty()
        assert engine.previous_snapshot is None

    @pytest.mark.asyncio
    async def test_stats(self, engine: TriggerEngine, store: InMemoryRuleStore, now: datetime) -> None:
        await store.save_rule(Rule(id="off", name="Off", is_active=False))
        await engine.run_tick(HIGH_RISK, now=now)

        assert await engine.stats() == {
            "total_rules": 2,
            "active_rules": 1,
            "total_triggers": 1,
            "last_evaluation_at": now,
        }
