"""
Trigger engine: evaluates rules per tick, commits firings, hands them to dispatch.

Evaluations of the same rule are serialized with a per-rule lock and the
commit is a compare-and-swap in the store, so concurrent ticks cannot both
fire a rule inside one cooldown window. State is committed before dispatch;
dispatch runs on queue workers and is at-most-once unless retries are
configured.
"""

import asyncio
import weakref
from collections.abc import Mapping
from datetime import datetime
from typing import Any

import structlog
from tenacity import AsyncRetrying, stop_after_attempt, wait_exponential

from src.core.config import config
from src.core.errors import ConcurrentUpdateError, DispatchError, RuleNotFoundError
from src.core.utils.logging import log_operation
from src.core.utils.timeout import execute_with_timeout
from src.rules.evaluator import RuleEvaluator
from src.rules.interface import RuleStore
from src.rules.models import MetricSnapshot, Rule, RuleEvaluation, ensure_utc, utc_now
from src.rules.scanner import evaluate_all, scan_rules
from src.rules.store import rule_store
from src.tasks.task_queue import TaskQueue, task_queue
from src.triggers.dispatcher import TriggerDispatcher, dispatcher
from src.triggers.models import TriggerEvent

logger = structlog.get_logger(__name__)

DISPATCH_EVENT_TYPE = "trigger_fired"


class TriggerEngine:
    """Runs evaluation ticks against a rule store and dispatches the firings."""

    def __init__(
        self,
        store: RuleStore,
        trigger_dispatcher: TriggerDispatcher,
        queue: TaskQueue,
        evaluator: RuleEvaluator | None = None,
        dispatch_timeout_seconds: float = 30.0,
        dispatch_max_attempts: int = 1,
    ):
        self.store = store
        self.dispatcher = trigger_dispatcher
        self.queue = queue
        self.evaluator = evaluator or RuleEvaluator()
        self.dispatch_timeout_seconds = dispatch_timeout_seconds
        self.dispatch_max_attempts = dispatch_max_attempts
        # Entries vanish once no tick holds or awaits the lock.
        self._rule_locks: weakref.WeakValueDictionary[str, asyncio.Lock] = weakref.WeakValueDictionary()
        self.previous_snapshot: MetricSnapshot | None = None
        self.last_evaluation_at: datetime | None = None

    async def run_tick(
        self,
        snapshot: Mapping[str, float],
        now: datetime | None = None,
        previous_snapshot: Mapping[str, float] | None = None,
    ) -> list[TriggerEvent]:
        """
        Evaluate every rule against ``snapshot``, commit and dispatch the firings.

        The previous tick's snapshot is the ``changed_by`` baseline unless one
        is given explicitly.

        Returns:
            The committed firings in priority order.
        """
        now = ensure_utc(now) if now else utc_now()
        baseline = previous_snapshot if previous_snapshot is not None else self.previous_snapshot

        async with log_operation("evaluation_tick", metric_count=len(snapshot)):
            rules = await self.store.list_rules()
            candidates = scan_rules(rules, snapshot, now, baseline, self.evaluator)

            fired: list[TriggerEvent] = []
            for rule, _ in candidates:
                event = await self._fire_if_eligible(rule.id, snapshot, now, baseline)
                if event is not None:
                    fired.append(event)

        self.previous_snapshot = dict(snapshot)
        self.last_evaluation_at = now
        logger.info("Tick finished", evaluated=len(rules), fired=[event.rule_id for event in fired])
        return fired

    async def preview(
        self,
        snapshot: Mapping[str, float],
        now: datetime | None = None,
        previous_snapshot: Mapping[str, float] | None = None,
    ) -> list[tuple[Rule, RuleEvaluation]]:
        """Dry run: every rule's decision for ``snapshot``. Commits and dispatches nothing."""
        now = ensure_utc(now) if now else utc_now()
        baseline = previous_snapshot if previous_snapshot is not None else self.previous_snapshot
        rules = await self.store.list_rules()
        return evaluate_all(rules, snapshot, now, baseline, self.evaluator)

    async def trigger_manually(
        self,
        rule_id: str,
        snapshot: Mapping[str, float] | None = None,
        now: datetime | None = None,
    ) -> TriggerEvent:
        """
        Fire a rule on operator request, bypassing its conditions and cooldown.

        Raises:
            RuleNotFoundError: if the rule does not exist.
        """
        now = ensure_utc(now) if now else utc_now()
        async with self._lock_for(rule_id):
            rule = await self.store.get_rule(rule_id)
            committed = await self.store.commit_firing(rule.id, now, rule.last_triggered_at)

        logger.info("Rule triggered manually", rule_id=rule_id, trigger_count=committed.trigger_count)
        event = TriggerEvent(rule=committed, snapshot=dict(snapshot or {}), fired_at=now, manual=True)
        await self._enqueue_dispatch(event)
        return event

    async def stats(self) -> dict[str, Any]:
        rules = await self.store.list_rules()
        return {
            "total_rules": len(rules),
            "active_rules": sum(1 for rule in rules if rule.is_active),
            "total_triggers": sum(rule.trigger_count for rule in rules),
            "last_evaluation_at": self.last_evaluation_at,
        }

    def _lock_for(self, rule_id: str) -> asyncio.Lock:
        lock = self._rule_locks.get(rule_id)
        if lock is None:
            lock = asyncio.Lock()
            self._rule_locks[rule_id] = lock
        return lock

    async def _fire_if_eligible(
        self,
        rule_id: str,
        snapshot: Mapping[str, float],
        now: datetime,
        baseline: Mapping[str, float] | None,
    ) -> TriggerEvent | None:
        # Re-read and re-evaluate under the lock: another tick may have fired
        # or edited the rule since the scan.
        async with self._lock_for(rule_id):
            try:
                rule = await self.store.get_rule(rule_id)
            except RuleNotFoundError:
                logger.info("Rule removed during tick", rule_id=rule_id)
                return None

            evaluation = self.evaluator.evaluate(rule, snapshot, now, baseline)
            if not evaluation.is_fired:
                logger.debug("Rule no longer eligible", rule_id=rule_id, reason=evaluation.reason)
                return None

            try:
                committed = await self.store.commit_firing(rule.id, now, rule.last_triggered_at)
            except ConcurrentUpdateError:
                logger.warning("Lost firing commit race", rule_id=rule_id)
                return None

        event = TriggerEvent(rule=committed, snapshot=dict(snapshot), fired_at=now, evaluation=evaluation)
        await self._enqueue_dispatch(event)
        return event

    async def _enqueue_dispatch(self, event: TriggerEvent) -> None:
        await self.queue.enqueue(self._dispatch, DISPATCH_EVENT_TYPE, event.task_payload(), event)

    async def _dispatch(self, event: TriggerEvent) -> dict[str, Any]:
        """
        Run the dispatcher for a committed firing. The commit is never rolled back.

        A retry after a DispatchError re-runs only the modules that failed.
        """
        completed: dict[str, Any] = {}
        pending: list[str] | None = None
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.dispatch_max_attempts),
                wait=wait_exponential(multiplier=1, min=1, max=30),
                reraise=True,
            ):
                with attempt:
                    try:
                        results = await execute_with_timeout(
                            self.dispatcher.dispatch(event, modules=pending),
                            timeout=self.dispatch_timeout_seconds,
                            timeout_message=f"Dispatch for rule {event.rule_id} timed out",
                            rule_id=event.rule_id,
                        )
                    except DispatchError as e:
                        completed.update(e.results)
                        pending = [module for module in event.rule.modules_to_trigger if module in e.failures]
                        raise
                    return {**completed, **results}
        except Exception as e:
            logger.error(
                "Dispatch failed; rule stays in cooldown",
                rule_id=event.rule_id,
                attempts=self.dispatch_max_attempts,
                error=str(e),
            )
            raise
        return {}


_engine: TriggerEngine | None = None


def get_trigger_engine() -> TriggerEngine:
    """Shared engine wired to the global store, dispatcher and task queue."""
    global _engine
    if _engine is None:
        _engine = TriggerEngine(
            store=rule_store,
            trigger_dispatcher=dispatcher,
            queue=task_queue,
            dispatch_timeout_seconds=config.engine.dispatch_timeout_seconds,
            dispatch_max_attempts=config.engine.dispatch_max_attempts,
        )
    return _engine
