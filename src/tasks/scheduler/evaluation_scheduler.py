import asyncio
from datetime import datetime
from typing import Any

import structlog

from src.core.config import config
from src.snapshots.provider import MetricSnapshotProvider, snapshot_provider
from src.triggers.engine import TriggerEngine, get_trigger_engine

logger = structlog.get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


class EvaluationScheduler:
    """Polls the snapshot provider on a fixed interval and runs an evaluation tick."""

    def __init__(
        self,
        engine: TriggerEngine,
        provider: MetricSnapshotProvider,
        interval_seconds: float = 300,
        error_backoff_seconds: float = ERROR_BACKOFF_SECONDS,
    ):
        self.engine = engine
        self.provider = provider
        self.interval_seconds = interval_seconds
        self.error_backoff_seconds = error_backoff_seconds
        self.running = False
        self.scheduler_task: asyncio.Task[None] | None = None
        self.ticks_run = 0
        self.last_error: str | None = None
        self.last_tick_at: datetime | None = None

    async def start(self) -> None:
        """Start the scheduler."""
        if self.running:
            logger.warning("Evaluation scheduler is already running")
            return

        self.running = True
        self.scheduler_task = asyncio.create_task(self._scheduler_loop())
        logger.info("🕒 Evaluation scheduler started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Stop the scheduler."""
        self.running = False
        if self.scheduler_task:
            self.scheduler_task.cancel()
            try:
                await self.scheduler_task
            except asyncio.CancelledError:
                pass
            self.scheduler_task = None
        logger.info("🛑 Evaluation scheduler stopped")

    async def _scheduler_loop(self) -> None:
        """Main scheduler loop."""
        while self.running:
            try:
                await self.run_once()
                await asyncio.sleep(self.interval_seconds)
            except asyncio.CancelledError:
                logger.info("Scheduler loop cancelled")
                break
            except Exception as e:
                self.last_error = str(e)
                logger.error("Scheduler error", error=str(e), exc_info=True)
                await asyncio.sleep(self.error_backoff_seconds)

    async def run_once(self) -> int:
        """Run a single tick with the provider's current snapshot. Returns the number of firings."""
        snapshot = await self.provider.get_current()
        fired = await self.engine.run_tick(snapshot)
        self.ticks_run += 1
        self.last_tick_at = self.engine.last_evaluation_at
        return len(fired)

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "interval_seconds": self.interval_seconds,
            "ticks_run": self.ticks_run,
            "last_tick_at": self.last_tick_at.isoformat() if self.last_tick_at else None,
            "last_error": self.last_error,
        }


_scheduler: EvaluationScheduler | None = None


def get_evaluation_scheduler() -> EvaluationScheduler:
    """Lazy-load the scheduler so the engine is only built when first needed."""
    global _scheduler
    if _scheduler is None:
        _scheduler = EvaluationScheduler(
            engine=get_trigger_engine(),
            provider=snapshot_provider,
            interval_seconds=config.engine.evaluation_interval_seconds,
        )
    return _scheduler
