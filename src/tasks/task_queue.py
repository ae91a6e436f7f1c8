import asyncio
import hashlib
import json
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict

logger = structlog.get_logger(__name__)


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class Task(BaseModel):
    """Represents a task in the processing queue."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    event_type: str
    payload: dict[str, Any]
    func: Callable[..., Awaitable[Any]]
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = {}
    status: TaskStatus = TaskStatus.PENDING
    created_at: datetime
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None


class TaskQueue:
    """In-memory asyncio task queue with deduplication, consumed by background workers."""

    def __init__(self, max_processed_hashes: int = 10_000):
        self.queue: asyncio.Queue[Task] = asyncio.Queue()
        self.processed_hashes: dict[str, datetime] = {}
        self.max_processed_hashes = max_processed_hashes
        self.workers: list[asyncio.Task[None]] = []
        self.counts: dict[TaskStatus, int] = {status: 0 for status in TaskStatus}

    def _generate_task_id(
        self,
        event_type: str,
        payload: dict[str, Any],
        delivery_id: str | None = None,
        func: Callable[..., Any] | None = None,
    ) -> str:
        """Create a stable identifier so the same event is only queued once."""
        event_data: dict[str, Any] = {"event_type": event_type, "payload": payload}
        if delivery_id is not None:
            event_data["delivery_id"] = delivery_id
            event_data["func"] = getattr(func, "__qualname__", func.__class__.__name__) if func else None

        event_json = json.dumps(event_data, sort_keys=True, default=str)
        return hashlib.sha256(event_json.encode()).hexdigest()

    async def enqueue(
        self,
        func: Callable[..., Awaitable[Any]],
        event_type: str,
        payload: dict[str, Any],
        *args: Any,
        delivery_id: str | None = None,
        **kwargs: Any,
    ) -> bool:
        """
        Enqueue ``func(*args, **kwargs)`` for background processing.

        Returns:
            False if an identical event was already enqueued, True otherwise.
        """
        task_id = self._generate_task_id(event_type, payload, delivery_id=delivery_id, func=func)
        if task_id in self.processed_hashes:
            logger.info("Duplicate task skipped", task_id=task_id, event_type=event_type)
            return False

        self._remember(task_id)
        task = Task(
            id=task_id,
            event_type=event_type,
            payload=payload,
            func=func,
            args=args,
            kwargs=kwargs,
            created_at=datetime.now(UTC),
        )
        await self.queue.put(task)
        self.counts[TaskStatus.PENDING] += 1
        logger.info("Enqueued task", task_id=task_id, event_type=event_type)
        return True

    def _remember(self, task_id: str) -> None:
        self.processed_hashes[task_id] = datetime.now(UTC)
        if len(self.processed_hashes) > self.max_processed_hashes:
            # dicts keep insertion order: drop the oldest hash
            oldest = next(iter(self.processed_hashes))
            del self.processed_hashes[oldest]

    async def start_workers(self, num_workers: int = 3) -> None:
        """Start background workers."""
        for i in range(num_workers):
            worker = asyncio.create_task(self._worker(f"worker-{i}"))
            self.workers.append(worker)
        logger.info("Started background workers", count=num_workers)

    async def stop_workers(self) -> None:
        """Stop background workers."""
        for worker in self.workers:
            worker.cancel()
        await asyncio.gather(*self.workers, return_exceptions=True)
        self.workers.clear()
        logger.info("Stopped all background workers")

    async def _worker(self, worker_name: str) -> None:
        """Background worker that processes tasks until cancelled."""
        logger.info("Worker started", worker=worker_name)
        while True:
            task = await self.queue.get()
            try:
                await self._process_task(task, worker_name)
            finally:
                self.queue.task_done()

    async def _process_task(self, task: Task, worker_name: str) -> None:
        """Process a single task. Failures are recorded, never propagated to the worker loop."""
        self.counts[TaskStatus.PENDING] -= 1
        self.counts[TaskStatus.RUNNING] += 1
        task.status = TaskStatus.RUNNING
        task.started_at = datetime.now(UTC)
        try:
            await task.func(*task.args, **task.kwargs)
            task.status = TaskStatus.COMPLETED
            logger.debug("Task completed", task_id=task.id, worker=worker_name)
        except Exception as e:
            task.status = TaskStatus.FAILED
            task.error = str(e)
            logger.error("Task failed", task_id=task.id, event_type=task.event_type, worker=worker_name, error=str(e))
        finally:
            task.completed_at = datetime.now(UTC)
            self.counts[TaskStatus.RUNNING] -= 1
            self.counts[task.status] += 1

    def get_status(self) -> dict[str, Any]:
        return {
            "workers": len(self.workers),
            "queued": self.queue.qsize(),
            "tasks": {status.value: count for status, count in self.counts.items()},
        }


# Global task queue instance
task_queue = TaskQueue()
