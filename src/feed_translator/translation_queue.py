"""Bounded-concurrency queue for translation work.

At most ``max_concurrent`` tasks are in flight; the rest wait in FIFO order.
Every settled task starts the next queued one, so the queue keeps itself
busy without an outer polling loop. There is no retry and no priority.
"""

import asyncio
import itertools
import logging
import time
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Sequence, Set

# A zero-argument coroutine function.
TaskFn = Callable[[], Awaitable[Any]]


class TaskStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskMetadata:
    """
    Reporting data attached to a task.
    """
    description: str = "" # Human-readable description of the task.
    entry_id: Optional[str] = None # The guid of the entry the task works on.


@dataclass
class QueueItem:
    """
    A task waiting in or taken from the queue.
    """
    id: int
    task: TaskFn
    metadata: TaskMetadata
    future: asyncio.Future
    status: TaskStatus = TaskStatus.PENDING


@dataclass(frozen=True)
class RunningTask:
    """
    A task currently holding a concurrency slot.
    """
    id: int
    metadata: TaskMetadata
    started_at: datetime # Wall-clock start, for display.
    started: float # Monotonic start, for durations.
    duration: float = 0.0 # Seconds since start, filled in snapshots.


@dataclass(frozen=True)
class QueueProgress:
    """
    Read-only view of the progress counters.
    """
    total: int
    completed: int
    failed: int
    pending: int
    current: List[RunningTask]
    percentage: int
    summary: str


@dataclass(frozen=True)
class QueueStatus:
    max_concurrent: int
    running: int
    queued: int
    progress: QueueProgress


@dataclass(frozen=True)
class BatchTask:
    """
    One element of a batch submission.
    """
    task: TaskFn
    metadata: TaskMetadata = field(default_factory=TaskMetadata)


@dataclass(frozen=True)
class SettledResult:
    """
    Outcome of one task of a batch, either fulfilled with a value or rejected with a reason.
    """
    status: str # "fulfilled" or "rejected".
    value: Any = None
    reason: Optional[BaseException] = None

    @property
    def fulfilled(self) -> bool:
        return self.status == "fulfilled"


@dataclass
class _Progress:
    total: int = 0
    completed: int = 0
    failed: int = 0
    current: Dict[int, RunningTask] = field(default_factory=dict)


class TranslationQueue:
    """
    Runs queued coroutine functions with bounded concurrency and tracks progress.

    Counters are only touched from the event loop thread, so no locking is needed.
    """
    def __init__(self, max_concurrent: int = 3, task_timeout: Optional[float] = None):
        """
        Args:
            max_concurrent: Maximum number of tasks in flight. Fixed for the queue's lifetime.
            task_timeout: Seconds after which a running task is cancelled and recorded as
                failed. None lets tasks run indefinitely.
        """
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be at least 1, got {max_concurrent}")
        self.max_concurrent = max_concurrent
        self.task_timeout = task_timeout
        self.running = 0
        self.queue: Deque[QueueItem] = deque()
        self._progress = _Progress()
        self._ids = itertools.count(1)
        self._workers: Set[asyncio.Task] = set()
        self._drained = asyncio.Event()
        self._drained.set()

    def add_task(self, task: TaskFn, metadata: Optional[TaskMetadata] = None) -> asyncio.Future:
        """
        Queue ``task`` and return a future settled with its result or exception.

        Must be called from within a running event loop.
        """
        future = asyncio.get_running_loop().create_future()
        item = QueueItem(
            id=next(self._ids),
            task=task,
            metadata=metadata or TaskMetadata(),
            future=future,
        )
        self.queue.append(item)
        self._progress.total += 1
        self._drained.clear()
        self._process_queue()
        return future

    async def add_batch_tasks(self, tasks: Sequence[BatchTask]) -> List[SettledResult]:
        """
        Queue all ``tasks`` and wait until each has settled.

        The results are in submission order. A failing task never affects its siblings.
        """
        futures = [self.add_task(batch_task.task, batch_task.metadata) for batch_task in tasks]
        outcomes = await asyncio.gather(*futures, return_exceptions=True)
        return [
            SettledResult(status="rejected", reason=outcome)
            if isinstance(outcome, BaseException)
            else SettledResult(status="fulfilled", value=outcome)
            for outcome in outcomes
        ]

    def _process_queue(self) -> None:
        while self.running < self.max_concurrent and self.queue:
            item = self.queue.popleft()
            self.running += 1
            item.status = TaskStatus.RUNNING
            self._progress.current[item.id] = RunningTask(
                id=item.id,
                metadata=item.metadata,
                started_at=datetime.now(timezone.utc),
                started=time.monotonic(),
            )
            logging.debug(f"Starting task {item.id}: {item.metadata.description}")

            worker = asyncio.create_task(self._run(item))
            self._workers.add(worker)
            worker.add_done_callback(self._workers.discard)

    async def _run(self, item: QueueItem) -> None:
        try:
            if self.task_timeout is not None:
                result = await asyncio.wait_for(item.task(), timeout=self.task_timeout)
            else:
                result = await item.task()
        except asyncio.CancelledError:
            item.status = TaskStatus.FAILED
            self._progress.failed += 1
            item.future.cancel()
            raise
        except Exception as e:
            item.status = TaskStatus.FAILED
            self._progress.failed += 1
            logging.debug(f"Task {item.id} failed: {e!r}")
            if not item.future.done():
                item.future.set_exception(e)
        else:
            item.status = TaskStatus.COMPLETED
            self._progress.completed += 1
            logging.debug(f"Task {item.id} completed")
            if not item.future.done():
                item.future.set_result(result)
        finally:
            self.running -= 1
            self._progress.current.pop(item.id, None)
            self._process_queue()
            if self.running == 0 and not self.queue:
                self._drained.set()

    async def wait_for_completion(self) -> None:
        """
        Return once no task is running and none is queued.
        """
        while self.running > 0 or self.queue:
            await self._drained.wait()

    def get_progress(self) -> QueueProgress:
        total = self._progress.total
        completed = self._progress.completed
        failed = self._progress.failed
        percentage = round(completed / total * 100) if total > 0 else 0
        now = time.monotonic()
        return QueueProgress(
            total=total,
            completed=completed,
            failed=failed,
            pending=total - completed - failed,
            current=[
                replace(running_task, duration=now - running_task.started)
                for running_task in self._progress.current.values()
            ],
            percentage=percentage,
            summary=f"{completed}/{total} ({percentage}%)",
        )

    def get_status(self) -> QueueStatus:
        return QueueStatus(
            max_concurrent=self.max_concurrent,
            running=self.running,
            queued=len(self.queue),
            progress=self.get_progress(),
        )

    def reset_progress(self) -> None:
        """
        Zero the progress counters so they describe a single processing cycle.

        Tasks still running or queued are carried into the new cycle.
        """
        current = dict(self._progress.current)
        self._progress = _Progress(
            total=len(current) + len(self.queue),
            current=current,
        )
