"""
Rate-limited priority queue for TicketBot replies.

Provides:
- Token bucket admission control
- Priority class ordering, FIFO within a class
- Bounded capacity with immediate rejection
- A single drain loop executing one task per token
"""

import asyncio
import itertools
import math
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable

from loguru import logger

from ticketbot.auto_reply.clock import Clock, SystemClock
from ticketbot.auto_reply.errors import QueueFullError, TaskDiscardedError


# A delivery action: zero-argument coroutine function
TaskAction = Callable[[], Awaitable[Any]]


@dataclass
class QueueConfig:
    """Configuration for the rate-limited queue."""
    refill_rate: float = 8  # Tokens per second
    bucket_size: int = 15  # Burst capacity
    token_cost: int = 1  # Tokens per task
    max_queue_size: int = 100
    poll_interval_seconds: float = 0.05  # Wait between token checks


class TaskState(str, Enum):
    """Lifecycle of a queued task."""
    QUEUED = "queued"
    ADMITTED = "admitted"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REJECTED = "rejected"


@dataclass
class QueuedTask:
    """A task waiting for a token."""
    id: int
    action: TaskAction
    priority: bool
    submitted_at: float
    future: asyncio.Future
    state: TaskState = TaskState.QUEUED


@dataclass(frozen=True)
class QueueStatus:
    """Read-only snapshot of the queue."""
    available_tokens: float
    queue_length: int
    is_draining: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "available_tokens": self.available_tokens,
            "queue_length": self.queue_length,
            "is_draining": self.is_draining,
        }


class TokenBucket:
    """
    Token bucket refilled in whole tokens.

    The refill clock only advances when at least one whole token is
    added, so fractional accrual carries over to the next refill.
    """

    def __init__(self, capacity: int, refill_rate: float, clock: Clock):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")

        self.capacity = capacity
        self.refill_rate = refill_rate
        self.clock = clock
        self.tokens: float = float(capacity)
        self.last_refill_at = clock.now()

    def refill(self) -> int:
        """Add whole tokens for the time elapsed since the last refill."""
        now = self.clock.now()
        added = math.floor((now - self.last_refill_at) * self.refill_rate)
        if added > 0:
            self.tokens = min(float(self.capacity), self.tokens + added)
            self.last_refill_at = now
        return max(added, 0)

    def try_consume(self, cost: int = 1) -> bool:
        """Refill, then take `cost` tokens if available."""
        self.refill()
        if self.tokens >= cost:
            self.tokens -= cost
            return True
        return False


class RateLimitedQueue:
    """
    Priority queue drained at a token-bucket rate.

    Features:
    - Priority tasks jump ahead of queued non-priority tasks only
    - Submission fails fast with QueueFullError when at capacity
    - One drain loop at a time, guarded by a flag
    - Task failures resolve the submitter's future, never the loop
    """

    def __init__(self, config: QueueConfig | None = None, clock: Clock | None = None):
        self.config = config or QueueConfig()
        self.clock = clock or SystemClock()

        if self.config.token_cost > self.config.bucket_size:
            raise ValueError("token_cost cannot exceed bucket_size")

        self.bucket = TokenBucket(
            capacity=self.config.bucket_size,
            refill_rate=self.config.refill_rate,
            clock=self.clock,
        )

        # One deque per priority class
        self._priority: deque[QueuedTask] = deque()
        self._normal: deque[QueuedTask] = deque()

        self._ids = itertools.count(1)
        self._draining = False
        self._drain_task: asyncio.Task | None = None

        # Stats
        self._total_submitted = 0
        self._total_succeeded = 0
        self._total_failed = 0
        self._total_rejected = 0
        self._total_discarded = 0

    def enqueue(self, action: TaskAction, priority: bool = False) -> asyncio.Future:
        """
        Queue a task and start draining.

        Args:
            action: Coroutine function performing the delivery.
            priority: Whether the task belongs to the priority class.

        Returns:
            Future resolved with the action's result or exception.

        Raises:
            QueueFullError: If the queue is at capacity.
        """
        length = self.size
        if length >= self.config.max_queue_size:
            self._total_rejected += 1
            raise QueueFullError(length, self.config.max_queue_size)

        task = QueuedTask(
            id=next(self._ids),
            action=action,
            priority=priority,
            submitted_at=self.clock.now(),
            future=asyncio.get_running_loop().create_future(),
        )
        (self._priority if priority else self._normal).append(task)
        self._total_submitted += 1

        self._ensure_draining()
        return task.future

    async def submit(self, action: TaskAction, priority: bool = False) -> Any:
        """Queue a task and wait for its outcome."""
        return await self.enqueue(action, priority)

    def _ensure_draining(self) -> None:
        if self._draining:
            return
        self._draining = True
        self._drain_task = asyncio.create_task(self._drain())

    def _pop_next(self) -> QueuedTask:
        if self._priority:
            return self._priority.popleft()
        return self._normal.popleft()

    async def _drain(self) -> None:
        """Execute queued tasks as tokens become available."""
        try:
            while self.size > 0:
                if not self.bucket.try_consume(self.config.token_cost):
                    await self.clock.sleep(self.config.poll_interval_seconds)
                    continue

                task = self._pop_next()
                task.state = TaskState.ADMITTED
                await self._execute(task)
        finally:
            self._draining = False

    async def _execute(self, task: QueuedTask) -> None:
        task.state = TaskState.EXECUTING
        try:
            result = await task.action()
        except asyncio.CancelledError:
            task.state = TaskState.FAILED
            if not task.future.done():
                task.future.cancel()
            raise
        except Exception as e:
            task.state = TaskState.FAILED
            self._total_failed += 1
            if not task.future.done():
                task.future.set_exception(e)
            return

        task.state = TaskState.SUCCEEDED
        self._total_succeeded += 1
        if not task.future.done():
            task.future.set_result(result)

    def clear(self) -> int:
        """
        Discard every queued task that has not started executing.

        Returns:
            Number of tasks discarded.
        """
        discarded = list(self._priority) + list(self._normal)
        self._priority.clear()
        self._normal.clear()

        for task in discarded:
            task.state = TaskState.REJECTED
            if not task.future.done():
                task.future.set_exception(TaskDiscardedError("Task discarded before execution"))
                # Mark retrieved so unawaited futures do not warn
                task.future.exception()

        self._total_discarded += len(discarded)
        if discarded:
            logger.info(f"Queue cleared: discarded {len(discarded)} pending tasks")
        return len(discarded)

    async def close(self) -> None:
        """Discard pending tasks and stop the drain loop."""
        self.clear()
        if self._drain_task and not self._drain_task.done():
            self._drain_task.cancel()
            try:
                await self._drain_task
            except asyncio.CancelledError:
                pass
        self._drain_task = None
        self._draining = False

    @property
    def size(self) -> int:
        """Number of tasks waiting for a token."""
        return len(self._priority) + len(self._normal)

    @property
    def is_empty(self) -> bool:
        return self.size == 0

    @property
    def is_draining(self) -> bool:
        return self._draining

    def pending(self) -> list[QueuedTask]:
        """Queued tasks in execution order."""
        return list(self._priority) + list(self._normal)

    def status(self) -> QueueStatus:
        """Snapshot of tokens, queue length and drain state."""
        return QueueStatus(
            available_tokens=self.bucket.tokens,
            queue_length=self.size,
            is_draining=self._draining,
        )

    def get_stats(self) -> dict[str, Any]:
        """Get queue statistics."""
        return {
            **self.status().to_dict(),
            "bucket_size": self.config.bucket_size,
            "refill_rate": self.config.refill_rate,
            "max_queue_size": self.config.max_queue_size,
            "total_submitted": self._total_submitted,
            "total_succeeded": self._total_succeeded,
            "total_failed": self._total_failed,
            "total_rejected": self._total_rejected,
            "total_discarded": self._total_discarded,
        }
