"""
Priority task queue.

Orders queued executions by tier (critical > high > normal > low) and by
enqueue order within a tier. A task with a future ``scheduled_for`` is
held back without blocking due tasks behind it.
"""
import asyncio
import heapq
import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from agentscale.domain.exceptions import AlreadyQueued
from agentscale.domain.models import Priority, utcnow
from agentscale.infrastructure.observability.metrics import QUEUE_DEPTH


@dataclass
class QueuedTask:
    """Ephemeral scheduling record for one pending execution."""
    execution_id: str
    agent_id: str
    organization_id: str
    priority: Priority
    sequence: int
    enqueued_at: datetime = field(default_factory=utcnow)
    scheduled_for: Optional[datetime] = None

    @property
    def sort_key(self) -> tuple[int, int]:
        return (self.priority.rank, self.sequence)

    def is_due(self, now: datetime) -> bool:
        return self.scheduled_for is None or self.scheduled_for <= now


class PriorityTaskQueue:
    """
    Heap-backed queue guarded by an asyncio.Lock.

    Execution ids are unique across queued entries.
    """

    def __init__(self):
        self._heap: list[tuple[int, int, QueuedTask]] = []
        self._ids: set[str] = set()
        self._counter = itertools.count()
        self._lock = asyncio.Lock()
        self._available = asyncio.Event()

    def __len__(self) -> int:
        return len(self._heap)

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._ids

    async def push(
        self,
        execution_id: str,
        agent_id: str,
        organization_id: str,
        priority: Priority,
        scheduled_for: Optional[datetime] = None,
    ) -> QueuedTask:
        """
        Insert a task in priority order.

        Raises:
            AlreadyQueued: If the execution id is already queued
        """
        async with self._lock:
            if execution_id in self._ids:
                raise AlreadyQueued(details={"execution_id": execution_id})
            task = QueuedTask(
                execution_id=execution_id,
                agent_id=agent_id,
                organization_id=organization_id,
                priority=priority,
                sequence=next(self._counter),
                scheduled_for=scheduled_for,
            )
            heapq.heappush(self._heap, (*task.sort_key, task))
            self._ids.add(execution_id)
            self._update_depth()
            self._available.set()
        return task

    async def pop(self, timeout: Optional[float] = None) -> Optional[QueuedTask]:
        """
        Remove and return the highest-priority due task.

        Waits until one is available, a held-back task becomes due, or
        ``timeout`` seconds pass.

        Returns:
            The task, or None on timeout
        """
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            async with self._lock:
                task = self._pop_due(utcnow())
                if task is not None:
                    return task
                self._available.clear()
                wait = self._seconds_until_next_due()

            if deadline is not None:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    return None
                wait = remaining if wait is None else min(wait, remaining)

            try:
                await asyncio.wait_for(self._available.wait(), wait)
            except asyncio.TimeoutError:
                pass

    async def pop_nowait(self) -> Optional[QueuedTask]:
        """Highest-priority due task, or None without waiting."""
        async with self._lock:
            return self._pop_due(utcnow())

    async def remove(self, execution_id: str) -> bool:
        """Drop a queued task. Returns False if it was not queued."""
        async with self._lock:
            if execution_id not in self._ids:
                return False
            self._heap = [entry for entry in self._heap if entry[2].execution_id != execution_id]
            heapq.heapify(self._heap)
            self._ids.discard(execution_id)
            self._update_depth()
            return True

    def status(self) -> dict:
        """Pending count and per-tier breakdown."""
        counts = {priority.value: 0 for priority in Priority}
        for _, _, task in self._heap:
            counts[task.priority.value] += 1
        return {"pending": len(self._heap), "priority_counts": counts}

    def _pop_due(self, now: datetime) -> Optional[QueuedTask]:
        held: list[tuple[int, int, QueuedTask]] = []
        found = None
        while self._heap:
            entry = heapq.heappop(self._heap)
            if entry[2].is_due(now):
                found = entry[2]
                break
            held.append(entry)
        for entry in held:
            heapq.heappush(self._heap, entry)
        if found is not None:
            self._ids.discard(found.execution_id)
            self._update_depth()
        return found

    def _seconds_until_next_due(self) -> Optional[float]:
        pending = [task.scheduled_for for _, _, task in self._heap if task.scheduled_for]
        if not pending:
            return None
        return max(0.0, (min(pending) - utcnow()).total_seconds())

    def _update_depth(self) -> None:
        for priority, count in self.status()["priority_counts"].items():
            QUEUE_DEPTH.labels(priority=priority).set(count)
