"""
Scheduler.

Admits task requests into the priority queue and drains it with one
long-lived loop. Each dequeued execution runs as its own asyncio task,
bounded by a semaphore. The loop also periodically enqueues agents whose
schedule is due.
"""
import asyncio
from datetime import datetime
from typing import AsyncIterator, Optional

from agentscale.domain.exceptions import AgentNotFound, QuotaExceeded, SessionError
from agentscale.domain.models import (
    AgentSpec,
    AgentStatus,
    Execution,
    ExecutionStatus,
    FailureCategory,
    Priority,
    TriggerKind,
    UsageDelta,
    utcnow,
)
from agentscale.infrastructure.observability.context import log_context
from agentscale.infrastructure.observability.error_tracking import capture_exception
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import QUEUE_ADMISSIONS
from agentscale.interfaces.repository import IAgentRepository
from agentscale.orchestration.context_manager import STOPPED_BY_USER, ExecutionContextManager
from agentscale.orchestration.lifecycle import ExecutionLifecycle
from agentscale.orchestration.loop import ActionObservationLoop, TerminalOutcome
from agentscale.orchestration.queue import PriorityTaskQueue, QueuedTask
from agentscale.orchestration.usage import UsageLedger

logger = get_logger(__name__)

INTERRUPTED = "Execution interrupted by service shutdown"


class Scheduler:
    """
    Priority scheduling of executions under per-organization quotas.

    Errors inside a single execution are recorded on that execution; errors
    in the scheduling loop itself are logged, reported and retried.
    """

    def __init__(
        self,
        queue: PriorityTaskQueue,
        lifecycle: ExecutionLifecycle,
        contexts: ExecutionContextManager,
        loop: ActionObservationLoop,
        ledger: UsageLedger,
        agents: IAgentRepository,
        max_concurrency: int = 4,
        idle_interval: float = 5.0,
        scan_interval: float = 60.0,
        retry_delay: float = 5.0,
        scan_page_size: int = 500,
        refund_failed_runs: bool = False,
    ):
        self.queue = queue
        self.lifecycle = lifecycle
        self.contexts = contexts
        self.loop = loop
        self.ledger = ledger
        self.agents = agents
        self.max_concurrency = max_concurrency
        self.idle_interval = idle_interval
        self.scan_interval = scan_interval
        self.retry_delay = retry_delay
        self.scan_page_size = scan_page_size
        self.refund_failed_runs = refund_failed_runs

        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._tasks: set[asyncio.Task] = set()
        self._runner: Optional[asyncio.Task] = None
        self._last_scan: Optional[float] = None

    @property
    def running(self) -> bool:
        return self._runner is not None and not self._runner.done()

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def enqueue(
        self,
        agent_id: str,
        organization_id: str,
        priority: Optional[Priority] = None,
        trigger: TriggerKind = TriggerKind.MANUAL,
        scheduled_for: Optional[datetime] = None,
    ) -> Execution:
        """
        Create a pending execution and queue it.

        Returns immediately; the run happens on the scheduling loop.

        Args:
            agent_id: Agent to run
            organization_id: Organization the run is billed to
            priority: Queue tier; defaults to the agent's own priority
            trigger: What caused the run
            scheduled_for: Earliest start time

        Raises:
            AgentNotFound: If the agent does not exist in the organization
        """
        agent = await self.agents.get(agent_id)
        if agent is None or agent.organization_id != organization_id:
            raise AgentNotFound(
                f"Agent '{agent_id}' not found",
                details={"agent_id": agent_id, "organization_id": organization_id},
            )

        priority = Priority.parse(priority or agent.priority)
        execution = Execution(
            organization_id=organization_id,
            agent_id=agent_id,
            trigger=trigger,
            priority=priority,
        )
        await self.lifecycle.executions.create(execution)
        await self.queue.push(
            execution.id,
            agent_id=agent_id,
            organization_id=organization_id,
            priority=priority,
            scheduled_for=scheduled_for,
        )

        QUEUE_ADMISSIONS.labels(priority=priority.value, trigger=trigger.value).inc()
        logger.info(
            "execution_enqueued",
            execution_id=execution.id,
            agent_id=agent_id,
            organization_id=organization_id,
            priority=priority.value,
            trigger=trigger.value,
        )
        return execution

    async def stop_execution(self, execution_id: str) -> Optional[Execution]:
        """Stop a pending or running execution. Repeated calls are no-ops."""
        await self.queue.remove(execution_id)
        return await self.contexts.stop(execution_id)

    async def pause_execution(self, execution_id: str) -> Execution:
        """Pause a running execution."""
        return await self.contexts.pause(execution_id)

    def queue_status(self) -> dict:
        status = self.queue.status()
        status["running"] = len(self.contexts)
        return status

    # ------------------------------------------------------------------
    # Scheduling loop
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self.running:
            return
        self._runner = asyncio.create_task(self._run_forever(), name="agentscale-scheduler")
        logger.info("scheduler_started", max_concurrency=self.max_concurrency)

    async def stop(self) -> None:
        """Stop the loop and cancel in-flight executions."""
        if self._runner is not None:
            self._runner.cancel()
            await asyncio.gather(self._runner, return_exceptions=True)
            self._runner = None

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        logger.info("scheduler_stopped")

    async def _run_forever(self) -> None:
        while True:
            try:
                await self._maybe_scan()
                await self._semaphore.acquire()
                try:
                    task = await self.queue.pop(timeout=self.idle_interval)
                except BaseException:
                    self._semaphore.release()
                    raise
                if task is None:
                    self._semaphore.release()
                    continue
                self._spawn(task)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception("scheduler_loop_error", error=str(e))
                capture_exception(e, extra={"component": "scheduler"})
                await asyncio.sleep(self.retry_delay)

    def _spawn(self, task: QueuedTask) -> None:
        runner = asyncio.create_task(self._run_task(task), name=f"execution-{task.execution_id}")
        self._tasks.add(runner)
        runner.add_done_callback(self._tasks.discard)

    async def _run_task(self, task: QueuedTask) -> None:
        try:
            await self.process(task)
        finally:
            self._semaphore.release()

    async def run_once(self) -> Optional[Execution]:
        """
        Process the next due task inline, if any.

        Returns:
            The execution in its resulting state, or None if nothing was due
        """
        task = await self.queue.pop_nowait()
        if task is None:
            return None
        return await self.process(task)

    async def _maybe_scan(self) -> None:
        now = asyncio.get_running_loop().time()
        if self._last_scan is not None and now - self._last_scan < self.scan_interval:
            return
        self._last_scan = now
        await self.scan_scheduled_agents()

    async def scan_scheduled_agents(self, now: Optional[datetime] = None) -> list[Execution]:
        """
        Enqueue every active, scheduled agent that is due and idle.

        An agent with a pending or running execution is skipped.
        """
        now = now or utcnow()
        created = []
        async for agent in self._active_agents():
            if not agent.is_due(now):
                continue
            busy = False
            for status in (ExecutionStatus.PENDING, ExecutionStatus.RUNNING):
                if await self.lifecycle.executions.get_many(limit=1, agent_id=agent.id, status=status):
                    busy = True
                    break
            if busy:
                continue
            created.append(
                await self.enqueue(agent.id, agent.organization_id, trigger=TriggerKind.SCHEDULED)
            )
        if created:
            logger.info("scheduled_agents_enqueued", count=len(created))
        return created

    async def _active_agents(self) -> AsyncIterator[AgentSpec]:
        skip = 0
        while True:
            page = await self.agents.get_many(
                skip=skip,
                limit=self.scan_page_size,
                status=AgentStatus.ACTIVE,
            )
            for agent in page:
                yield agent
            if len(page) < self.scan_page_size:
                return
            skip += self.scan_page_size

    # ------------------------------------------------------------------
    # Running one execution
    # ------------------------------------------------------------------

    async def process(self, task: QueuedTask) -> Optional[Execution]:
        """
        Run one dequeued task to a terminal status.

        Never raises for failures of the execution itself.
        """
        execution = await self.lifecycle.executions.get(task.execution_id)
        if execution is None or execution.status != ExecutionStatus.PENDING:
            logger.info(
                "queued_task_skipped",
                execution_id=task.execution_id,
                status=execution.status.value if execution else None,
            )
            return execution

        reserved = consumed = False
        outcome: Optional[TerminalOutcome] = None
        with log_context(
            execution_id=task.execution_id,
            agent_id=task.agent_id,
            organization_id=task.organization_id,
        ):
            try:
                reserved = await self.ledger.reserve(task.organization_id)
                if not reserved:
                    logger.warning("quota_exceeded")
                    return await self.lifecycle.fail(
                        task.execution_id,
                        QuotaExceeded.default_message,
                        FailureCategory.QUOTA_EXCEEDED,
                    )

                agent = await self.agents.get(task.agent_id)
                if agent is None:
                    return await self.lifecycle.fail(
                        task.execution_id,
                        AgentNotFound.default_message,
                        FailureCategory.AGENT_NOT_FOUND,
                    )

                running = await self.lifecycle.transition(task.execution_id, ExecutionStatus.RUNNING)
                if running is None:
                    return await self.lifecycle.executions.get(task.execution_id)
                consumed = True
                await self.agents.update(agent.id, last_run=running.start_time)

                outcome = await self._execute(agent, running)
                return await self._finalize(task.execution_id, outcome)

            except asyncio.CancelledError:
                await self.lifecycle.fail(task.execution_id, INTERRUPTED, FailureCategory.INTERNAL_ERROR)
                raise
            except Exception as e:
                logger.exception("execution_crashed", error=str(e))
                capture_exception(e, extra={"execution_id": task.execution_id})
                return await self.lifecycle.fail(
                    task.execution_id,
                    f"Internal error: {e}",
                    FailureCategory.INTERNAL_ERROR,
                )
            finally:
                if reserved:
                    await self._record_usage(task.organization_id, outcome, consumed)

    async def _execute(self, agent, execution: Execution) -> TerminalOutcome:
        try:
            async with self.contexts.session(agent, execution) as context:
                current = await self.lifecycle.get(execution.id)
                if current.status != ExecutionStatus.RUNNING:
                    return TerminalOutcome(
                        status=ExecutionStatus.FAILED,
                        error=STOPPED_BY_USER,
                        category=FailureCategory.STOPPED_BY_USER,
                    )
                return await self.loop.run(context)
        except SessionError as e:
            logger.error("session_failed", error=e.message)
            return TerminalOutcome(
                status=ExecutionStatus.FAILED,
                error=e.message,
                category=FailureCategory.RESOURCE_ERROR,
            )

    async def _finalize(self, execution_id: str, outcome: TerminalOutcome) -> Execution:
        values = {"actions": outcome.actions, "observation_refs": outcome.observation_refs}
        if outcome.succeeded:
            updated = await self.lifecycle.transition(
                execution_id,
                ExecutionStatus.COMPLETED,
                summary=outcome.summary,
                **values,
            )
        else:
            updated = await self.lifecycle.fail(
                execution_id,
                outcome.error or "Execution failed",
                outcome.category or FailureCategory.INTERNAL_ERROR,
                **values,
            )
        # A stop or pause that landed first keeps its status
        return updated or await self.lifecycle.get(execution_id)

    async def _record_usage(
        self,
        organization_id: str,
        outcome: Optional[TerminalOutcome],
        consumed: bool = True,
    ) -> None:
        """Record one run's usage, then drop its quota reservation."""
        try:
            if not consumed:
                return
            if self.refund_failed_runs and outcome is not None and not outcome.succeeded:
                logger.info("usage_refunded", category=outcome.category.value if outcome.category else None)
                return
            await self.ledger.record(organization_id, UsageDelta(api_calls=1, browser_sessions=1))
        except Exception as e:
            logger.exception("usage_record_failed", error=str(e))
            capture_exception(e, extra={"organization_id": organization_id})
        finally:
            self.ledger.release(organization_id)
