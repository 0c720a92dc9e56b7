"""
Execution status transitions.

Every status change goes through ``ExecutionLifecycle.transition`` which
validates it against the state machine, persists it, records metrics and
publishes a ``status-changed`` event. Transitions are serialized so a
user stop racing the loop's own finalization resolves to exactly one
terminal status.
"""
import asyncio
from typing import Any, Optional

from agentscale.domain.events import StatusChangedEvent
from agentscale.domain.exceptions import ExecutionNotFound
from agentscale.domain.models import Execution, ExecutionStatus, FailureCategory, utcnow
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import (
    EXECUTION_DURATION_SECONDS,
    EXECUTIONS_TOTAL,
)
from agentscale.interfaces.repository import IExecutionRepository
from agentscale.orchestration.broadcaster import EventBroadcaster

logger = get_logger(__name__)


class ExecutionLifecycle:
    """Applies, persists and announces execution status changes."""

    def __init__(self, executions: IExecutionRepository, broadcaster: EventBroadcaster):
        self.executions = executions
        self.broadcaster = broadcaster
        self._lock = asyncio.Lock()

    async def get(self, execution_id: str) -> Execution:
        execution = await self.executions.get(execution_id)
        if execution is None:
            raise ExecutionNotFound(
                f"Execution '{execution_id}' not found",
                details={"execution_id": execution_id},
            )
        return execution

    async def transition(
        self,
        execution_id: str,
        target: ExecutionStatus,
        **values: Any,
    ) -> Optional[Execution]:
        """
        Move an execution to ``target``.

        Args:
            execution_id: Execution to update
            target: New status
            **values: Extra fields persisted with the change (error, summary, ...)

        Returns:
            The updated execution, or None if the current status does not
            allow the move (already terminal, paused, ...)

        Raises:
            ExecutionNotFound: If the execution does not exist
        """
        async with self._lock:
            execution = await self.get(execution_id)
            previous = execution.status
            if not previous.can_transition_to(target):
                logger.debug(
                    "transition_ignored",
                    execution_id=execution_id,
                    status=previous.value,
                    target=target.value,
                )
                return None

            now = utcnow()
            values["status"] = target
            if target == ExecutionStatus.RUNNING:
                values.setdefault("start_time", now)
            else:
                values.setdefault("end_time", now)
            updated = await self.executions.update(execution_id, **values)

        self._observe(updated)
        logger.info(
            "execution_status_changed",
            execution_id=execution_id,
            agent_id=updated.agent_id,
            previous_status=previous.value,
            status=target.value,
            error=updated.error,
        )
        self.broadcaster.publish(
            StatusChangedEvent(
                agent_id=updated.agent_id,
                execution_id=execution_id,
                status=target,
                previous_status=previous,
                error=updated.error if target == ExecutionStatus.FAILED else None,
                summary=updated.summary if target == ExecutionStatus.COMPLETED else None,
            )
        )
        return updated

    async def fail(
        self,
        execution_id: str,
        error: str,
        category: FailureCategory,
        **values: Any,
    ) -> Optional[Execution]:
        """Shortcut for a transition to FAILED with an error and category."""
        return await self.transition(
            execution_id,
            ExecutionStatus.FAILED,
            error=error,
            error_category=category,
            **values,
        )

    async def record_progress(
        self,
        execution_id: str,
        actions: list[dict[str, Any]],
        observation_refs: list[str],
    ) -> None:
        """Persist accumulated actions and observation refs of a running execution."""
        async with self._lock:
            execution = await self.executions.get(execution_id)
            if execution is None or execution.status != ExecutionStatus.RUNNING:
                return
            await self.executions.update(
                execution_id,
                actions=list(actions),
                observation_refs=list(observation_refs),
            )

    @staticmethod
    def _observe(execution: Execution) -> None:
        if not execution.status.is_terminal:
            return
        category = execution.error_category.value if execution.error_category else "none"
        EXECUTIONS_TOTAL.labels(status=execution.status.value, category=category).inc()
        if execution.start_time and execution.end_time:
            EXECUTION_DURATION_SECONDS.observe(
                (execution.end_time - execution.start_time).total_seconds()
            )
