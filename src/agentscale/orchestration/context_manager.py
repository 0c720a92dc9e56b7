"""
Execution context manager.

Owns the live-context table (execution id -> ExecutionContext). It is the
only component that launches or tears down automation sessions. Every
session is released exactly once, whatever way the run ends.
"""
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from agentscale.domain.actions import Action
from agentscale.domain.exceptions import ExecutionNotFound, InvalidTransition, SessionError
from agentscale.domain.models import AgentSpec, Execution, ExecutionStatus, FailureCategory
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import ACTIVE_CONTEXTS
from agentscale.interfaces.session import IAutomationSession, ISessionLauncher, Observation
from agentscale.orchestration.lifecycle import ExecutionLifecycle

logger = get_logger(__name__)

STOPPED_BY_USER = "Execution stopped by user"


@dataclass
class ExecutionContext:
    """Live resources and accumulators for one running execution."""
    execution_id: str
    agent: AgentSpec
    session: IAutomationSession
    observations: list[Observation] = field(default_factory=list)
    actions: list[Action] = field(default_factory=list)
    stop_requested: asyncio.Event = field(default_factory=asyncio.Event)
    closed: bool = False

    @property
    def stopped(self) -> bool:
        return self.stop_requested.is_set() or self.closed

    @property
    def actions_wire(self) -> list[dict[str, Any]]:
        return [action.to_wire() for action in self.actions]

    @property
    def observation_refs(self) -> list[str]:
        return [observation.ref for observation in self.observations]


class ExecutionContextManager:
    """Opens, tracks and closes execution contexts."""

    def __init__(
        self,
        launcher: ISessionLauncher,
        lifecycle: ExecutionLifecycle,
        default_address: str = "https://example.com",
    ):
        self.launcher = launcher
        self.lifecycle = lifecycle
        self.default_address = default_address
        self._contexts: dict[str, ExecutionContext] = {}
        self._opening: set[str] = set()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._contexts)

    def __contains__(self, execution_id: str) -> bool:
        return execution_id in self._contexts

    def get(self, execution_id: str) -> Optional[ExecutionContext]:
        return self._contexts.get(execution_id)

    def active_ids(self) -> list[str]:
        return list(self._contexts)

    async def open(self, agent: AgentSpec, execution: Execution) -> ExecutionContext:
        """
        Launch a fresh session and navigate it to the agent's target.

        Args:
            agent: Agent being run
            execution: Execution the context belongs to

        Returns:
            New context registered in the live table

        Raises:
            SessionError: If a context already exists for the execution, or
                the session cannot be launched or navigated
        """
        async with self._lock:
            if execution.id in self._contexts or execution.id in self._opening:
                raise SessionError(
                    "Execution already has a live context",
                    details={"execution_id": execution.id},
                )
            self._opening.add(execution.id)

        address = agent.target_address or self.default_address
        try:
            session = await self._launch(execution.id)
            async with self._lock:
                # Left open: it is still owned by the other context
                if any(ctx.session is session for ctx in self._contexts.values()):
                    raise SessionError(
                        "Launcher returned a session already bound to another execution",
                        details={"execution_id": execution.id, "session_id": session.id},
                    )
            try:
                await session.navigate(address)
            except SessionError:
                await self._release(session, execution.id)
                raise
            except Exception as e:
                await self._release(session, execution.id)
                raise SessionError(
                    f"Failed to navigate to {address}: {e}",
                    details={"execution_id": execution.id, "address": address},
                ) from e

            context = ExecutionContext(execution_id=execution.id, agent=agent, session=session)
            async with self._lock:
                self._contexts[execution.id] = context
                ACTIVE_CONTEXTS.set(len(self._contexts))
        finally:
            self._opening.discard(execution.id)

        logger.info(
            "context_opened",
            execution_id=execution.id,
            agent_id=agent.id,
            session_id=session.id,
            address=address,
        )
        return context

    async def close(self, execution_id: str) -> bool:
        """
        Release the execution's session and drop its context.

        Idempotent: unknown or already closed ids are a no-op. Teardown
        errors are logged, never raised.

        Returns:
            True if a live context was closed by this call
        """
        async with self._lock:
            context = self._contexts.pop(execution_id, None)
            if context is None:
                return False
            context.closed = True
            context.stop_requested.set()
            ACTIVE_CONTEXTS.set(len(self._contexts))

        await self._release(context.session, execution_id)
        logger.info("context_closed", execution_id=execution_id, session_id=context.session.id)
        return True

    async def stop(self, execution_id: str) -> Optional[Execution]:
        """
        Fail the execution as stopped by the user and close its context.

        Safe to call concurrently with a running loop iteration and safe to
        repeat; unknown ids and executions already in a terminal status are
        left alone.

        Returns:
            The failed execution, or None if nothing changed
        """
        context = self._contexts.get(execution_id)
        if context is not None:
            context.stop_requested.set()

        values: dict[str, Any] = {}
        if context is not None:
            values = {"actions": context.actions_wire, "observation_refs": context.observation_refs}
        try:
            execution = await self.lifecycle.fail(
                execution_id,
                STOPPED_BY_USER,
                FailureCategory.STOPPED_BY_USER,
                **values,
            )
        except ExecutionNotFound:
            execution = None

        await self.close(execution_id)
        if execution is not None:
            logger.info("execution_stopped", execution_id=execution_id)
        return execution

    async def pause(self, execution_id: str) -> Execution:
        """
        Move a running execution to paused and close its context.

        Resuming is not supported; a paused execution keeps its partial
        history.

        Raises:
            ExecutionNotFound: If the execution does not exist
            InvalidTransition: If the execution is not running
        """
        context = self._contexts.get(execution_id)
        values: dict[str, Any] = {}
        if context is not None:
            values = {"actions": context.actions_wire, "observation_refs": context.observation_refs}

        execution = await self.lifecycle.transition(execution_id, ExecutionStatus.PAUSED, **values)
        if execution is None:
            current = await self.lifecycle.get(execution_id)
            raise InvalidTransition(
                f"Cannot pause an execution that is {current.status.value}",
                details={"execution_id": execution_id, "status": current.status.value},
            )

        await self.close(execution_id)
        logger.info("execution_paused", execution_id=execution_id)
        return execution

    @asynccontextmanager
    async def session(self, agent: AgentSpec, execution: Execution) -> AsyncIterator[ExecutionContext]:
        """Open a context for the duration of the block; closed on every exit path."""
        context = await self.open(agent, execution)
        try:
            yield context
        finally:
            await self.close(execution.id)

    async def close_all(self) -> None:
        """Close every live context (used at shutdown)."""
        for execution_id in list(self._contexts):
            await self.close(execution_id)

    async def _launch(self, execution_id: str) -> IAutomationSession:
        try:
            return await self.launcher.launch()
        except SessionError:
            raise
        except Exception as e:
            raise SessionError(
                f"Failed to launch automation session: {e}",
                details={"execution_id": execution_id},
            ) from e

    async def _release(self, session: IAutomationSession, execution_id: str) -> None:
        try:
            await session.close()
        except Exception as e:
            logger.warning(
                "session_close_failed",
                execution_id=execution_id,
                session_id=session.id,
                error=str(e),
                error_type=type(e).__name__,
            )
