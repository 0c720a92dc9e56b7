"""
Action-observation loop.

Observe, decide one action, act, re-observe, until the decision strategy
signals completion or the iteration cap is hit. The primary strategy is
replaced by the fallback strategy at most once per run and never
reconsidered afterwards.
"""
import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from agentscale.domain.events import ActionEvent, ObservationEvent, ObservationPayload
from agentscale.domain.exceptions import ActionExecutionError, DecisionError, SessionError
from agentscale.domain.models import ExecutionStatus, FailureCategory
from agentscale.infrastructure.observability.context import log_context
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import DECISION_CALLS, DECISION_FALLBACKS
from agentscale.interfaces.decision import Decision, IDecisionStrategy
from agentscale.interfaces.session import Observation
from agentscale.orchestration.broadcaster import EventBroadcaster
from agentscale.orchestration.context_manager import STOPPED_BY_USER, ExecutionContext
from agentscale.orchestration.executor import ActionExecutor
from agentscale.orchestration.lifecycle import ExecutionLifecycle

logger = get_logger(__name__)

MAX_ITERATIONS_REACHED = "Maximum iterations reached without task completion"
DEFAULT_SUMMARY = "Task completed successfully"


class StrategyMode(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"


class StrategySelector:
    """Two-state strategy choice held for the lifetime of one run."""

    def __init__(self, primary: IDecisionStrategy, fallback: Optional[IDecisionStrategy] = None):
        self.primary = primary
        self.fallback = fallback
        self.mode = StrategyMode.PRIMARY

    @property
    def current(self) -> IDecisionStrategy:
        return self.primary if self.mode == StrategyMode.PRIMARY else self.fallback

    def switch_to_fallback(self) -> bool:
        """Switch once. Returns False if there is nothing left to switch to."""
        if self.mode == StrategyMode.FALLBACK or self.fallback is None:
            return False
        self.mode = StrategyMode.FALLBACK
        return True


@dataclass
class TerminalOutcome:
    """How a run ended, with its accumulated history."""
    status: ExecutionStatus
    summary: Optional[str] = None
    error: Optional[str] = None
    category: Optional[FailureCategory] = None
    iterations: int = 0
    strategy: StrategyMode = StrategyMode.PRIMARY
    actions: list[dict[str, Any]] = field(default_factory=list)
    observation_refs: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED


class ActionObservationLoop:
    """
    Drives one execution context to a terminal outcome.

    Per-agent ``loop`` overrides take precedence over the constructor
    defaults for the iteration cap and the pause between iterations.
    """

    def __init__(
        self,
        executor: ActionExecutor,
        broadcaster: EventBroadcaster,
        primary: IDecisionStrategy,
        fallback: Optional[IDecisionStrategy] = None,
        max_iterations: int = 20,
        step_delay_ms: int = 1000,
        lifecycle: Optional[ExecutionLifecycle] = None,
    ):
        self.executor = executor
        self.broadcaster = broadcaster
        self.primary = primary
        self.fallback = fallback
        self.max_iterations = max_iterations
        self.step_delay_ms = step_delay_ms
        self.lifecycle = lifecycle

    async def run(self, context: ExecutionContext) -> TerminalOutcome:
        """
        Run the loop until completion, failure, cap or stop.

        Never raises for decision, action or session errors; those become
        failed outcomes carrying the partial history.
        """
        agent = context.agent
        max_iterations = agent.loop.max_iterations or self.max_iterations
        step_delay_ms = (
            agent.loop.observation_interval_ms
            if agent.loop.observation_interval_ms is not None
            else self.step_delay_ms
        )
        selector = StrategySelector(self.primary, self.fallback)
        iteration = 0

        def finish(status: ExecutionStatus, **kwargs: Any) -> TerminalOutcome:
            outcome = TerminalOutcome(
                status=status,
                iterations=iteration,
                strategy=selector.mode,
                actions=context.actions_wire,
                observation_refs=context.observation_refs,
                **kwargs,
            )
            logger.info(
                "loop_finished",
                status=status.value,
                category=outcome.category.value if outcome.category else None,
                iterations=iteration,
                strategy=selector.mode.value,
            )
            return outcome

        def fail(error: str, category: FailureCategory) -> TerminalOutcome:
            return finish(ExecutionStatus.FAILED, error=error, category=category)

        with log_context(execution_id=context.execution_id, agent_id=agent.id):
            logger.info("loop_started", max_iterations=max_iterations)
            try:
                observation = await self._observe(context)
                decision = await self._decide(selector, agent.instructions, observation, None)

                while True:
                    if context.stopped:
                        return fail(STOPPED_BY_USER, FailureCategory.STOPPED_BY_USER)

                    if decision.is_terminal:
                        return finish(
                            ExecutionStatus.COMPLETED,
                            summary=decision.summary or DEFAULT_SUMMARY,
                        )

                    if iteration >= max_iterations:
                        logger.warning("loop_iteration_cap_reached", iterations=iteration)
                        return fail(MAX_ITERATIONS_REACHED, FailureCategory.MAX_ITERATIONS_REACHED)

                    iteration += 1
                    action = decision.action
                    logger.info("action_selected", iteration=iteration, action_type=action.type)
                    await self.executor.apply(context.session, action)
                    context.actions.append(action)
                    self.broadcaster.publish(
                        ActionEvent(
                            agent_id=agent.id,
                            execution_id=context.execution_id,
                            action=action.to_wire(),
                            iteration=iteration,
                        )
                    )

                    observation = await self._observe(context)
                    if self.lifecycle is not None:
                        await self.lifecycle.record_progress(
                            context.execution_id,
                            context.actions_wire,
                            context.observation_refs,
                        )

                    if step_delay_ms > 0:
                        await asyncio.sleep(step_delay_ms / 1000)
                    if context.stopped:
                        continue

                    decision = await self._decide(
                        selector, agent.instructions, observation, decision.continuation
                    )

            except DecisionError as e:
                logger.error("decision_failed", error=e.message, strategy=selector.mode.value)
                return fail(e.message, FailureCategory.DECISION_ERROR)
            except ActionExecutionError as e:
                if context.stopped:
                    return fail(STOPPED_BY_USER, FailureCategory.STOPPED_BY_USER)
                logger.error("action_failed", error=e.message, iteration=iteration)
                return fail(e.message, FailureCategory.ACTION_ERROR)
            except SessionError as e:
                if context.stopped:
                    return fail(STOPPED_BY_USER, FailureCategory.STOPPED_BY_USER)
                logger.error("observation_failed", error=e.message, iteration=iteration)
                return fail(e.message, FailureCategory.RESOURCE_ERROR)

    async def _observe(self, context: ExecutionContext) -> Observation:
        """Capture, accumulate and publish one observation."""
        try:
            observation = await context.session.capture()
        except SessionError:
            raise
        except Exception as e:
            raise SessionError(f"Failed to capture observation: {e}") from e

        context.observations.append(observation)
        self.broadcaster.publish(
            ObservationEvent(
                agent_id=context.agent.id,
                execution_id=context.execution_id,
                observation=ObservationPayload(
                    ref=observation.ref,
                    image=observation.image,
                    width=observation.viewport.width,
                    height=observation.viewport.height,
                    captured_at=observation.captured_at,
                ),
            )
        )
        return observation

    async def _decide(
        self,
        selector: StrategySelector,
        instructions: str,
        observation: Observation,
        continuation: Any,
    ) -> Decision:
        strategy = selector.current
        try:
            decision = await strategy.decide(instructions, observation, continuation)
            DECISION_CALLS.labels(strategy=strategy.name, status="success").inc()
            return decision
        except DecisionError as e:
            DECISION_CALLS.labels(strategy=strategy.name, status="error").inc()
            if not selector.switch_to_fallback():
                raise
            DECISION_FALLBACKS.inc()
            logger.warning(
                "decision_strategy_fallback",
                failed_strategy=strategy.name,
                fallback_strategy=selector.current.name,
                error=e.message,
            )

        fallback = selector.current
        try:
            decision = await fallback.decide(instructions, observation, None)
        except DecisionError:
            DECISION_CALLS.labels(strategy=fallback.name, status="error").inc()
            raise
        DECISION_CALLS.labels(strategy=fallback.name, status="success").inc()
        return decision
