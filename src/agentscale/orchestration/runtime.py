"""
Orchestrator composition root.

Builds the queue, broadcaster, ledger, context manager, loop and scheduler
from settings and wires them together. The API lifespan owns exactly one
Orchestrator instance.
"""
import asyncio
from typing import Optional

from agentscale.config.settings import Settings, get_settings
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.repositories import (
    InMemoryAgentRepository,
    InMemoryExecutionRepository,
    InMemoryOrganizationRepository,
    InMemoryUsageRepository,
)
from agentscale.interfaces.decision import IDecisionStrategy
from agentscale.interfaces.repository import (
    IAgentRepository,
    IExecutionRepository,
    IOrganizationRepository,
    IUsageRepository,
)
from agentscale.interfaces.session import ISessionLauncher
from agentscale.orchestration.broadcaster import EventBroadcaster
from agentscale.orchestration.context_manager import ExecutionContextManager
from agentscale.orchestration.executor import ActionExecutor
from agentscale.orchestration.lifecycle import ExecutionLifecycle
from agentscale.orchestration.loop import ActionObservationLoop
from agentscale.orchestration.queue import PriorityTaskQueue
from agentscale.orchestration.scheduler import Scheduler
from agentscale.orchestration.usage import UsageLedger

logger = get_logger(__name__)


class Orchestrator:
    """Holds the wired components and their background tasks."""

    def __init__(
        self,
        settings: Settings,
        agents: IAgentRepository,
        executions: IExecutionRepository,
        organizations: IOrganizationRepository,
        usage: IUsageRepository,
        broadcaster: EventBroadcaster,
        lifecycle: ExecutionLifecycle,
        contexts: ExecutionContextManager,
        ledger: UsageLedger,
        scheduler: Scheduler,
        launcher: ISessionLauncher,
    ):
        self.settings = settings
        self.agents = agents
        self.executions = executions
        self.organizations = organizations
        self.usage = usage
        self.broadcaster = broadcaster
        self.lifecycle = lifecycle
        self.contexts = contexts
        self.ledger = ledger
        self.scheduler = scheduler
        self.launcher = launcher
        self._keepalive: Optional[asyncio.Task] = None

    async def start(self) -> None:
        self.scheduler.start()
        if self._keepalive is None:
            self._keepalive = asyncio.create_task(
                self.broadcaster.run_keepalive(self.settings.events_keepalive_interval_seconds),
                name="agentscale-keepalive",
            )
        logger.info("orchestrator_started")

    async def stop(self) -> None:
        if self._keepalive is not None:
            self._keepalive.cancel()
            await asyncio.gather(self._keepalive, return_exceptions=True)
            self._keepalive = None

        await self.scheduler.stop()
        self.broadcaster.close_all()
        await self.contexts.close_all()
        await self.launcher.shutdown()
        logger.info("orchestrator_stopped")


def build_orchestrator(
    settings: Optional[Settings] = None,
    launcher: Optional[ISessionLauncher] = None,
    primary: Optional[IDecisionStrategy] = None,
    fallback: Optional[IDecisionStrategy] = None,
    agents: Optional[IAgentRepository] = None,
    executions: Optional[IExecutionRepository] = None,
    organizations: Optional[IOrganizationRepository] = None,
    usage: Optional[IUsageRepository] = None,
) -> Orchestrator:
    """
    Wire an Orchestrator.

    Anything not passed in gets the production default: Playwright sessions,
    computer-use with a vision-chat fallback and in-memory repositories.
    """
    settings = settings or get_settings()

    if launcher is None:
        from agentscale.browser import PlaywrightSessionLauncher
        launcher = PlaywrightSessionLauncher(settings)
    if primary is None:
        from agentscale.decision import ComputerUseStrategy, VisionChatStrategy
        primary = ComputerUseStrategy(settings)
        if fallback is None:
            fallback = VisionChatStrategy(settings)

    agents = agents or InMemoryAgentRepository()
    executions = executions or InMemoryExecutionRepository()
    organizations = organizations or InMemoryOrganizationRepository()
    usage = usage or InMemoryUsageRepository()

    broadcaster = EventBroadcaster(queue_size=settings.events_subscriber_queue_size)
    lifecycle = ExecutionLifecycle(executions, broadcaster)
    contexts = ExecutionContextManager(
        launcher,
        lifecycle,
        default_address=settings.default_target_address,
    )
    ledger = UsageLedger(organizations, usage)
    loop = ActionObservationLoop(
        ActionExecutor.from_settings(settings),
        broadcaster,
        primary,
        fallback,
        max_iterations=settings.loop_max_iterations,
        step_delay_ms=settings.loop_step_delay_ms,
        lifecycle=lifecycle,
    )
    scheduler = Scheduler(
        PriorityTaskQueue(),
        lifecycle,
        contexts,
        loop,
        ledger,
        agents,
        max_concurrency=settings.scheduler_max_concurrency,
        idle_interval=settings.scheduler_idle_interval_seconds,
        scan_interval=settings.scheduler_scan_interval_seconds,
        retry_delay=settings.scheduler_retry_delay_seconds,
        scan_page_size=settings.scheduler_scan_page_size,
        refund_failed_runs=settings.usage_refund_failed_runs,
    )

    return Orchestrator(
        settings=settings,
        agents=agents,
        executions=executions,
        organizations=organizations,
        usage=usage,
        broadcaster=broadcaster,
        lifecycle=lifecycle,
        contexts=contexts,
        ledger=ledger,
        scheduler=scheduler,
        launcher=launcher,
    )


# Global orchestrator instance, set by the API lifespan
_orchestrator: Optional[Orchestrator] = None


def get_orchestrator() -> Orchestrator:
    """Return the running orchestrator, building a default one on first use."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = build_orchestrator()
    return _orchestrator


def set_orchestrator(orchestrator: Optional[Orchestrator]) -> None:
    global _orchestrator
    _orchestrator = orchestrator
