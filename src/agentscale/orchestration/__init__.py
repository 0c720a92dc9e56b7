"""Execution orchestration core."""
from agentscale.orchestration.broadcaster import EventBroadcaster, Subscription
from agentscale.orchestration.context_manager import ExecutionContext, ExecutionContextManager
from agentscale.orchestration.executor import ActionExecutor
from agentscale.orchestration.lifecycle import ExecutionLifecycle
from agentscale.orchestration.loop import ActionObservationLoop, TerminalOutcome
from agentscale.orchestration.queue import PriorityTaskQueue, QueuedTask
from agentscale.orchestration.runtime import (
    Orchestrator,
    build_orchestrator,
    get_orchestrator,
    set_orchestrator,
)
from agentscale.orchestration.scheduler import Scheduler
from agentscale.orchestration.usage import UsageLedger

__all__ = [
    "ActionExecutor",
    "ActionObservationLoop",
    "EventBroadcaster",
    "ExecutionContext",
    "ExecutionContextManager",
    "ExecutionLifecycle",
    "Orchestrator",
    "PriorityTaskQueue",
    "QueuedTask",
    "Scheduler",
    "Subscription",
    "TerminalOutcome",
    "UsageLedger",
    "build_orchestrator",
    "get_orchestrator",
    "set_orchestrator",
]
