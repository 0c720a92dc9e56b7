# src/agentscale/api/dependencies.py
from typing import Annotated
from fastapi import Depends

from agentscale.config.settings import Settings, get_settings
from agentscale.orchestration.broadcaster import EventBroadcaster
from agentscale.orchestration.runtime import Orchestrator, get_orchestrator
from agentscale.orchestration.scheduler import Scheduler


def get_scheduler(orchestrator: Annotated[Orchestrator, Depends(get_orchestrator)]) -> Scheduler:
    return orchestrator.scheduler


def get_broadcaster(orchestrator: Annotated[Orchestrator, Depends(get_orchestrator)]) -> EventBroadcaster:
    return orchestrator.broadcaster


# Type aliases for clean injection
AppSettings = Annotated[Settings, Depends(get_settings)]
CurrentOrchestrator = Annotated[Orchestrator, Depends(get_orchestrator)]
CurrentScheduler = Annotated[Scheduler, Depends(get_scheduler)]
CurrentBroadcaster = Annotated[EventBroadcaster, Depends(get_broadcaster)]
