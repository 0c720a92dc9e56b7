# src/agentscale/interfaces/__init__.py
from .session import (
    IAutomationSession,
    ISessionLauncher,
    Observation,
    Viewport,
    MouseClick,
    TypeText,
    Scroll,
    KeyPress,
    Wait,
    Primitive,
)
from .decision import IDecisionStrategy, Decision
from .repository import (
    IRepository,
    IAgentRepository,
    IExecutionRepository,
    IOrganizationRepository,
    IUsageRepository,
)

__all__ = [
    "IAutomationSession",
    "ISessionLauncher",
    "Observation",
    "Viewport",
    "MouseClick",
    "TypeText",
    "Scroll",
    "KeyPress",
    "Wait",
    "Primitive",
    "IDecisionStrategy",
    "Decision",
    "IRepository",
    "IAgentRepository",
    "IExecutionRepository",
    "IOrganizationRepository",
    "IUsageRepository",
]
