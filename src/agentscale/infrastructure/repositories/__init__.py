"""Repository implementations."""
from agentscale.infrastructure.repositories.memory import (
    InMemoryAgentRepository,
    InMemoryExecutionRepository,
    InMemoryOrganizationRepository,
    InMemoryUsageRepository,
)

__all__ = [
    "InMemoryAgentRepository",
    "InMemoryExecutionRepository",
    "InMemoryOrganizationRepository",
    "InMemoryUsageRepository",
]
