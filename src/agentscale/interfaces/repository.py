# src/agentscale/interfaces/repository.py
from __future__ import annotations
from abc import ABC, abstractmethod
from datetime import date
from typing import TypeVar, Generic, Sequence, Any

from agentscale.domain.models import AgentSpec, Execution, Organization, UsageDelta, UsageRecord

T = TypeVar("T")


class IRepository(ABC, Generic[T]):
    """
    Generic repository interface for data access.

    The orchestration core reads AgentSpec and reads/writes Execution and
    usage through these seams; storage itself lives behind them.
    """

    @abstractmethod
    async def get(self, id: str) -> T | None:
        """Get entity by ID."""
        pass

    @abstractmethod
    async def get_many(
        self,
        skip: int = 0,
        limit: int = 100,
        **filters: Any,
    ) -> Sequence[T]:
        """Get multiple entities, filtered by exact attribute match."""
        pass

    @abstractmethod
    async def create(self, entity: T) -> T:
        """Create new entity."""
        pass

    @abstractmethod
    async def update(self, id: str, **values: Any) -> T | None:
        """Update entity by ID."""
        pass

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete entity by ID."""
        pass


class IAgentRepository(IRepository[AgentSpec]):
    """AgentSpec storage. Read-only to the core apart from ``last_run``."""


class IExecutionRepository(IRepository[Execution]):
    """Execution storage."""

    @abstractmethod
    async def list_recent(self, limit: int = 50, **filters: Any) -> Sequence[Execution]:
        """Executions matching ``filters``, newest first."""
        pass


class IOrganizationRepository(IRepository[Organization]):
    """Organization storage with an atomic usage counter."""

    @abstractmethod
    async def add_api_usage(self, id: str, amount: int) -> Organization | None:
        """Add ``amount`` to the organization's ``api_used``."""
        pass


class IUsageRepository(ABC):
    """Per-organization, per-day usage counters."""

    @abstractmethod
    async def get(self, organization_id: str, period: date) -> UsageRecord | None:
        """Get the record for one accounting day."""
        pass

    @abstractmethod
    async def list_for_organization(self, organization_id: str) -> Sequence[UsageRecord]:
        """All records for an organization, oldest first."""
        pass

    @abstractmethod
    async def add(self, organization_id: str, period: date, delta: UsageDelta) -> UsageRecord:
        """Apply ``delta`` to the day's record, creating it if missing."""
        pass
