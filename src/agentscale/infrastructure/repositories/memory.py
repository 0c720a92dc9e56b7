"""
In-memory repositories.

Process-local stand-ins for the external storage collaborator. Entities
are copied on the way in and out so callers never share mutable state
with the store.
"""
import asyncio
import logging
from datetime import date
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel

from agentscale.domain.models import AgentSpec, Execution, Organization, UsageDelta, UsageRecord
from agentscale.interfaces.repository import (
    IAgentRepository,
    IExecutionRepository,
    IOrganizationRepository,
    IUsageRepository,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class _InMemoryRepository(Generic[M]):
    """Dict-backed CRUD shared by the entity repositories."""

    def __init__(self, entities: Sequence[M] | None = None):
        self._memory_store: dict[str, M] = {}
        self._lock = asyncio.Lock()
        for entity in entities or ():
            self._memory_store[entity.id] = entity.model_copy(deep=True)

    async def get(self, id: str) -> M | None:
        entity = self._memory_store.get(id)
        return entity.model_copy(deep=True) if entity else None

    async def get_many(self, skip: int = 0, limit: int = 100, **filters: Any) -> Sequence[M]:
        matches = [
            entity for entity in self._memory_store.values()
            if all(getattr(entity, key, None) == value for key, value in filters.items())
        ]
        return [entity.model_copy(deep=True) for entity in matches[skip:skip + limit]]

    async def create(self, entity: M) -> M:
        async with self._lock:
            self._memory_store[entity.id] = entity.model_copy(deep=True)
        logger.debug(f"Created {type(entity).__name__} {entity.id}")
        return entity

    async def update(self, id: str, **values: Any) -> M | None:
        async with self._lock:
            entity = self._memory_store.get(id)
            if entity is None:
                return None
            updated = entity.model_copy(update=values, deep=True)
            self._memory_store[id] = updated
        return updated.model_copy(deep=True)

    async def delete(self, id: str) -> bool:
        async with self._lock:
            return self._memory_store.pop(id, None) is not None


class InMemoryAgentRepository(_InMemoryRepository[AgentSpec], IAgentRepository):
    """AgentSpec store."""


class InMemoryExecutionRepository(_InMemoryRepository[Execution], IExecutionRepository):
    """Execution store."""

    async def list_recent(self, limit: int = 50, **filters: Any) -> Sequence[Execution]:
        matches = await self.get_many(limit=len(self._memory_store), **filters)
        return sorted(reversed(matches), key=lambda e: e.created_at, reverse=True)[:limit]


class InMemoryOrganizationRepository(_InMemoryRepository[Organization], IOrganizationRepository):
    """Organization store."""

    async def add_api_usage(self, id: str, amount: int) -> Organization | None:
        async with self._lock:
            org = self._memory_store.get(id)
            if org is None:
                return None
            org = org.model_copy(update={"api_used": org.api_used + amount})
            self._memory_store[id] = org
        return org.model_copy()


class InMemoryUsageRepository(IUsageRepository):
    """Usage records keyed by (organization, day)."""

    def __init__(self):
        self._memory_store: dict[tuple[str, date], UsageRecord] = {}
        self._lock = asyncio.Lock()

    async def get(self, organization_id: str, period: date) -> UsageRecord | None:
        record = self._memory_store.get((organization_id, period))
        return record.model_copy() if record else None

    async def list_for_organization(self, organization_id: str) -> Sequence[UsageRecord]:
        records = [r for (org_id, _), r in self._memory_store.items() if org_id == organization_id]
        return sorted((r.model_copy() for r in records), key=lambda r: r.period)

    async def add(self, organization_id: str, period: date, delta: UsageDelta) -> UsageRecord:
        key = (organization_id, period)
        async with self._lock:
            record = self._memory_store.get(key) or UsageRecord(
                organization_id=organization_id, period=period
            )
            record = record.apply(delta)
            self._memory_store[key] = record
        return record.model_copy()
