"""
Usage ledger.

Tracks and enforces per-organization quotas. Consumed units are never
refunded; failed runs still invoked the decision capability.

A run holds a reservation from the moment it passes the quota check until
its usage is recorded, so concurrent runs of one organization cannot
overshoot the quota between the check and the record.
"""
import asyncio
from collections import Counter
from datetime import date, datetime, timezone

from agentscale.domain.models import UsageDelta, UsageRecord
from agentscale.infrastructure.observability.logging import get_logger
from agentscale.infrastructure.observability.metrics import USAGE_RECORDED
from agentscale.interfaces.repository import IOrganizationRepository, IUsageRepository

logger = get_logger(__name__)


def current_period() -> date:
    """UTC accounting day."""
    return datetime.now(timezone.utc).date()


class UsageLedger:
    """
    Quota check and additive usage recording.

    ``reserve`` and ``record`` are serialized by an asyncio.Lock so concurrent
    executions of the same organization never lose an increment between the
    organization counter and the daily record, and never pass the quota
    check together for the last unit.
    """

    def __init__(
        self,
        organizations: IOrganizationRepository,
        usage: IUsageRepository,
    ):
        self._organizations = organizations
        self._usage = usage
        self._lock = asyncio.Lock()
        self._in_flight: Counter[str] = Counter()

    def in_flight(self, organization_id: str) -> int:
        """Runs of the organization holding a reservation."""
        return self._in_flight[organization_id]

    async def remaining(self, organization_id: str) -> bool:
        """
        Whether the organization may start another run.

        Reserved runs count against the quota as if already recorded.
        Organizations unknown to the store are not quota-limited.
        """
        org = await self._organizations.get(organization_id)
        if org is None:
            logger.debug("quota_check_unknown_organization", organization_id=organization_id)
            return True
        return org.api_used + self._in_flight[organization_id] < org.api_quota

    async def reserve(self, organization_id: str) -> bool:
        """
        Check the quota and, if a unit is left, hold it for one run.

        Every successful reservation must be paired with ``release``.

        Returns:
            False when the organization has no quota left
        """
        async with self._lock:
            if not await self.remaining(organization_id):
                return False
            self._in_flight[organization_id] += 1
        return True

    def release(self, organization_id: str) -> None:
        """Drop a reservation taken by ``reserve``."""
        if self._in_flight[organization_id] <= 1:
            self._in_flight.pop(organization_id, None)
        else:
            self._in_flight[organization_id] -= 1

    async def record(self, organization_id: str, delta: UsageDelta) -> UsageRecord:
        """
        Add ``delta`` to the organization's counters for the current period.

        Args:
            organization_id: Owning organization
            delta: Non-negative counter increments

        Returns:
            The updated daily usage record
        """
        async with self._lock:
            if delta.api_calls:
                await self._organizations.add_api_usage(organization_id, delta.api_calls)
            record = await self._usage.add(organization_id, current_period(), delta)

        USAGE_RECORDED.inc(delta.api_calls)
        logger.info(
            "usage_recorded",
            organization_id=organization_id,
            api_calls=delta.api_calls,
            browser_sessions=delta.browser_sessions,
        )
        return record

    async def summary(self, organization_id: str) -> dict:
        """Daily records plus the organization's quota position."""
        records = await self._usage.list_for_organization(organization_id)
        org = await self._organizations.get(organization_id)
        return {
            "usage": records,
            "api_quota": org.api_quota if org else None,
            "api_used": org.api_used if org else None,
        }
