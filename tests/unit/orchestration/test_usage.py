# tests/unit/orchestration/test_usage.py
"""Unit tests for the usage ledger."""

import asyncio

import pytest

from agentscale.domain.models import Organization, UsageDelta
from agentscale.infrastructure.repositories import (
    InMemoryOrganizationRepository,
    InMemoryUsageRepository,
)
from agentscale.orchestration.usage import UsageLedger, current_period


def _ledger(*orgs: Organization) -> UsageLedger:
    return UsageLedger(InMemoryOrganizationRepository(orgs), InMemoryUsageRepository())


@pytest.mark.unit
class TestRemaining:
    """Test quota checks."""

    async def test_under_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=2, api_used=1))

        assert await ledger.remaining("org") is True

    async def test_at_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=2, api_used=2))

        assert await ledger.remaining("org") is False

    async def test_zero_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=0, api_used=0))

        assert await ledger.remaining("org") is False

    async def test_unknown_organization_is_not_limited(self):
        assert await _ledger().remaining("missing") is True


@pytest.mark.unit
class TestRecord:
    """Test additive recording."""

    async def test_record_updates_counter_and_daily_record(self):
        ledger = _ledger(Organization(id="org", api_quota=10))

        record = await ledger.record("org", UsageDelta(api_calls=1, browser_sessions=1))

        assert record.period == current_period()
        assert record.api_calls == 1
        summary = await ledger.summary("org")
        assert summary["api_used"] == 1
        assert summary["api_quota"] == 10
        assert [r.api_calls for r in summary["usage"]] == [1]

    async def test_record_reaches_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=2))

        await ledger.record("org", UsageDelta(api_calls=1))
        assert await ledger.remaining("org") is True
        await ledger.record("org", UsageDelta(api_calls=1))
        assert await ledger.remaining("org") is False

    async def test_concurrent_records_are_not_lost(self):
        ledger = _ledger(Organization(id="org", api_quota=1000))

        await asyncio.gather(*(ledger.record("org", UsageDelta(api_calls=1, browser_sessions=1)) for _ in range(50)))

        summary = await ledger.summary("org")
        assert summary["api_used"] == 50
        assert summary["usage"][0].browser_sessions == 50

    async def test_summary_for_unknown_organization(self):
        summary = await _ledger().summary("missing")

        assert summary == {"usage": [], "api_quota": None, "api_used": None}


@pytest.mark.unit
class TestReserve:
    """Test quota reservations for runs in flight."""

    async def test_reservation_counts_against_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=1))

        assert await ledger.reserve("org") is True
        assert await ledger.remaining("org") is False
        assert await ledger.reserve("org") is False
        assert ledger.in_flight("org") == 1

    async def test_concurrent_reservations_never_exceed_quota(self):
        ledger = _ledger(Organization(id="org", api_quota=3))

        granted = await asyncio.gather(*(ledger.reserve("org") for _ in range(10)))

        assert granted.count(True) == 3
        assert ledger.in_flight("org") == 3

    async def test_release_after_record_keeps_quota_spent(self):
        ledger = _ledger(Organization(id="org", api_quota=1))

        await ledger.reserve("org")
        await ledger.record("org", UsageDelta(api_calls=1))
        ledger.release("org")

        assert ledger.in_flight("org") == 0
        assert await ledger.remaining("org") is False

    async def test_release_without_record_frees_the_unit(self):
        ledger = _ledger(Organization(id="org", api_quota=1))

        await ledger.reserve("org")
        ledger.release("org")

        assert await ledger.remaining("org") is True

    async def test_unknown_organization_reserves_freely(self):
        ledger = _ledger()

        assert all(await asyncio.gather(*(ledger.reserve("missing") for _ in range(5))))
