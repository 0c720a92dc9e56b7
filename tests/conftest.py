# tests/conftest.py
"""
Main pytest configuration and shared fixtures for all tests.

This module provides:
- Async test support (pytest-asyncio auto mode)
- Zero-delay settings for the test environment
- Fake automation session and launcher that record dispatched primitives
- Scripted and failing decision strategies
- An orchestrator wired with in-memory repositories
- FastAPI app and httpx AsyncClient bound to that orchestrator
"""

from typing import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from agentscale.config.settings import Settings, get_settings
from agentscale.domain.models import AgentSpec, Organization
from agentscale.orchestration.runtime import Orchestrator, build_orchestrator, get_orchestrator
from tests.fakes import FakeLauncher, ScriptedStrategy


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure pytest-asyncio to use auto mode."""
    config.option.asyncio_mode = "auto"


# ============================================================================
# Settings and Configuration
# ============================================================================

@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Test settings with every delay set to zero.

    Loop, executor and scheduler timings are collapsed so tests run in
    milliseconds; the iteration cap keeps its production value.
    """
    return Settings(
        app_name="AgentScale Test",
        app_version="0.1.0-test",
        environment="local",
        debug=True,
        log_level=40,  # ERROR level to reduce noise in tests
        log_format="console",
        sentry_dsn=None,
        loop_max_iterations=20,
        loop_step_delay_ms=0,
        action_settle_delay_ms=0,
        click_delay_ms=0,
        type_delay_ms=0,
        keypress_delay_ms=0,
        default_wait_ms=0,
        scheduler_max_concurrency=4,
        scheduler_idle_interval_seconds=0.05,
        scheduler_scan_interval_seconds=3600,
        scheduler_retry_delay_seconds=0.01,
        events_keepalive_interval_seconds=3600,
        events_subscriber_queue_size=100,
    )


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def scripted_strategy() -> ScriptedStrategy:
    return ScriptedStrategy()


# ============================================================================
# Domain Fixtures
# ============================================================================

@pytest.fixture
def organization() -> Organization:
    return Organization(id="org_1", name="Acme", api_quota=100, api_used=0)


@pytest.fixture
def agent(organization: Organization) -> AgentSpec:
    return AgentSpec(
        id="agent_1",
        organization_id=organization.id,
        name="Checkout bot",
        instructions="Add the first item to the cart",
        target_address="https://shop.example.com",
    )


# ============================================================================
# Orchestrator and App Fixtures
# ============================================================================

@pytest.fixture
async def orchestrator(
    test_settings: Settings,
    fake_launcher: FakeLauncher,
    scripted_strategy: ScriptedStrategy,
    organization: Organization,
    agent: AgentSpec,
) -> AsyncGenerator[Orchestrator, None]:
    """
    Orchestrator wired with fakes and seeded with one organization and agent.

    The scheduling loop is not started; tests drive it with run_once().
    """
    orch = build_orchestrator(
        test_settings,
        launcher=fake_launcher,
        primary=scripted_strategy,
    )
    await orch.organizations.create(organization)
    await orch.agents.create(agent)

    yield orch

    await orch.stop()


@pytest.fixture
def app(orchestrator: Orchestrator) -> FastAPI:
    """FastAPI application bound to the test orchestrator (lifespan not run)."""
    from agentscale.api.app import create_app

    application = create_app()
    application.dependency_overrides[get_orchestrator] = lambda: orchestrator
    application.dependency_overrides[get_settings] = lambda: orchestrator.settings
    return application


@pytest.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for API tests."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
