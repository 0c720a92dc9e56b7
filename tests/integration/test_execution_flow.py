# tests/integration/test_execution_flow.py
"""
Integration tests for a full execution: queue, context, loop, executor,
broadcaster and usage ledger wired together with fake sessions and
scripted decisions.
"""

import pytest

from agentscale.domain.models import ExecutionStatus, FailureCategory
from agentscale.interfaces.session import MouseClick, Viewport
from agentscale.orchestration.loop import MAX_ITERATIONS_REACHED, StrategyMode
from agentscale.orchestration.runtime import build_orchestrator
from tests.fakes import EndlessStrategy, FailingStrategy, FakeLauncher, ScriptedStrategy


@pytest.fixture
async def build(test_settings, organization, agent):
    """Factory for orchestrators seeded with the default organization and agent."""
    built = []

    async def _build(primary, fallback=None, launcher=None):
        orch = build_orchestrator(
            test_settings,
            launcher=launcher or FakeLauncher(),
            primary=primary,
            fallback=fallback,
        )
        await orch.organizations.create(organization)
        await orch.agents.create(agent)
        built.append(orch)
        return orch

    yield _build

    for orch in built:
        await orch.stop()


async def _run(orch, agent):
    execution = await orch.scheduler.enqueue(agent.id, agent.organization_id)
    return await orch.scheduler.run_once() or await orch.lifecycle.get(execution.id)


@pytest.mark.integration
class TestExecutionFlow:
    """End-to-end runs through the scheduler."""

    async def test_fallback_strategy_completes_run(self, build, agent):
        """Primary unreachable: one switch, one click, completed."""
        launcher = FakeLauncher()
        fallback = ScriptedStrategy([{"type": "click", "x": 100, "y": 200}], name="fallback")
        orch = await build(FailingStrategy(), fallback, launcher)
        received = []
        orch.broadcaster.subscribe(agent.id, callback=received.append)

        result = await _run(orch, agent)

        assert result.status == ExecutionStatus.COMPLETED
        assert result.actions == [{"type": "click", "x": 100, "y": 200, "button": "left"}]
        assert len(result.observation_refs) == 2
        assert launcher.sessions[0].primitives == [MouseClick(x=100, y=200, button="left", delay_ms=0)]
        assert launcher.sessions[0].closed
        assert [e.type for e in received] == [
            "status-changed",
            "observation",
            "action",
            "observation",
            "status-changed",
        ]
        assert received[-1].status == ExecutionStatus.COMPLETED

    async def test_never_completing_strategy_fails_at_cap(self, build, agent):
        """A strategy that would keep acting forever is cut off after 20 actions."""
        launcher = FakeLauncher()
        orch = await build(EndlessStrategy(), launcher=launcher)

        result = await _run(orch, agent)

        assert result.status == ExecutionStatus.FAILED
        assert result.error == MAX_ITERATIONS_REACHED
        assert result.error_category == FailureCategory.MAX_ITERATIONS_REACHED
        assert len(result.actions) == 20
        assert len(launcher.sessions[0].primitives) == 20
        assert result.result()["error"] == MAX_ITERATIONS_REACHED
        assert (await orch.organizations.get(agent.organization_id)).api_used == 1

    async def test_out_of_bounds_click_is_clamped(self, build, agent):
        launcher = FakeLauncher(viewport=Viewport(1280, 720))
        orch = await build(ScriptedStrategy([{"type": "click", "x": 5000, "y": -10}]), launcher=launcher)

        result = await _run(orch, agent)

        assert result.status == ExecutionStatus.COMPLETED
        assert launcher.sessions[0].primitives == [MouseClick(x=1279, y=0, button="left", delay_ms=0)]
        # the recorded action keeps what the strategy asked for
        assert result.actions[0]["x"] == 5000

    async def test_quota_exhausted_organization(self, build, agent):
        launcher = FakeLauncher()
        strategy = ScriptedStrategy()
        orch = await build(strategy, launcher=launcher)
        await orch.organizations.update(agent.organization_id, api_used=100)

        result = await _run(orch, agent)

        assert result.status == ExecutionStatus.FAILED
        assert result.error_category == FailureCategory.QUOTA_EXCEEDED
        assert launcher.sessions == []
        assert strategy.calls == []

    async def test_quota_reached_after_last_allowed_run(self, build, agent):
        orch = await build(ScriptedStrategy())
        await orch.organizations.update(agent.organization_id, api_used=99)

        first = await _run(orch, agent)
        second = await _run(orch, agent)

        assert first.status == ExecutionStatus.COMPLETED
        assert second.error_category == FailureCategory.QUOTA_EXCEEDED
        assert (await orch.organizations.get(agent.organization_id)).api_used == 100

    async def test_partial_history_survives_action_failure(self, build, agent):
        launcher = FakeLauncher(fail_dispatch_after=2)
        script = [{"type": "click", "x": i, "y": i} for i in range(1, 5)]
        orch = await build(ScriptedStrategy(script), launcher=launcher)

        result = await _run(orch, agent)

        assert result.status == ExecutionStatus.FAILED
        assert result.error_category == FailureCategory.ACTION_ERROR
        assert [a["x"] for a in result.actions] == [1, 2]
        assert len(result.observation_refs) == 3
        assert launcher.sessions[0].closed

    async def test_stop_after_completion_is_a_no_op(self, build, agent):
        orch = await build(ScriptedStrategy([{"type": "wait", "duration": 0}]))
        result = await _run(orch, agent)

        assert await orch.scheduler.stop_execution(result.id) is None
        assert await orch.scheduler.stop_execution(result.id) is None
        assert (await orch.lifecycle.get(result.id)).status == ExecutionStatus.COMPLETED

    async def test_every_session_is_released(self, build, agent):
        launcher = FakeLauncher()
        orch = await build(FailingStrategy(), launcher=launcher)

        for _ in range(3):
            await _run(orch, agent)

        assert len(launcher.sessions) == 3
        assert all(session.close_calls == 1 for session in launcher.sessions)
        assert len(orch.contexts) == 0

    async def test_fallback_mode_is_reported_in_outcome(self, build, agent):
        orch = await build(FailingStrategy(), ScriptedStrategy(name="fallback"))
        execution = await orch.scheduler.enqueue(agent.id, agent.organization_id)
        task = await orch.scheduler.queue.pop_nowait()
        await orch.lifecycle.transition(execution.id, ExecutionStatus.RUNNING)

        async with orch.contexts.session(await orch.agents.get(agent.id), execution) as context:
            outcome = await orch.scheduler.loop.run(context)

        assert task.execution_id == execution.id
        assert outcome.succeeded
        assert outcome.strategy == StrategyMode.FALLBACK
