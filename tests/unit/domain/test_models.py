# tests/unit/domain/test_models.py
"""Unit tests for domain models and the execution state machine."""

from datetime import date, timedelta

import pytest

from agentscale.domain.events import (
    ActionEvent,
    ConnectedEvent,
    StatusChangedEvent,
    format_sse_event,
)
from agentscale.domain.models import (
    AgentSpec,
    AgentStatus,
    Execution,
    ExecutionStatus,
    Priority,
    Schedule,
    UsageDelta,
    UsageRecord,
    utcnow,
)


@pytest.mark.unit
class TestPriority:
    """Test priority ordering and parsing."""

    def test_rank_order(self):
        ranks = [p.rank for p in (Priority.CRITICAL, Priority.HIGH, Priority.NORMAL, Priority.LOW)]

        assert ranks == sorted(ranks)
        assert len(set(ranks)) == 4

    @pytest.mark.parametrize("value,expected", [
        ("critical", Priority.CRITICAL),
        ("HIGH", Priority.HIGH),
        ("low", Priority.LOW),
        ("urgent", Priority.NORMAL),
        (None, Priority.NORMAL),
        (Priority.HIGH, Priority.HIGH),
    ])
    def test_parse(self, value, expected):
        assert Priority.parse(value) == expected


@pytest.mark.unit
class TestExecutionStatus:
    """Test the one-directional status state machine."""

    def test_pending_transitions(self):
        assert ExecutionStatus.PENDING.can_transition_to(ExecutionStatus.RUNNING)
        assert ExecutionStatus.PENDING.can_transition_to(ExecutionStatus.FAILED)
        assert not ExecutionStatus.PENDING.can_transition_to(ExecutionStatus.COMPLETED)

    def test_running_transitions(self):
        for target in (ExecutionStatus.COMPLETED, ExecutionStatus.FAILED, ExecutionStatus.PAUSED):
            assert ExecutionStatus.RUNNING.can_transition_to(target)
        assert not ExecutionStatus.RUNNING.can_transition_to(ExecutionStatus.PENDING)

    @pytest.mark.parametrize("status", [
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
        ExecutionStatus.PAUSED,
    ])
    def test_terminal_states_allow_nothing(self, status):
        assert status.is_terminal
        assert not any(status.can_transition_to(target) for target in ExecutionStatus)


@pytest.mark.unit
class TestExecutionResult:
    """Test the terminal result summary."""

    def test_completed_result(self):
        execution = Execution(
            organization_id="org",
            agent_id="agent",
            status=ExecutionStatus.COMPLETED,
            actions=[{"type": "click", "x": 1, "y": 2}],
            observation_refs=["s:1", "s:2"],
            summary="Bought it",
        )

        assert execution.result() == {
            "actions": [{"type": "click", "x": 1, "y": 2}],
            "observationRefs": ["s:1", "s:2"],
            "summary": "Bought it",
        }

    def test_failed_result_carries_error_and_partial_history(self):
        execution = Execution(
            organization_id="org",
            agent_id="agent",
            status=ExecutionStatus.FAILED,
            error="boom",
            observation_refs=["s:1"],
        )

        assert execution.result() == {"error": "boom", "observationRefs": ["s:1"]}

    def test_no_result_while_pending(self):
        assert Execution(organization_id="org", agent_id="agent").result() is None


@pytest.mark.unit
class TestAgentSchedule:
    """Test periodic due checks."""

    def _agent(self, **kwargs) -> AgentSpec:
        return AgentSpec(organization_id="org", name="a", instructions="do it", **kwargs)

    def test_manual_agent_is_never_due(self):
        assert not self._agent().is_due(utcnow())

    def test_never_run_scheduled_agent_is_due(self):
        assert self._agent(schedule=Schedule.HOURLY).is_due(utcnow())

    def test_recent_run_is_not_due(self):
        now = utcnow()
        agent = self._agent(schedule=Schedule.HOURLY, last_run=now - timedelta(minutes=30))

        assert not agent.is_due(now)
        assert agent.is_due(now + timedelta(minutes=30))

    def test_inactive_agent_is_not_due(self):
        agent = self._agent(schedule=Schedule.EVERY_15_MINUTES, status=AgentStatus.INACTIVE)

        assert not agent.is_due(utcnow())


@pytest.mark.unit
class TestUsageRecord:
    """Test additive usage counters."""

    def test_apply_is_additive(self):
        record = UsageRecord(organization_id="org", period=date(2024, 1, 1))

        record = record.apply(UsageDelta(api_calls=1, browser_sessions=1))
        record = record.apply(UsageDelta(api_calls=1, browser_sessions=1, storage_used=10))

        assert record.api_calls == 2
        assert record.browser_sessions == 2
        assert record.storage_used == 10

    def test_storage_is_additive(self):
        record = UsageRecord(organization_id="org", period=date(2024, 1, 1), storage_used=50)

        assert record.apply(UsageDelta(storage_used=20)).storage_used == 70

    def test_negative_delta_rejected(self):
        with pytest.raises(Exception):
            UsageDelta(api_calls=-1)


@pytest.mark.unit
class TestEventWireShape:
    """Test event serialization for transports."""

    def test_connected_event(self):
        assert ConnectedEvent(agent_id="a1").to_wire()["type"] == "connected"
        assert ConnectedEvent(agent_id="a1").to_wire()["agentId"] == "a1"

    def test_action_event_wire(self):
        wire = ActionEvent(
            agent_id="a1",
            execution_id="e1",
            action={"type": "click", "x": 1, "y": 2},
            iteration=1,
        ).to_wire()

        assert wire["type"] == "action"
        assert wire["executionId"] == "e1"
        assert wire["action"] == {"type": "click", "x": 1, "y": 2}

    def test_status_changed_omits_unset_fields(self):
        wire = StatusChangedEvent(agent_id="a1", status=ExecutionStatus.RUNNING).to_wire()

        assert wire["status"] == "running"
        assert "error" not in wire

    def test_sse_frame(self):
        frame = format_sse_event(ConnectedEvent(agent_id="a1"))

        assert frame.startswith("data: {")
        assert frame.endswith("\n\n")
        assert '"type": "connected"' in frame
