"""
Domain entities for the orchestration core.

AgentSpec and Organization are owned by the external CRUD collaborator and
are read-only here. Execution is created on admission and mutated only by
the scheduler and the action-observation loop. UsageRecord is additive.
"""
import uuid
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Priority(str, Enum):
    """Scheduling tiers. Lower rank is dequeued first."""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Priority | None") -> "Priority":
        """Unknown or missing tiers schedule as NORMAL."""
        if isinstance(value, Priority):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return cls.NORMAL


_PRIORITY_RANK = {
    Priority.CRITICAL: 0,
    Priority.HIGH: 1,
    Priority.NORMAL: 2,
    Priority.LOW: 3,
}


class ExecutionStatus(str, Enum):
    """Execution lifecycle states."""
    PENDING = "pending"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return not EXECUTION_TRANSITIONS[self]

    def can_transition_to(self, target: "ExecutionStatus") -> bool:
        return target in EXECUTION_TRANSITIONS[self]


# One-directional; nothing ever returns to PENDING and PAUSED is not resumed.
EXECUTION_TRANSITIONS: dict[ExecutionStatus, frozenset[ExecutionStatus]] = {
    ExecutionStatus.PENDING: frozenset({ExecutionStatus.RUNNING, ExecutionStatus.FAILED}),
    ExecutionStatus.RUNNING: frozenset({
        ExecutionStatus.COMPLETED,
        ExecutionStatus.FAILED,
        ExecutionStatus.PAUSED,
    }),
    ExecutionStatus.PAUSED: frozenset(),
    ExecutionStatus.COMPLETED: frozenset(),
    ExecutionStatus.FAILED: frozenset(),
}


class FailureCategory(str, Enum):
    """Machine-readable reason attached to every failed execution."""
    QUOTA_EXCEEDED = "quota_exceeded"
    DECISION_ERROR = "decision_error"
    ACTION_ERROR = "action_error"
    RESOURCE_ERROR = "resource_error"
    MAX_ITERATIONS_REACHED = "max_iterations_reached"
    STOPPED_BY_USER = "stopped_by_user"
    AGENT_NOT_FOUND = "agent_not_found"
    INTERNAL_ERROR = "internal_error"


class TriggerKind(str, Enum):
    """What caused an execution to be admitted."""
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    API = "api"


class Schedule(str, Enum):
    """How often the scheduler's periodic scan re-runs an agent."""
    MANUAL = "manual"
    EVERY_15_MINUTES = "15min"
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"

    @property
    def interval(self) -> timedelta | None:
        return _SCHEDULE_INTERVALS.get(self)


_SCHEDULE_INTERVALS = {
    Schedule.EVERY_15_MINUTES: timedelta(minutes=15),
    Schedule.HOURLY: timedelta(hours=1),
    Schedule.DAILY: timedelta(days=1),
    Schedule.WEEKLY: timedelta(weeks=1),
}


class AgentStatus(str, Enum):
    """Operator-controlled agent state."""
    ACTIVE = "active"
    INACTIVE = "inactive"
    PAUSED = "paused"
    ERROR = "error"


class LoopConfig(BaseModel):
    """Per-agent overrides for the action-observation loop."""
    max_iterations: int | None = Field(None, gt=0, description="Iteration cap for this agent")
    observation_interval_ms: int | None = Field(
        None, ge=0, description="Pause between iterations in milliseconds"
    )


class AgentSpec(BaseModel):
    """Reusable description of an automation goal."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Agent identifier")
    organization_id: str = Field(..., description="Owning organization")
    name: str = Field(..., description="Display name")
    description: str | None = Field(None, description="Free-form description")
    kind: str = Field(default="web_automation", description="Agent type")
    instructions: str = Field(..., description="Natural-language goal")
    target_address: str | None = Field(None, description="Initial navigation address")
    priority: Priority = Field(default=Priority.NORMAL, description="Scheduling tier")
    schedule: Schedule = Field(default=Schedule.MANUAL, description="Periodic run cadence")
    status: AgentStatus = Field(default=AgentStatus.ACTIVE, description="Agent state")
    loop: LoopConfig = Field(default_factory=LoopConfig, description="Loop overrides")
    config: dict[str, Any] = Field(default_factory=dict, description="Extra agent configuration")
    last_run: datetime | None = Field(None, description="When an execution last started")

    def is_due(self, now: datetime) -> bool:
        """Whether the periodic scan should enqueue this agent."""
        interval = self.schedule.interval
        if self.status != AgentStatus.ACTIVE or interval is None:
            return False
        return self.last_run is None or self.last_run + interval <= now


class Execution(BaseModel):
    """One run of an AgentSpec."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Execution identifier")
    organization_id: str = Field(..., description="Owning organization")
    agent_id: str = Field(..., description="AgentSpec being run")
    trigger: TriggerKind = Field(default=TriggerKind.MANUAL, description="Admission trigger")
    priority: Priority = Field(default=Priority.NORMAL, description="Tier it was queued at")
    status: ExecutionStatus = Field(default=ExecutionStatus.PENDING, description="Lifecycle state")
    created_at: datetime = Field(default_factory=utcnow, description="Admission time")
    start_time: datetime | None = Field(None, description="When the run entered running")
    end_time: datetime | None = Field(None, description="When the run left running")
    actions: list[dict[str, Any]] = Field(default_factory=list, description="Recorded actions (wire shape)")
    observation_refs: list[str] = Field(default_factory=list, description="Recorded observation references")
    summary: str | None = Field(None, description="Completion summary")
    error: str | None = Field(None, description="Failure detail")
    error_category: FailureCategory | None = Field(None, description="Failure category")

    def result(self) -> dict[str, Any] | None:
        """
        Terminal result summary.

        ``{actions, observationRefs, summary}`` when completed and
        ``{error}`` when failed. Partial accumulators ride along on
        failure for diagnostics.
        """
        if self.status == ExecutionStatus.COMPLETED:
            return {
                "actions": self.actions,
                "observationRefs": self.observation_refs,
                "summary": self.summary or "",
            }
        if self.status == ExecutionStatus.FAILED:
            result: dict[str, Any] = {"error": self.error or "Execution failed"}
            if self.actions:
                result["actions"] = self.actions
            if self.observation_refs:
                result["observationRefs"] = self.observation_refs
            return result
        return None


class Organization(BaseModel):
    """Quota holder."""
    id: str = Field(..., description="Organization identifier")
    name: str = Field(default="", description="Display name")
    plan: str = Field(default="starter", description="Billing plan")
    api_quota: int = Field(default=1000, ge=0, description="Allowed decision-capability runs")
    api_used: int = Field(default=0, ge=0, description="Consumed runs")


class UsageDelta(BaseModel):
    """Additive change to usage counters."""
    model_config = {"frozen": True}

    api_calls: int = Field(default=0, ge=0)
    browser_sessions: int = Field(default=0, ge=0)
    storage_used: int = Field(default=0, ge=0)


class UsageRecord(BaseModel):
    """Per-organization, per-day usage counters."""
    organization_id: str = Field(..., description="Owning organization")
    period: date = Field(..., description="UTC accounting day")
    api_calls: int = Field(default=0, ge=0)
    browser_sessions: int = Field(default=0, ge=0)
    storage_used: int = Field(default=0, ge=0)

    def apply(self, delta: UsageDelta) -> "UsageRecord":
        """Return a new record with every counter of the delta added."""
        return self.model_copy(update={
            "api_calls": self.api_calls + delta.api_calls,
            "browser_sessions": self.browser_sessions + delta.browser_sessions,
            "storage_used": self.storage_used + delta.storage_used,
        })
