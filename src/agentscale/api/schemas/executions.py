"""Request and response schemas for execution control, queue and usage endpoints."""
from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentscale.domain.models import (
    Execution,
    ExecutionStatus,
    FailureCategory,
    Priority,
    TriggerKind,
    UsageRecord,
)


class CamelModel(BaseModel):
    """Wire models use camelCase and accept either case on input."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExecuteAgentRequest(CamelModel):
    """Request body for queueing an agent run."""

    organization_id: str = Field(
        ...,
        description="Organization the run is billed to",
        min_length=1,
        examples=["org_123"],
    )
    priority: Optional[str] = Field(
        None,
        description="Queue tier: critical, high, normal or low. Unknown values map to normal; "
                    "omitted uses the agent's own priority",
        examples=["high"],
    )
    trigger: TriggerKind = Field(
        default=TriggerKind.API,
        description="What caused the run",
    )
    scheduled_for: Optional[datetime] = Field(
        None,
        description="Earliest start time",
    )

    def parsed_priority(self) -> Optional[Priority]:
        return Priority.parse(self.priority) if self.priority is not None else None


class ExecutionResponse(CamelModel):
    """Execution as returned by the API."""

    id: str = Field(..., description="Execution identifier")
    organization_id: str = Field(..., description="Owning organization")
    agent_id: str = Field(..., description="Agent being run")
    trigger: TriggerKind = Field(..., description="Admission trigger")
    priority: Priority = Field(..., description="Queue tier")
    status: ExecutionStatus = Field(..., description="Lifecycle state")
    created_at: datetime = Field(..., description="Admission time")
    start_time: Optional[datetime] = Field(None, description="When the run entered running")
    end_time: Optional[datetime] = Field(None, description="When the run left running")
    actions: list[dict[str, Any]] = Field(default_factory=list, description="Recorded actions")
    observation_refs: list[str] = Field(default_factory=list, description="Recorded observation references")
    error_category: Optional[FailureCategory] = Field(None, description="Failure category")
    result: Optional[dict[str, Any]] = Field(None, description="Terminal result summary")

    @classmethod
    def from_execution(cls, execution: Execution) -> "ExecutionResponse":
        return cls(
            id=execution.id,
            organization_id=execution.organization_id,
            agent_id=execution.agent_id,
            trigger=execution.trigger,
            priority=execution.priority,
            status=execution.status,
            created_at=execution.created_at,
            start_time=execution.start_time,
            end_time=execution.end_time,
            actions=execution.actions,
            observation_refs=execution.observation_refs,
            error_category=execution.error_category,
            result=execution.result(),
        )


class QueueStatusResponse(CamelModel):
    """Snapshot of the scheduler queue."""

    pending: int = Field(..., description="Queued tasks not yet started")
    running: int = Field(..., description="Executions with a live context")
    priority_counts: dict[str, int] = Field(..., description="Queued tasks per priority tier")


class UsageRecordResponse(CamelModel):
    """One day of usage."""

    period: date = Field(..., description="UTC accounting day")
    api_calls: int = Field(..., description="Decision-capability runs")
    browser_sessions: int = Field(..., description="Automation sessions opened")
    storage_used: int = Field(..., description="Storage consumed")

    @classmethod
    def from_record(cls, record: UsageRecord) -> "UsageRecordResponse":
        return cls(
            period=record.period,
            api_calls=record.api_calls,
            browser_sessions=record.browser_sessions,
            storage_used=record.storage_used,
        )


class QuotaResponse(CamelModel):
    api_calls: Optional[int] = Field(None, description="Allowed runs; null when the organization is unknown")
    api_used: Optional[int] = Field(None, description="Consumed runs")


class UsageResponse(CamelModel):
    """Usage history and quota of one organization."""

    usage: list[UsageRecordResponse] = Field(default_factory=list, description="Daily usage records")
    quota: QuotaResponse = Field(..., description="Quota state")
