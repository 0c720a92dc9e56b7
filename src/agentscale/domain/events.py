"""
Execution event types published through the event broadcaster.

Events are a closed tagged variant keyed by ``type`` and always carry the
owning agent id. Wire shape (camelCase):
    {type, agentId, executionId?, action?, observation?, ...}
"""
import json
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from agentscale.domain.models import ExecutionStatus, utcnow


class BaseEvent(BaseModel):
    """Base class for all execution events."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    type: str = Field(..., description="Event type")
    agent_id: str | None = Field(None, description="Owning agent; None only for broadcast-wide events")
    execution_id: str | None = Field(None, description="Owning execution")
    timestamp: datetime = Field(default_factory=utcnow, description="Event timestamp")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObservationPayload(BaseModel):
    """A captured frame as delivered to subscribers."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    ref: str = Field(..., description="Observation reference")
    image: str = Field(..., description="Base64-encoded PNG frame")
    width: int = Field(..., description="Viewport width")
    height: int = Field(..., description="Viewport height")
    captured_at: datetime = Field(default_factory=utcnow, description="Capture time")


class ConnectedEvent(BaseEvent):
    """First event on every new subscription."""
    type: Literal["connected"] = "connected"


class ActionEvent(BaseEvent):
    """An action was applied to the session."""
    type: Literal["action"] = "action"
    action: dict[str, Any] = Field(..., description="Action in wire shape")
    iteration: int = Field(..., description="1-based loop iteration")


class ObservationEvent(BaseEvent):
    """A new observation was captured."""
    type: Literal["observation"] = "observation"
    observation: ObservationPayload = Field(..., description="Captured frame")


class StatusChangedEvent(BaseEvent):
    """An execution moved to a new status."""
    type: Literal["status-changed"] = "status-changed"
    status: ExecutionStatus = Field(..., description="New status")
    previous_status: ExecutionStatus | None = Field(None, description="Status before the change")
    error: str | None = Field(None, description="Failure detail when failed")
    summary: str | None = Field(None, description="Completion summary when completed")


class KeepaliveEvent(BaseEvent):
    """Sent to idle subscribers so transports with idle timeouts stay open."""
    type: Literal["keepalive"] = "keepalive"


def format_sse_event(event: BaseEvent) -> str:
    """Format an event as a Server-Sent Events frame."""
    return f"data: {json.dumps(event.to_wire())}\n\n"
