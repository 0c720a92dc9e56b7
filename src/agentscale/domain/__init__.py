"""Domain models, actions, events, and exceptions."""

from agentscale.domain.exceptions import (
    AppError,
    NotFound,
    AgentNotFound,
    ExecutionNotFound,
    ConflictError,
    InvalidTransition,
    AlreadyQueued,
    QuotaExceeded,
    ActionExecutionError,
    DecisionError,
    DecisionUnavailable,
    MalformedDecision,
    SessionError,
)
from agentscale.domain.models import (
    AgentSpec,
    AgentStatus,
    Execution,
    ExecutionStatus,
    FailureCategory,
    LoopConfig,
    Organization,
    Priority,
    Schedule,
    TriggerKind,
    UsageDelta,
    UsageRecord,
)

__all__ = [
    # Exceptions
    "AppError",
    "NotFound",
    "AgentNotFound",
    "ExecutionNotFound",
    "ConflictError",
    "InvalidTransition",
    "AlreadyQueued",
    "QuotaExceeded",
    "ActionExecutionError",
    "DecisionError",
    "DecisionUnavailable",
    "MalformedDecision",
    "SessionError",
    # Models
    "AgentSpec",
    "AgentStatus",
    "Execution",
    "ExecutionStatus",
    "FailureCategory",
    "LoopConfig",
    "Organization",
    "Priority",
    "Schedule",
    "TriggerKind",
    "UsageDelta",
    "UsageRecord",
]
