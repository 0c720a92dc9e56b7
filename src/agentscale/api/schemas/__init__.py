"""API request/response schemas."""
from agentscale.api.schemas.errors import ErrorCode, ErrorDetail, FieldError
from agentscale.api.schemas.executions import (
    ExecuteAgentRequest,
    ExecutionResponse,
    QueueStatusResponse,
    QuotaResponse,
    UsageRecordResponse,
    UsageResponse,
)

__all__ = [
    "ErrorCode",
    "ErrorDetail",
    "FieldError",
    "ExecuteAgentRequest",
    "ExecutionResponse",
    "QueueStatusResponse",
    "QuotaResponse",
    "UsageRecordResponse",
    "UsageResponse",
]
