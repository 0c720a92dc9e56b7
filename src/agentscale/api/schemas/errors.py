"""Error response schemas and error codes."""

from enum import Enum
from typing import Any
from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Machine-readable codes carried by error responses, grouped by HTTP status."""

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # 404
    NOT_FOUND = "NOT_FOUND"
    AGENT_NOT_FOUND = "AGENT_NOT_FOUND"
    EXECUTION_NOT_FOUND = "EXECUTION_NOT_FOUND"

    # 409
    CONFLICT = "CONFLICT"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    DUPLICATE_RESOURCE = "DUPLICATE_RESOURCE"

    # 429
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # 500
    INTERNAL_ERROR = "INTERNAL_ERROR"
    ACTION_FAILED = "ACTION_FAILED"

    # 502: decision capability
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    MALFORMED_RESPONSE = "MALFORMED_RESPONSE"

    # 503: automation session
    SESSION_ERROR = "SESSION_ERROR"


class FieldError(BaseModel):
    """One failed field of a request body, path or query."""

    field: str = Field(
        ...,
        description="Dotted location of the field",
        examples=["body.organizationId", "body.trigger"],
    )
    message: str = Field(..., description="What is wrong with the value")
    code: str | None = Field(
        default=None,
        description="Validator error type, upper-cased",
        examples=["MISSING", "ENUM"],
    )
    value: Any | None = Field(default=None, description="The rejected value")


class ErrorDetail(BaseModel):
    """The ``error`` object of every error response."""

    code: ErrorCode = Field(..., description="Machine-readable error code")
    message: str = Field(
        ...,
        description="Human-readable error message",
        examples=["Execution not found", "Organization API quota exceeded"],
    )
    details: list[FieldError] | None = Field(
        default=None,
        description="Field-level errors, for validation failures",
    )
    context: dict[str, Any] | None = Field(
        default=None,
        description="Extra context such as the execution id and its status",
        examples=[{"execution_id": "9f1c", "status": "completed"}],
    )

    @classmethod
    def from_validation_error(cls, validation_errors: list[dict[str, Any]]) -> "ErrorDetail":
        """Build a VALIDATION_ERROR detail from pydantic/FastAPI error dicts."""
        return cls(
            code=ErrorCode.VALIDATION_ERROR,
            message="Request validation failed",
            details=[
                FieldError(
                    field=".".join(str(loc) for loc in err.get("loc", [])),
                    message=err.get("msg", "Validation error"),
                    code=str(err.get("type", "validation_error")).upper(),
                    value=err.get("input"),
                )
                for err in validation_errors
            ],
        )
