"""
Exception hierarchy for the orchestration service.

All exceptions inherit from AppError which provides:
- error_code: Machine-readable error code (from ErrorCode enum)
- status_code: HTTP status code for API responses
- message: Human-readable error message
- details: Optional dictionary with additional context
- suggested_action: Optional user-friendly suggestion for resolution

The groups below follow the failure taxonomy of an execution:
admission (quota), lookup, state, decision, action and resource errors.
Budget exhaustion is not an exception; the loop reports it as a
terminal outcome.

Usage:
    from agentscale.domain.exceptions import QuotaExceeded, ExecutionNotFound

    raise QuotaExceeded(details={"organization_id": org_id})
    raise ExecutionNotFound(f"Execution '{execution_id}' not found")
"""

from typing import Any, Optional
from agentscale.api.schemas.errors import ErrorCode


class AppError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        error_code: Machine-readable error code (from ErrorCode enum)
        status_code: HTTP status code (default: 500)
        message: Human-readable error message
        details: Optional dictionary with additional error context
        suggested_action: Optional user-friendly suggestion for resolution
    """

    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = 500
    default_message: str = "An unexpected error occurred"
    default_suggested_action: Optional[str] = None

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        suggested_action: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.details = details or {}
        self.suggested_action = suggested_action or self.default_suggested_action
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"error_code={self.error_code.value}, "
            f"status_code={self.status_code}, "
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )


# ========================================
# Not Found Errors (404)
# ========================================


class NotFound(AppError):
    """Base class for resource not found errors."""

    status_code = 404
    error_code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"
    default_suggested_action = "Please check the resource ID and try again"


class AgentNotFound(NotFound):
    """Agent does not exist."""

    error_code = ErrorCode.AGENT_NOT_FOUND
    default_message = "Agent not found"
    default_suggested_action = "Please check the agent ID or create the agent first"


class ExecutionNotFound(NotFound):
    """Execution does not exist."""

    error_code = ErrorCode.EXECUTION_NOT_FOUND
    default_message = "Execution not found"


# ========================================
# Conflict Errors (409)
# ========================================


class ConflictError(AppError):
    """Base class for state conflicts."""

    status_code = 409
    error_code = ErrorCode.CONFLICT
    default_message = "Resource conflict"


class InvalidTransition(ConflictError):
    """Execution cannot move from its current status to the requested one."""

    error_code = ErrorCode.INVALID_STATE_TRANSITION
    default_message = "Execution cannot move to the requested status"
    default_suggested_action = "Fetch the execution to see its current status"


class AlreadyQueued(ConflictError):
    """An execution id is admitted to the queue at most once."""

    error_code = ErrorCode.DUPLICATE_RESOURCE
    default_message = "Execution is already queued"


# ========================================
# Quota Errors (429)
# ========================================


class QuotaExceeded(AppError):
    """Organization has no API quota left."""

    status_code = 429
    error_code = ErrorCode.QUOTA_EXCEEDED
    default_message = "Organization API quota exceeded"
    default_suggested_action = "Upgrade the organization plan or wait for the quota to reset"


# ========================================
# Execution Errors (500)
# ========================================


class ActionExecutionError(AppError):
    """An action could not be dispatched against the live session."""

    status_code = 500
    error_code = ErrorCode.ACTION_FAILED
    default_message = "Action execution failed"


# ========================================
# Decision Errors (502)
# ========================================


class DecisionError(AppError):
    """Base class for decision capability failures."""

    status_code = 502
    error_code = ErrorCode.EXTERNAL_SERVICE_ERROR
    default_message = "Decision capability call failed"
    default_suggested_action = "Please try again later"


class DecisionUnavailable(DecisionError):
    """Decision capability is unreachable or rejected the request."""

    default_message = "Decision capability is unavailable"


class MalformedDecision(DecisionError):
    """Decision capability answered with something that is not an action or completion."""

    error_code = ErrorCode.MALFORMED_RESPONSE
    default_message = "Decision capability returned a malformed response"


# ========================================
# Resource Errors (503)
# ========================================


class SessionError(AppError):
    """Automation session could not be launched, navigated or used."""

    status_code = 503
    error_code = ErrorCode.SESSION_ERROR
    default_message = "Automation session error"
    default_suggested_action = "Please retry the execution"
