"""
Sentry error tracking.

Sentry is optional: without a DSN every function here is a cheap no-op, so
callers report unconditionally.

Usage:
    from agentscale.infrastructure.observability.error_tracking import capture_exception

    try:
        await scheduler.process(task)
    except Exception as e:
        capture_exception(e, extra={"execution_id": task.execution_id})
"""

import logging
from typing import Any, Literal, Optional

import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration

logger = logging.getLogger(__name__)

# Exception types raised for bad client input
_CLIENT_ERROR_TYPES = {"ValidationError", "RequestValidationError"}


def _drop_client_errors(event: dict, hint: dict) -> Optional[dict]:
    """``before_send`` hook: discard 4xx AppErrors and request validation errors."""
    exc_info = hint.get("exc_info")
    if not exc_info:
        return event

    exc_type, exc_value, _ = exc_info
    status_code = getattr(exc_value, "status_code", None)
    if isinstance(status_code, int) and 400 <= status_code < 500:
        return None
    if exc_type.__name__ in _CLIENT_ERROR_TYPES:
        return None
    return event


def init_sentry(
    dsn: Optional[str] = None,
    environment: Optional[str] = None,
    release: Optional[str] = None,
    sample_rate: float = 1.0,
    traces_sample_rate: float = 0.1,
) -> bool:
    """
    Initialize the Sentry SDK with the FastAPI and logging integrations.

    Args:
        dsn: Sentry DSN; tracking stays disabled when empty
        environment: Environment tag (local, staging, production)
        release: Release identifier, normally the app version
        sample_rate: Error sampling rate (0.0 to 1.0)
        traces_sample_rate: Performance tracing sample rate (0.0 to 1.0)

    Returns:
        True if Sentry is now active
    """
    if not dsn:
        logger.info("Sentry DSN not provided, error tracking disabled")
        return False

    try:
        sentry_sdk.init(
            dsn=dsn,
            environment=environment,
            release=release,
            integrations=[
                FastApiIntegration(
                    transaction_style="endpoint",
                    failed_request_status_codes={*range(500, 600)},
                ),
                LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
            ],
            sample_rate=sample_rate,
            traces_sample_rate=traces_sample_rate,
            before_send=_drop_client_errors,
            attach_stacktrace=True,
            send_default_pii=False,
            max_breadcrumbs=50,
        )
    except Exception as e:
        logger.error(f"Failed to initialize Sentry: {e}")
        return False

    logger.info(f"Sentry initialized (environment={environment}, release={release})")
    return True


def capture_exception(
    error: Exception,
    extra: Optional[dict[str, Any]] = None,
    level: Literal["fatal", "error", "warning", "info", "debug"] = "error",
) -> Optional[str]:
    """
    Report an exception with extra context in an isolated scope.

    Returns:
        The Sentry event id, or None when Sentry is inactive or reporting failed
    """
    try:
        with sentry_sdk.new_scope() as scope:
            scope.set_level(level)
            for key, value in (extra or {}).items():
                scope.set_extra(key, value)
            return sentry_sdk.capture_exception(error)
    except Exception as e:
        logger.error(f"Failed to capture exception in Sentry: {e}")
        return None


def flush(timeout: float = 2.0) -> None:
    """Send queued events; called on shutdown."""
    try:
        sentry_sdk.flush(timeout=timeout)
    except Exception as e:
        logger.warning(f"Failed to flush Sentry events: {e}")
