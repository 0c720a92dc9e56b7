"""
Observability infrastructure for the orchestration service.

This package provides:
- Structured logging
- Log context management
- Prometheus metrics
- Error tracking with Sentry
"""

from agentscale.infrastructure.observability.logging import configure_logging, get_logger
from agentscale.infrastructure.observability.context import log_context
from agentscale.infrastructure.observability.error_tracking import (
    init_sentry,
    capture_exception,
    flush,
)

__all__ = [
    "configure_logging",
    "get_logger",
    "log_context",
    "init_sentry",
    "capture_exception",
    "flush",
]
