"""
Log context management for adding contextual information to structured logs.

Usage:
    from agentscale.infrastructure.observability.context import log_context

    with log_context(execution_id="abc", agent_id="42"):
        logger.info("iteration_started")  # Includes execution_id and agent_id
"""
from typing import Any
from contextlib import contextmanager
import structlog


@contextmanager
def log_context(**kwargs: Any):
    """
    Bind key-value pairs to every log entry made within the block.

    Context variables are per asyncio task, so concurrent executions do not
    see each other's fields. Fields bound by an outer block are restored on
    exit.
    """
    previous = structlog.contextvars.get_contextvars()
    structlog.contextvars.bind_contextvars(**kwargs)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*kwargs.keys())
        restore = {key: previous[key] for key in kwargs if key in previous}
        if restore:
            structlog.contextvars.bind_contextvars(**restore)
