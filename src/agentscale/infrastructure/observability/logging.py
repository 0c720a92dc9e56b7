"""
Structured logging configuration.

Use `get_logger` from this module, not print() or logging.getLogger().
"""
from typing import Optional, Any
import structlog
from agentscale.config.settings import Settings, get_settings


def truncate_value(value: Any, max_length: int) -> Any:
    """
    Shorten long strings, recursing into dicts and lists.

    Observation frames travel as base64 and would otherwise flood the logs.

    Example:
        >>> truncate_value("a" * 10, 4)
        'aaaa...(10 chars)'
    """
    if isinstance(value, str) and len(value) > max_length:
        return f"{value[:max_length]}...({len(value)} chars)"
    if isinstance(value, dict):
        return {k: truncate_value(v, max_length) for k, v in value.items()}
    if isinstance(value, list):
        return [truncate_value(v, max_length) for v in value]
    return value


def make_truncation_processor(max_length: int):
    """
    Build a structlog processor that truncates oversized values.

    The ``event`` message itself is left alone.
    """

    def truncation_processor(logger_obj: Any, method_name: str, event_dict: dict) -> dict:
        for key, value in event_dict.items():
            if key != "event":
                event_dict[key] = truncate_value(value, max_length)
        return event_dict

    return truncation_processor


def console_renderer_with_colors():
    """Console renderer with colors for development."""
    return structlog.dev.ConsoleRenderer(
        colors=True,
        pad_event=25,
        exception_formatter=structlog.dev.plain_traceback,
    )


def json_renderer():
    """JSON renderer for production."""
    return structlog.processors.JSONRenderer()


def configure_logging(settings: Optional[Settings] = None) -> None:
    """
    Configure structured logging.

    This sets up the logging system with:
    - Context variable merging (for log_context usage)
    - Request and execution ids via log_context
    - Truncation of oversized values such as base64 frames
    - JSON formatting for production or colored console for development
    """
    settings = settings or get_settings()

    if settings.log_format == "json":
        renderer = json_renderer()
    else:
        renderer = console_renderer_with_colors()

    processors = [
        # 1. Merge context variables (allows log_context to work)
        structlog.contextvars.merge_contextvars,

        # 2. Add log level
        structlog.processors.add_log_level,

        # 3. Add timestamp
        structlog.processors.TimeStamper(fmt="iso"),

        # 4. Truncate long values
        make_truncation_processor(settings.log_max_value_length),

        # 5. Add stack info if requested
        structlog.processors.StackInfoRenderer(),

        # 6. Format exceptions
        structlog.processors.format_exc_info,

        # 7. Final rendering (JSON or Console)
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(settings.log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: Optional[str] = None) -> structlog.BoundLogger:
    """
    Get a logger instance with structured logging support.

    Args:
        name: Logger name (typically __name__ of the module)

    Returns:
        BoundLogger instance with all configured processors

    Usage:
        >>> from agentscale.infrastructure.observability.logging import get_logger
        >>> logger = get_logger(__name__)
        >>> logger.info("execution_started", execution_id="abc")

    Note:
        Use log_context to bind fields for every record inside a block:
        >>> from agentscale.infrastructure.observability.context import log_context
        >>> with log_context(execution_id="abc"):
        ...     logger.info("action_applied")  # Includes execution_id
    """
    return structlog.get_logger(name)
