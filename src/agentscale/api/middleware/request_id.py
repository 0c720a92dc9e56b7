"""
Request ID middleware.

Every HTTP request gets an identifier that is echoed in the X-Request-ID
response header, stored on ``request.state`` for error responses and
bound into the structured log context for the duration of the request.
"""
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from agentscale.infrastructure.observability.context import log_context
from agentscale.infrastructure.observability.logging import get_logger

REQUEST_ID_HEADER = "X-Request-ID"

logger = get_logger(__name__)


def is_valid_uuid(value: str) -> bool:
    """True only for a canonical UUID4 string."""
    try:
        parsed = uuid.UUID(value, version=4)
    except (ValueError, AttributeError):
        return False
    return str(parsed) == value and parsed.version == 4


def resolve_request_id(request: Request) -> str:
    """
    Request ID for this request.

    A client-supplied header is honoured only when it is a UUID4, so
    arbitrary strings never reach the logs as correlation ids.
    """
    candidate = request.headers.get(REQUEST_ID_HEADER)
    if candidate and is_valid_uuid(candidate):
        return candidate
    if candidate:
        logger.warning(
            "invalid_request_id_replaced",
            invalid_id=candidate[:64],
            client_ip=request.client.host if request.client else None,
        )
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Assigns, logs and echoes the request ID."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request)
        request.state.request_id = request_id

        with log_context(request_id=request_id):
            response = await call_next(request)

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
