"""API middleware."""
from agentscale.api.middleware.errors import register_error_handlers
from agentscale.api.middleware.request_id import RequestIDMiddleware

__all__ = ["register_error_handlers", "RequestIDMiddleware"]
