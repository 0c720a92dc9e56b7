"""
Exception handlers turning errors into the standard error body.

Every error response has the shape::

    {"error": {"code", "message", "details"?, "context"?},
     "request_id": "...", "suggested_action"?: "..."}

Domain errors (``AppError`` subclasses) carry their own status and code.
Request validation failures become 400 with field-level details. Anything
else is a 500; in production its message and context are hidden, and every
5xx is reported to Sentry.
"""

import logging
import uuid
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from agentscale.api.schemas.errors import ErrorCode, ErrorDetail, FieldError
from agentscale.config.settings import Settings, get_settings
from agentscale.domain.exceptions import AppError
from agentscale.infrastructure.observability.error_tracking import capture_exception


logger = logging.getLogger(__name__)

PRODUCTION_MESSAGE = "An internal error occurred. Please try again later."


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or str(uuid.uuid4())


class ErrorResponder:
    """Builds, logs and reports error responses for one application."""

    def __init__(self, settings: Settings):
        self.settings = settings

    def respond(
        self,
        request: Request,
        exc: Exception,
        code: ErrorCode,
        message: str,
        status_code: int,
        details: Optional[list[FieldError]] = None,
        context: Optional[dict[str, Any]] = None,
        suggested_action: Optional[str] = None,
    ) -> JSONResponse:
        request_id = _request_id(request)
        log_extra = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "status_code": status_code,
            "error_type": type(exc).__name__,
        }

        if status_code >= 500:
            logger.error(f"Server error on {request.url.path}: {exc}", extra=log_extra, exc_info=exc)
            capture_exception(exc, extra={"request_id": request_id, "path": request.url.path})
            if self.settings.is_production:
                message, context = PRODUCTION_MESSAGE, None
        else:
            logger.info(f"Client error on {request.url.path}: {message}", extra=log_extra)

        body: dict[str, Any] = {
            "error": ErrorDetail(
                code=code,
                message=message,
                details=details,
                context=context,
            ).model_dump(mode="json", exclude_none=True),
            "request_id": request_id,
        }
        if suggested_action:
            body["suggested_action"] = suggested_action

        return JSONResponse(status_code=status_code, content=jsonable_encoder(body))


def register_error_handlers(app: FastAPI) -> None:
    """
    Register the AppError, validation and catch-all handlers.

    Args:
        app: FastAPI application instance
    """
    responder = ErrorResponder(get_settings())

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return responder.respond(
            request,
            exc,
            code=exc.error_code,
            message=exc.message,
            status_code=exc.status_code,
            context=exc.details or None,
            suggested_action=exc.suggested_action,
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        detail = ErrorDetail.from_validation_error(list(exc.errors()))
        return responder.respond(
            request,
            exc,
            code=ErrorCode.VALIDATION_ERROR,
            message=detail.message,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=detail.details,
            suggested_action="Check the request body against the endpoint schema",
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return responder.respond(
            request,
            exc,
            code=ErrorCode.INTERNAL_ERROR,
            message=f"An unexpected error occurred: {exc}",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            context={"exception_type": type(exc).__name__},
            suggested_action="Retry later; report the request_id if the problem persists",
        )
