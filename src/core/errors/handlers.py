from collections.abc import Awaitable, Callable
import logging
from typing import Any, cast

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
import sentry_sdk
from starlette.responses import Response

from loggers import get_logger, redact_tokens
from src.core.errors.exceptions import CoreException

response_logger = get_logger("app.request.error_response", plain_format=True)

HandlerCallable = Callable[[Request, Exception], Awaitable[Response]]

MAX_LOG_MESSAGE_LENGTH = 500
STORE_RETRY_AFTER_SECONDS = 5

# additional_info keys whose values never reach a log line
SENSITIVE_KEYS = frozenset(
    {
        "authorization",
        "token",
        "raw_token",
        "secret",
        "api_key",
        "api-key",
        "x-admin-key",
    }
)


def as_exception_handler(handler: Any) -> HandlerCallable:
    """Expose a handler instance with the signature FastAPI expects."""
    return cast(HandlerCallable, handler.__call__)


def format_error_response(
    error_type: str, message: str | None, reason: str | None = None
) -> dict[str, Any]:
    """
    Error envelope returned to clients.

    ``reason`` is the machine-readable error kind, added only when the
    exception carries one.
    """
    content: dict[str, Any] = {
        "error": error_type,
        "message": message or "No additional details available",
    }
    if reason is not None:
        content["reason"] = reason
    return content


def format_log_message(
    request: Request,
    error_type: str,
    message: str | None,
    additional_info: dict[str, Any] | None = None,
    include_request_path: bool = False,
) -> str:
    """
    One log line per error response.

    Whitespace is collapsed, anything shaped like a signed token is redacted
    and the text is capped at ``MAX_LOG_MESSAGE_LENGTH`` characters. Values of
    ``SENSITIVE_KEYS`` in ``additional_info`` are masked.
    """
    raw_msg = message or "No additional details available"
    msg = redact_tokens(" ".join(raw_msg.split()))
    if len(msg) > MAX_LOG_MESSAGE_LENGTH:
        msg = msg[: MAX_LOG_MESSAGE_LENGTH - 3] + "..."

    et = (error_type or "").strip()
    err = (et[:1].upper() + et[1:]) if et else "Error"

    request_id = request.headers.get("x-request-id") or getattr(
        getattr(request, "state", object()), "request_id", None
    )
    prefix = f"[{request_id}] " if request_id else ""

    if include_request_path:
        log_msg = f"{prefix}[{err}] {request.method} {request.url.path} | {msg}"
    else:
        log_msg = f"{prefix}[{err}] {msg}"

    if additional_info:

        def mask(k: str, v: Any) -> str:
            return "***" if k.lower() in SENSITIVE_KEYS else repr(v)

        additional_str = ", ".join(
            f"{k}={mask(k, additional_info[k])}" for k in sorted(additional_info)
        )
        log_msg = f"{log_msg} | Additional info: {additional_str}"

    return log_msg


# ----- Core Error Handlers ----- #
class CoreExceptionHandler:
    """
    Maps a ``CoreException`` to a JSON error envelope. Subclasses only change
    the status code, the error title and the log level.
    """

    status_code = 400
    error_type = "Bad request"
    log_level = logging.INFO
    include_request_path = False

    async def __call__(self, request: Request, exc: CoreException) -> JSONResponse:
        log_msg = format_log_message(
            request,
            self.error_type,
            exc.message,
            exc.additional_info,
            include_request_path=self.include_request_path,
        )
        response_logger.log(self.log_level, log_msg)
        return JSONResponse(
            status_code=self.status_code,
            content=format_error_response(
                self.error_type, exc.message, getattr(exc, "kind", None)
            ),
            headers=self.headers(exc),
        )

    def headers(self, exc: CoreException) -> dict[str, str] | None:
        return None


class InstanceNotFoundExceptionHandler(CoreExceptionHandler):
    status_code = 404
    error_type = "Instance not found"


class InstanceProcessingExceptionHandler(CoreExceptionHandler):
    error_type = "Instance processing error"


class UnauthorizedExceptionHandler(CoreExceptionHandler):
    status_code = 401
    error_type = "Unauthorized"
    log_level = logging.WARNING
    include_request_path = True


class InfrastructureExceptionHandler(CoreExceptionHandler):
    """Store and dependency outages: 503, reported to Sentry."""

    status_code = 503
    error_type = "Infrastructure error"
    log_level = logging.ERROR

    async def __call__(self, request: Request, exc: CoreException) -> JSONResponse:
        sentry_sdk.capture_exception(exc)
        return await super().__call__(request, exc)

    def headers(self, exc: CoreException) -> dict[str, str] | None:
        return {"Retry-After": str(STORE_RETRY_AFTER_SECONDS)}


# ----- Validation Handlers ----- #
class RequestValidationExceptionHandler:
    async def __call__(
        self, request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        safe_detail = jsonable_encoder(exc.errors())
        log_msg = format_log_message(
            request,
            "Request validation error",
            str(safe_detail),
            include_request_path=True,
        )
        response_logger.debug(log_msg)
        return JSONResponse(status_code=422, content={"detail": safe_detail})


class ValidationErrorExceptionHandler:
    async def __call__(self, request: Request, exc: ValidationError) -> JSONResponse:
        safe_detail = jsonable_encoder(exc.errors())
        log_msg = format_log_message(
            request,
            "Backend validation error",
            str(safe_detail),
            include_request_path=True,
        )
        response_logger.error(log_msg)
        sentry_sdk.capture_exception(exc)
        return JSONResponse(status_code=500, content={"detail": "Unexpected error"})

