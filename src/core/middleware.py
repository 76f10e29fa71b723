from collections.abc import Awaitable, Callable
import time
import traceback

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
import sentry_sdk
from starlette.responses import Response

from loggers import get_logger

logger = get_logger(__name__)
timing_logger = get_logger("src.request.timing", plain_format=True)

UNEXPECTED_ERROR_DETAIL = "Unexpected error"
STORE_UNAVAILABLE_DETAIL = "Storage temporarily unavailable. Please try again later."

FAST_REQUEST_SECONDS = 0.5
SLOW_REQUEST_SECONDS = 2.0

# Responses under these prefixes may carry a signed token
NO_STORE_PREFIXES = ("/v1/tracking", "/v1/admin")

SECURITY_HEADERS = {
    "X-Frame-Options": "DENY",
    "Content-Security-Policy": "frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    # The event stream URL carries the token as a query parameter
    "Referrer-Policy": "no-referrer",
}


def timing_category(seconds: float) -> str:
    if seconds < FAST_REQUEST_SECONDS:
        return "[FAST]"
    if seconds < SLOW_REQUEST_SECONDS:
        return "[MODERATE]"
    return "[SLOW]"


def register_middlewares(app: FastAPI) -> None:
    """
    Registers the HTTP middlewares. The last one registered runs outermost, so
    the unexpected-error guard wraps everything else.
    """

    @app.middleware("http")
    async def security_headers_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        response = await call_next(request)
        for header, value in SECURITY_HEADERS.items():
            response.headers.setdefault(header, value)
        if request.url.path.startswith(NO_STORE_PREFIXES):
            response.headers["Cache-Control"] = "no-store"
        return response

    @app.middleware("http")
    async def request_timing_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = time.perf_counter() - start_time

        category = timing_category(process_time)
        log = timing_logger.info if category == "[FAST]" else timing_logger.warning
        # Path only: query strings may carry a token
        log(
            "%s %s %s |%.3fs|%s",
            category,
            request.method,
            request.url.path,
            process_time,
            response.status_code,
        )
        return response

    @app.middleware("http")
    async def redis_error_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except RedisError as exc:
            logger.error(
                "Redis error at %s: %s", request.url.path, exc.__class__.__name__
            )
            sentry_sdk.capture_exception(exc)
            return JSONResponse(
                status_code=503,
                content={"detail": STORE_UNAVAILABLE_DETAIL},
            )

    @app.middleware("http")
    async def unexpected_error_middleware(
        request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.error(
                "Unexpected error at %s: %s\n%s",
                request.url.path,
                e.__class__.__name__,
                traceback.format_exc(),
            )
            sentry_sdk.capture_exception(e)
            return JSONResponse(
                status_code=500, content={"detail": UNEXPECTED_ERROR_DETAIL}
            )
