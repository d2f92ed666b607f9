"""Middleware for observability: request/response logging."""

import logging
import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from previewspot.infrastructure.observability.logging import (
    get_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)


# Hey future me, this runs around EVERY request. Flow: take X-Correlation-ID from the caller
# (or make one), put it in the context so every log line of this resolution carries it, log
# start, run the route, log status + duration, echo the ID back in the response header so the
# browser game can show it in an error toast. Exceptions get logged with context and re-raised.
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for logging HTTP requests and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        set_correlation_id(request.headers.get("X-Correlation-ID"))

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"
        is_health_check = path.startswith("/health")

        if not is_health_check:
            logger.info(
                f"→ {method} {path}",
                extra={"method": method, "path": path, "client_ip": client_ip},
            )

        start_time = time.monotonic()
        try:
            response = await call_next(request)
        except Exception as e:
            logger.exception(
                f"Request failed: {method} {path}",
                extra={
                    "method": method,
                    "path": path,
                    "duration_ms": int((time.monotonic() - start_time) * 1000),
                    "error_type": type(e).__name__,
                },
            )
            raise

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if not is_health_check:
            status_emoji = "✓" if response.status_code < 400 else "✗"
            logger.info(
                f"{status_emoji} {method} {path} → {response.status_code} ({duration_ms}ms)",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "duration_ms": duration_ms,
                },
            )

        response.headers["X-Correlation-ID"] = get_correlation_id()
        return response
