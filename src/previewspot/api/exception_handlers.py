"""Custom exception handlers for FastAPI application.

This module registers global exception handlers that convert domain exceptions
and validation errors into HTTP responses with the status codes the game expects.

Every error body has the same shape: {"error": "<message>", "details": <anything>?}.
"details" carries the last upstream payload whenever there is one - that's usually
the only clue WHY Spotify or Deezer said no.
"""

import json
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from previewspot.api.dependencies import set_token_cookie
from previewspot.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    DomainException,
    ExternalServiceError,
    ResolutionTimeoutError,
    TrackNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def error_body(message: str, details: Any = None) -> dict[str, Any]:
    """Build the {"error", "details"?} response body."""
    body: dict[str, Any] = {"error": message}
    if details is not None:
        body["details"] = details
    return body


# A user token refreshed during a request that then failed is still a good token. Routes park
# it on request.state.pending_cookies as (name, value, max_age) and every error response
# writes it.
def _json_error(
    request: Request,
    status_code: int,
    content: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    response = JSONResponse(status_code=status_code, content=content, headers=headers)
    for name, value, max_age in getattr(request.state, "pending_cookies", ()):
        set_token_cookie(response, name, value, max_age=max_age)
    return response


# Hey future me - this helper converts bytes to strings in validation error dicts!
# Pydantic's exc.errors() can include the raw request body as bytes in the 'input' field
# (malformed JSON does that), which would blow up JSONResponse with "Object of type bytes
# is not JSON serializable". Also drops the 'ctx' entries that can hold exception objects.
def _sanitize_validation_errors(
    errors: list[dict[str, Any]],
) -> list[dict[str, Any]]:
    """Sanitize validation errors so they can be JSON-encoded."""

    def _sanitize_value(value: Any) -> Any:
        if isinstance(value, bytes):
            try:
                return value.decode("utf-8")
            except UnicodeDecodeError:
                return value.decode("latin-1")
        elif isinstance(value, dict):
            return {k: _sanitize_value(v) for k, v in value.items() if k != "ctx"}
        elif isinstance(value, list | tuple):
            return [_sanitize_value(item) for item in value]
        return value

    return [_sanitize_value(error) for error in errors]


def _validation_message(errors: list[dict[str, Any]]) -> str:
    if any(error.get("type") == "json_invalid" for error in errors):
        return "Malformed JSON body"
    fields = sorted(
        {str(error["loc"][-1]) for error in errors if error.get("loc") and error["loc"][0] == "body"}
    )
    if fields:
        return f"Missing or invalid {', '.join(fields)}"
    return "Invalid request"


# Hey future me, this registers GLOBAL exception handlers for the entire app! FastAPI picks the
# handler by walking the exception's MRO, so TokenRefreshException lands in the
# AuthenticationError handler and UpstreamNotFoundError in the ExternalServiceError one.
# The DomainException handler is the catch-all for anything domain-shaped we forgot.
# Call this during app setup BEFORE any requests arrive (create_app does).
def register_exception_handlers(app: FastAPI) -> None:
    """Register handlers for domain exceptions, validation errors and HTTP errors.

    Args:
        app: FastAPI application instance
    """

    @app.exception_handler(ValidationError)
    async def validation_error_handler(
        request: Request, exc: ValidationError
    ) -> JSONResponse:
        """Handle domain validation errors with 400 Bad Request."""
        logger.warning(
            "Validation error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(exc.message, exc.details),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Handle body validation and malformed JSON with 400 Bad Request."""
        sanitized_errors = _sanitize_validation_errors(list(exc.errors()))
        logger.warning(
            "Request validation error at %s: %s",
            request.url.path,
            sanitized_errors,
            extra={"path": request.url.path, "errors": sanitized_errors},
        )
        return _json_error(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(_validation_message(sanitized_errors), sanitized_errors),
        )

    @app.exception_handler(json.JSONDecodeError)
    async def json_decode_error_handler(
        request: Request, exc: json.JSONDecodeError
    ) -> JSONResponse:
        """Handle malformed JSON with 400 Bad Request."""
        logger.warning(
            "Malformed JSON at %s: %s",
            request.url.path,
            str(exc),
            extra={"path": request.url.path, "error": str(exc)},
        )
        return _json_error(
            request,
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_body(f"Malformed JSON: {exc.msg}"),
        )

    @app.exception_handler(TrackNotFoundError)
    async def track_not_found_handler(
        request: Request, exc: TrackNotFoundError
    ) -> JSONResponse:
        """Handle 'nothing playable anywhere' with 404 Not Found."""
        logger.info(
            "No playable track at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            content=error_body(exc.message, exc.details),
        )

    @app.exception_handler(ResolutionTimeoutError)
    async def resolution_timeout_handler(
        request: Request, exc: ResolutionTimeoutError
    ) -> JSONResponse:
        """Handle an exhausted time budget with 504 Gateway Timeout."""
        logger.error(
            "Resolution timed out at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            content=error_body(exc.message, exc.details),
        )

    # Yo, 401 ONLY when the caller can fix it by logging in (no session, revoked refresh token).
    # A failed client-credentials exchange is OUR problem (bad secret, Spotify down) -> 500.
    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(
        request: Request, exc: AuthenticationError
    ) -> JSONResponse:
        """Handle authentication errors with 401 or 500."""
        if exc.session_required:
            logger.warning(
                "Session required at %s: %s",
                request.url.path,
                exc.message,
                extra={"path": request.url.path, "error": exc.message},
            )
            return _json_error(
                request,
                status_code=status.HTTP_401_UNAUTHORIZED,
                content=error_body(exc.message, exc.details),
            )
        logger.error(
            "Authentication error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(exc.message, exc.details),
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request, exc: ConfigurationError
    ) -> JSONResponse:
        """Handle configuration errors with 500 Internal Server Error."""
        logger.error(
            "Configuration error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(exc.message, exc.details),
        )

    @app.exception_handler(ExternalServiceError)
    async def external_service_error_handler(
        request: Request, exc: ExternalServiceError
    ) -> JSONResponse:
        """Handle upstream failures that escaped the pipeline with 500."""
        logger.error(
            "External service error at %s: %s",
            request.url.path,
            exc.message,
            extra={
                "path": request.url.path,
                "error": exc.message,
                "upstream_status": exc.status_code,
            },
        )
        return _json_error(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(exc.message, exc.details),
        )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(
        request: Request, exc: DomainException
    ) -> JSONResponse:
        """Catch-all for domain exceptions without a dedicated handler."""
        logger.error(
            "Unhandled domain error at %s: %s",
            request.url.path,
            exc.message,
            extra={"path": request.url.path, "error": exc.message},
        )
        return _json_error(
            request,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(exc.message, exc.details),
        )

    # 405 for GET /api/get-track, 404 for unknown paths - same body shape as everything else
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        """Handle HTTP exceptions with proper logging."""
        if exc.status_code >= 500:
            logger.error(
                "HTTP error %d at %s: %s",
                exc.status_code,
                request.url.path,
                exc.detail,
                extra={"path": request.url.path, "status_code": exc.status_code},
            )
        else:
            logger.info(
                "HTTP error %d at %s: %s",
                exc.status_code,
                request.url.path,
                exc.detail,
                extra={"path": request.url.path, "status_code": exc.status_code},
            )
        return _json_error(
            request,
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )
