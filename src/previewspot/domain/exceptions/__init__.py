"""Domain exceptions."""

from typing import Any


class DomainException(Exception):
    """Base exception for all domain exceptions."""

    # Hey future me, message AND details are attributes so the exception handlers can build the
    # {"error": ..., "details": ...} body without parsing str(exception). details is where the last
    # upstream payload goes - NEVER drop it, it's the only thing that tells you WHY Spotify said no.
    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(DomainException):
    """Input validation failed (missing or blank playlist id, etc.).

    HTTP Status: 400
    """

    pass


class ConfigurationError(DomainException):
    """Application misconfiguration (client id/secret missing).

    HTTP Status: 500
    """

    pass


class AuthenticationError(DomainException):
    """Credential exchange failed, or no usable session when one is required.

    HTTP Status: 401 when the caller's session is the problem, 500 otherwise.

    Example:
        raise AuthenticationError("Client credentials exchange failed", details=payload)
        raise AuthenticationError("No session", session_required=True)
    """

    def __init__(
        self,
        message: str,
        details: Any = None,
        session_required: bool = False,
    ) -> None:
        super().__init__(message, details)
        self.session_required = session_required


class TokenRefreshException(AuthenticationError):
    """Raised when token refresh fails and re-authentication is required.

    Hey future me - this is thrown when the user's refresh token is no longer valid.
    Common causes:
    - User revoked app access in Spotify settings
    - App credentials changed
    - Spotify flagged the token as suspicious

    The browser has to go through /api/spotify-login again, nothing else helps.
    """

    def __init__(
        self,
        message: str = "Token refresh failed. Please re-authenticate with Spotify.",
        error_code: str | None = None,
        http_status: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message, details, session_required=True)
        self.error_code = error_code  # e.g., "invalid_grant"
        self.http_status = http_status  # e.g., 400, 401


class ExternalServiceError(DomainException):
    """External service (Spotify, Deezer) returned an error.

    Base class for every upstream failure the executor surfaces. Carries the
    upstream status code (None for transport failures) and the decoded payload.
    """

    def __init__(
        self,
        message: str,
        details: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class RateLimitExceededError(ExternalServiceError):
    """Upstream kept answering 429 until the retry budget ran out."""

    pass


class UpstreamServerError(ExternalServiceError):
    """Upstream kept answering 5xx (or timing out) until the retry budget ran out."""

    pass


class UpstreamClientError(ExternalServiceError):
    """Upstream answered a non-retryable 4xx."""

    pass


class UpstreamNotFoundError(UpstreamClientError):
    """Upstream answered 404.

    Not retried by the executor. The resolver reads it as "this tier step has nothing".
    """

    pass


class TrackNotFoundError(DomainException):
    """No playable track exists in any tier.

    This is a legit business outcome, not a bug!

    HTTP Status: 404
    """

    pass


class ResolutionTimeoutError(DomainException):
    """The whole resolution pipeline ran past its wall-clock budget.

    HTTP Status: 504
    """

    pass


# Short names for callers that think in terms of the
# resolution pipeline rather than HTTP.
InputError = ValidationError
ServerError = UpstreamServerError
RateLimited = RateLimitExceededError
NotFound = TrackNotFoundError


__all__ = [
    # Base
    "DomainException",
    # Input / config
    "ValidationError",
    "InputError",
    "ConfigurationError",
    # Auth
    "AuthenticationError",
    "TokenRefreshException",
    # Upstream
    "ExternalServiceError",
    "RateLimitExceededError",
    "RateLimited",
    "UpstreamServerError",
    "ServerError",
    "UpstreamClientError",
    "UpstreamNotFoundError",
    # Resolution outcomes
    "TrackNotFoundError",
    "NotFound",
    "ResolutionTimeoutError",
]
