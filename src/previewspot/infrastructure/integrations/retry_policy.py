"""Declarative retry policy consumed by the RetryingRequestExecutor.

Hey future me - ALL the "what do we do with status X" knowledge is in this file.
The executor just loops: send, classify, sleep(delay), repeat. The resolver never
sees any of this - it only sees a response or a typed exception.

Policy table:
    2xx       -> SUCCESS      return the response
    401 / 403 -> REAUTH       renew credential once, retry now, budget untouched
    429       -> RATE_LIMITED sleep Retry-After (or rate_limit_backoff * attempt), retry
    5xx       -> SERVER_ERROR sleep server_error_backoff * attempt, retry
    404       -> NOT_FOUND    give up right away (tier exhaustion signal)
    other 4xx -> FAIL         give up right away
Timeouts and transport errors count as SERVER_ERROR.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from enum import Enum

from previewspot.config.settings import RetrySettings

logger = logging.getLogger(__name__)


class RetryAction(str, Enum):
    """What the executor should do with one upstream answer."""

    SUCCESS = "success"
    REAUTH = "reauth"
    RATE_LIMITED = "rate_limited"
    SERVER_ERROR = "server_error"
    NOT_FOUND = "not_found"
    FAIL = "fail"


def classify_status(status_code: int) -> RetryAction:
    """Map an HTTP status code to a RetryAction."""
    if 200 <= status_code < 300:
        return RetryAction.SUCCESS
    if status_code in (401, 403):
        return RetryAction.REAUTH
    if status_code == 429:
        return RetryAction.RATE_LIMITED
    if status_code >= 500:
        return RetryAction.SERVER_ERROR
    if status_code == 404:
        return RetryAction.NOT_FOUND
    return RetryAction.FAIL


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header into seconds.

    Accepts delta-seconds ("2") and HTTP-dates. Returns None for missing,
    malformed, zero or negative values so the caller falls back to its own backoff.
    """
    if value is None or not value.strip():
        return None
    value = value.strip()
    try:
        seconds = float(value)
    except ValueError:
        try:
            retry_at = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            logger.debug("Ignoring malformed Retry-After header: %r", value)
            return None
        if retry_at.tzinfo is None:
            retry_at = retry_at.replace(tzinfo=UTC)
        seconds = (retry_at - datetime.now(UTC)).total_seconds()
    return seconds if seconds > 0 else None


@dataclass(frozen=True)
class RetryPolicy:
    """Max attempts + classifier + backoff, in one immutable object.

    max_attempts counts sends that can fail with 429/5xx/timeout. Re-auth retries
    are separate and bounded by max_reauth (1 - a second 401 means the credential
    is fundamentally bad and looping won't fix it).
    """

    max_attempts: int = 3
    server_error_backoff: float = 0.3
    rate_limit_backoff: float = 0.5
    max_reauth: int = 1
    classifier: Callable[[int], RetryAction] = classify_status

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.max_attempts,
            server_error_backoff=settings.server_error_backoff,
            rate_limit_backoff=settings.rate_limit_backoff,
        )

    def classify(self, status_code: int) -> RetryAction:
        return self.classifier(status_code)

    def delay_for(
        self,
        action: RetryAction,
        attempt: int,
        retry_after: str | None = None,
    ) -> float:
        """Seconds to sleep before the next attempt.

        Args:
            action: Classification of the failed attempt
            attempt: 1-based number of the attempt that just failed
            retry_after: Raw Retry-After header value, if any
        """
        if action is RetryAction.RATE_LIMITED:
            parsed = parse_retry_after(retry_after)
            if parsed is not None:
                return parsed
            return self.rate_limit_backoff * attempt
        if action is RetryAction.SERVER_ERROR:
            return self.server_error_backoff * attempt
        return 0.0


__all__ = [
    "RetryAction",
    "RetryPolicy",
    "classify_status",
    "parse_retry_after",
]
