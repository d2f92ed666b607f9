"""Retrying request executor: every outbound catalog call goes through here.

Hey future me - this generalizes the old per-client `_api_request` loops (one in the
Spotify client, one in the Deezer client, each with its own attempt counter) into ONE
executor driven by a RetryPolicy. Clients build the URL + params, the executor deals
with credentials, throttling, timeouts, 429/5xx backoff and the one-shot re-auth.

What callers get back:
- httpx.Response for 2xx
- UpstreamNotFoundError for 404 (not retried - the resolver treats it as "tier step empty")
- UpstreamClientError for other 4xx (not retried)
- AuthenticationError when a renewed credential still gets 401/403
- RateLimitExceededError / UpstreamServerError once the retry budget is gone
Every exception carries the last upstream payload in `.details`.
"""

import asyncio
import logging
from typing import Any

import httpx

from previewspot.domain.exceptions import (
    AuthenticationError,
    RateLimitExceededError,
    UpstreamClientError,
    UpstreamNotFoundError,
    UpstreamServerError,
)
from previewspot.domain.ports import ICredentialSource
from previewspot.infrastructure.integrations.retry_policy import (
    RetryAction,
    RetryPolicy,
)
from previewspot.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


def decode_payload(response: httpx.Response) -> Any:
    """Best-effort decode of an upstream body for diagnostics (JSON, else text)."""
    try:
        return response.json()
    except ValueError:
        return response.text or None


class RetryingRequestExecutor:
    """Status-driven retry/backoff wrapper around a shared httpx.AsyncClient."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: RetryPolicy | None = None,
        rate_limiter: RateLimiter | None = None,
        timeout: float = 10.0,
        name: str = "upstream",
    ) -> None:
        """
        Initialize executor.

        Args:
            client: Shared HTTP client (see HttpClientPool)
            policy: Retry policy (defaults: 3 attempts, 0.3s/0.5s linear backoff)
            rate_limiter: Optional token bucket for this upstream
            timeout: Per-request timeout in seconds
            name: Upstream name used in log lines and error messages
        """
        self.client = client
        self.policy = policy or RetryPolicy()
        self.rate_limiter = rate_limiter
        self.timeout = timeout
        self.name = name

    # Separate method so tests can patch the sleeping without touching asyncio itself.
    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    async def _send(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None,
        data: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> httpx.Response:
        if self.rate_limiter is not None:
            async with self.rate_limiter:
                return await self.client.request(
                    method, url, params=params, data=data, headers=headers, timeout=self.timeout
                )
        return await self.client.request(
            method, url, params=params, data=data, headers=headers, timeout=self.timeout
        )

    async def execute(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
        credentials: ICredentialSource | None = None,
    ) -> httpx.Response:
        """Send one logical request, retrying per policy.

        Args:
            method: HTTP method
            url: Absolute URL (pagination `next` links are fine as-is)
            params: Query parameters
            data: Form body
            headers: Extra headers
            credentials: Bearer credential source, None for credential-free upstreams

        Returns:
            The 2xx httpx.Response
        """
        credential = await credentials.get() if credentials is not None else None
        failures = 0
        reauths = 0

        while True:
            request_headers = dict(headers or {})
            if credential is not None:
                request_headers["Authorization"] = f"Bearer {credential.value}"

            try:
                response = await self._send(method, url, params, data, request_headers)
            except httpx.TransportError as e:
                # Timeouts, resets, DNS hiccups - all count like a 5xx
                failures += 1
                details = {"error": type(e).__name__, "message": str(e)}
                if failures >= self.policy.max_attempts:
                    logger.error(
                        "%s %s %s failed after %d attempts: %s",
                        self.name, method, url, failures, e,
                    )
                    raise UpstreamServerError(
                        f"{self.name} request failed after {failures} attempts: {e}",
                        details=details,
                    ) from e
                delay = self.policy.delay_for(RetryAction.SERVER_ERROR, failures)
                logger.warning(
                    "%s transport error (attempt %d/%d): %s - retrying in %.2fs",
                    self.name, failures, self.policy.max_attempts, e, delay,
                )
                await self._sleep(delay)
                continue

            action = self.policy.classify(response.status_code)
            if action is RetryAction.SUCCESS:
                return response

            payload = decode_payload(response)

            if action is RetryAction.REAUTH:
                if credentials is None:
                    raise UpstreamClientError(
                        f"{self.name} rejected the request ({response.status_code})",
                        details=payload,
                        status_code=response.status_code,
                    )
                if reauths >= self.policy.max_reauth:
                    logger.error(
                        "%s still answers %d after re-authentication: %s",
                        self.name, response.status_code, url,
                    )
                    raise AuthenticationError(
                        f"{self.name} rejected a freshly renewed credential "
                        f"({response.status_code})",
                        details=payload,
                    )
                reauths += 1
                logger.info(
                    "%s answered %d, renewing credential and replaying %s",
                    self.name, response.status_code, url,
                )
                credential = await credentials.renew()
                continue

            if action is RetryAction.NOT_FOUND:
                raise UpstreamNotFoundError(
                    f"{self.name} resource not found: {url}",
                    details=payload,
                    status_code=response.status_code,
                )

            if action is RetryAction.FAIL:
                raise UpstreamClientError(
                    f"{self.name} request failed with {response.status_code}: {url}",
                    details=payload,
                    status_code=response.status_code,
                )

            failures += 1
            if failures >= self.policy.max_attempts:
                error_cls = (
                    RateLimitExceededError
                    if action is RetryAction.RATE_LIMITED
                    else UpstreamServerError
                )
                logger.error(
                    "%s %s %s gave up after %d attempts (last status %d)",
                    self.name, method, url, failures, response.status_code,
                )
                raise error_cls(
                    f"{self.name} request failed after {failures} attempts "
                    f"(last status {response.status_code})",
                    details=payload,
                    status_code=response.status_code,
                )

            delay = self.policy.delay_for(
                action, failures, response.headers.get("Retry-After")
            )
            logger.warning(
                "%s %d (attempt %d/%d): waiting %.2fs before retrying %s",
                self.name, response.status_code, failures,
                self.policy.max_attempts, delay, url,
            )
            await self._sleep(delay)

    async def get_json(
        self,
        url: str,
        *,
        params: dict[str, Any] | None = None,
        credentials: ICredentialSource | None = None,
    ) -> dict[str, Any]:
        """GET and decode a JSON object.

        Raises:
            UpstreamServerError: 2xx body that is not a JSON object (HTML error page, list, ...)
        """
        response = await self.execute("GET", url, params=params, credentials=credentials)
        try:
            data = response.json()
        except ValueError as e:
            logger.warning(
                "%s returned %d with a body that is not JSON: %s",
                self.name, response.status_code, url,
            )
            raise UpstreamServerError(
                f"{self.name} returned a body that is not JSON: {url}",
                details=response.text or None,
                status_code=response.status_code,
            ) from e
        if not isinstance(data, dict):
            logger.warning(
                "%s returned %d with a JSON %s instead of an object: %s",
                self.name, response.status_code, type(data).__name__, url,
            )
            raise UpstreamServerError(
                f"{self.name} returned an unexpected JSON payload: {url}",
                details=data,
                status_code=response.status_code,
            )
        return data


__all__ = ["RetryingRequestExecutor", "decode_payload"]
