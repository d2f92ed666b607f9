"""Spotify token broker: app credentials, user refresh and the OAuth code exchange.

Hey future me - there are TWO kinds of Spotify tokens flowing through this service:

1. APP credential (client-credentials grant). No user involved, ~1h lifetime, shared by
   every request in the process. Cached in an ICredentialStore. Single-flight: when the
   cache is expired and 20 requests arrive at once, exactly ONE POST hits the token
   endpoint and all 20 await the same task.
2. USER credential (refresh-token grant). Belongs to one browser session, which keeps
   the refresh token in a cookie/header. NEVER cached here - each session is independent
   and the caller owns the storage.

Retry rules for the token endpoint (both grants): up to 3 attempts, 0.3s * attempt
between them, but ONLY for 5xx, transport errors or a {"error": "server_error"} body.
Anything else fails immediately - retrying "invalid_client" just gets us rate limited.
"""

import asyncio
import logging
from typing import Any
from urllib.parse import urlencode

import httpx

from previewspot.application.cache.credential_store import InMemoryCredentialStore
from previewspot.config.settings import SpotifySettings
from previewspot.domain.entities import (
    Credential,
    CredentialKind,
    TokenGrant,
    UserSession,
)
from previewspot.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    TokenRefreshException,
)
from previewspot.domain.ports import ICredentialSource, ICredentialStore
from previewspot.infrastructure.integrations.request_executor import decode_payload

logger = logging.getLogger(__name__)


class TokenBroker:
    """Acquires, caches and refreshes Spotify access credentials."""

    def __init__(
        self,
        settings: SpotifySettings,
        client: httpx.AsyncClient,
        store: ICredentialStore | None = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.3,
        timeout: float = 10.0,
    ) -> None:
        """
        Initialize token broker.

        Args:
            settings: Spotify configuration (client id/secret, token URL)
            client: Shared HTTP client
            store: Cache for the app credential (fresh in-memory store by default)
            max_attempts: Attempts per token exchange
            backoff_seconds: Linear backoff step between attempts
            timeout: Per-request timeout in seconds
        """
        self.settings = settings
        self.client = client
        self.store = store or InMemoryCredentialStore()
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.timeout = timeout
        # Counts client-credentials exchanges (not HTTP attempts) - handy for debugging token churn
        self.app_exchange_count = 0
        self._lock = asyncio.Lock()
        self._inflight: asyncio.Task[Credential] | None = None

    async def _sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)

    # =========================================================================
    # APP CREDENTIAL (client-credentials grant, cached, single-flight)
    # =========================================================================

    async def get_app_credential(self) -> Credential:
        """Return the cached app credential, exchanging a new one if needed."""
        cached = self.store.get()
        if cached is not None:
            return cached

        # Listen up: the lock only guards "check cache / start or join the task". It is
        # released BEFORE we await the network. Everybody who shows up while the exchange
        # runs gets the very same task.
        async with self._lock:
            cached = self.store.get()
            if cached is not None:
                return cached
            if self._inflight is None or self._inflight.done():
                self._inflight = asyncio.create_task(self._exchange_app_credential())
            inflight = self._inflight

        # shield(): one caller hitting its deadline must not cancel the exchange for the rest
        return await asyncio.shield(inflight)

    def invalidate_app_credential(self) -> None:
        """Drop the cached app credential (called after a 401/403)."""
        self.store.invalidate()

    async def renew_app_credential(self, rejected: Credential | None = None) -> Credential:
        """Replace an app credential that upstream just rejected.

        If another request already swapped the rejected credential for a new one,
        we reuse that instead of exchanging again.
        """
        current = self.store.get()
        if current is not None and rejected is not None and current.value != rejected.value:
            return current
        self.invalidate_app_credential()
        return await self.get_app_credential()

    async def _exchange_app_credential(self) -> Credential:
        self.app_exchange_count += 1
        payload = await self._request_token(
            {"grant_type": "client_credentials"}, grant="client_credentials"
        )
        credential = self._credential_from_payload(payload, CredentialKind.APP)
        self.store.set(credential)
        logger.info(
            "Obtained Spotify app credential (expires in %ss)",
            payload.get("expires_in"),
        )
        return credential

    # =========================================================================
    # USER CREDENTIAL (refresh-token grant, never cached here)
    # =========================================================================

    async def refresh_user_credential(self, refresh_token: str) -> Credential:
        """Exchange a refresh token for a new user access credential.

        Raises:
            TokenRefreshException: Refresh token revoked/invalid (user must log in again)
            AuthenticationError: Token endpoint kept failing
        """
        payload = await self._request_token(
            {"grant_type": "refresh_token", "refresh_token": refresh_token},
            grant="refresh_token",
        )
        logger.info("Refreshed Spotify user credential")
        return self._credential_from_payload(payload, CredentialKind.USER)

    # =========================================================================
    # AUTHORIZATION CODE FLOW (login redirect + callback)
    # =========================================================================

    def get_authorization_url(self, state: str, show_dialog: bool = True) -> str:
        """Build the Spotify authorize URL the browser gets redirected to.

        Raises:
            ConfigurationError: If client_id or redirect_uri is not configured
        """
        if not self.settings.client_id.strip():
            raise ConfigurationError("SPOTIFY_CLIENT_ID is not configured")
        if not self.settings.redirect_uri.strip():
            raise ConfigurationError(
                "SPOTIFY_REDIRECT_URI is not configured. "
                "Set it to your callback URL (e.g., http://localhost:8000/api/spotify-callback)"
            )
        params = {
            "response_type": "code",
            "client_id": self.settings.client_id,
            "scope": " ".join(self.settings.scopes),
            "redirect_uri": self.settings.redirect_uri,
            "state": state,
        }
        if show_dialog:
            params["show_dialog"] = "true"
        return f"{self.settings.authorize_url}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> TokenGrant:
        """Exchange the callback's one-time code for access + refresh tokens.

        The code is single-use and expires within minutes, and redirect_uri MUST match the
        one used in get_authorization_url() exactly.
        """
        if not self.settings.redirect_uri.strip():
            raise ConfigurationError("SPOTIFY_REDIRECT_URI is not configured")
        payload = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
            },
            grant="authorization_code",
        )
        return TokenGrant(
            access_token=payload["access_token"],
            token_type=payload.get("token_type", "Bearer"),
            expires_in=int(payload.get("expires_in", 3600)),
            refresh_token=payload.get("refresh_token"),
            scope=payload.get("scope"),
        )

    # =========================================================================
    # TOKEN ENDPOINT
    # =========================================================================

    async def _request_token(self, form: dict[str, str], grant: str) -> dict[str, Any]:
        """POST to the token endpoint with Basic client auth, retrying server errors."""
        self.settings.require_credentials()
        last_payload: Any = None

        for attempt in range(1, self.max_attempts + 1):
            retryable = False
            try:
                response = await self.client.post(
                    self.settings.token_url,
                    data=form,
                    auth=(self.settings.client_id, self.settings.client_secret),
                    headers={"Content-Type": "application/x-www-form-urlencoded"},
                    timeout=self.timeout,
                )
            except httpx.TransportError as e:
                last_payload = {"error": type(e).__name__, "message": str(e)}
                retryable = True
            else:
                payload = decode_payload(response)
                if response.status_code == 200 and isinstance(payload, dict):
                    if not payload.get("access_token"):
                        raise AuthenticationError(
                            f"Spotify {grant} response had no access_token",
                            details=payload,
                        )
                    return payload

                last_payload = payload
                error_code = payload.get("error") if isinstance(payload, dict) else None

                # Check for a dead refresh token BEFORE the generic handling -
                # Spotify says 400 invalid_grant when the user revoked us.
                if grant == "refresh_token" and (
                    response.status_code in (401, 403)
                    or (response.status_code == 400 and error_code == "invalid_grant")
                ):
                    description = (
                        payload.get("error_description", "")
                        if isinstance(payload, dict)
                        else ""
                    )
                    raise TokenRefreshException(
                        message=f"Refresh token invalid: {description or error_code}. "
                        "Please re-authenticate with Spotify.",
                        error_code=error_code or "access_denied",
                        http_status=response.status_code,
                        details=payload,
                    )

                retryable = response.status_code >= 500 or error_code == "server_error"

            if not retryable or attempt == self.max_attempts:
                break

            delay = self.backoff_seconds * attempt
            logger.warning(
                "Spotify %s exchange failed (attempt %d/%d), retrying in %.1fs: %s",
                grant, attempt, self.max_attempts, delay, last_payload,
            )
            await self._sleep(delay)

        logger.error("Spotify %s exchange failed: %s", grant, last_payload)
        raise AuthenticationError(
            f"Spotify {grant} exchange failed", details=last_payload
        )

    @staticmethod
    def _credential_from_payload(
        payload: dict[str, Any], kind: CredentialKind
    ) -> Credential:
        return Credential.from_lifetime(
            value=payload["access_token"],
            kind=kind,
            expires_in=float(payload.get("expires_in", 3600)),
        )


# =============================================================================
# CREDENTIAL SOURCES (what the RetryingRequestExecutor consumes)
# =============================================================================


class AppCredentialSource(ICredentialSource):
    """App credential from the broker cache; renew = invalidate + fetch."""

    def __init__(self, broker: TokenBroker) -> None:
        self.broker = broker
        self._current: Credential | None = None

    async def get(self) -> Credential:
        self._current = await self.broker.get_app_credential()
        return self._current

    async def renew(self) -> Credential:
        self._current = await self.broker.renew_app_credential(self._current)
        return self._current


class UserCredentialSource(ICredentialSource):
    """User credential for ONE request, built from the caller's session.

    Hey future me - `refreshed` is set when we had to mint a new access token during
    the request. The router writes it back into the sp_access_token cookie so the next
    request doesn't pay for another refresh.
    """

    def __init__(self, broker: TokenBroker, session: UserSession) -> None:
        self.broker = broker
        self.session = session
        self._current: Credential | None = None
        self.refreshed: Credential | None = None

    async def get(self) -> Credential:
        if self._current is not None and not self._current.is_expired():
            return self._current
        if self.session.access_token:
            # We don't know the real expiry of a caller-supplied token - assume the
            # standard hour and let a 401 trigger renew() if it's actually stale.
            self._current = Credential.from_lifetime(
                self.session.access_token, CredentialKind.USER, 3600
            )
            return self._current
        return await self.renew()

    async def renew(self) -> Credential:
        if not self.session.refresh_token:
            raise AuthenticationError(
                "No usable Spotify session. Please log in again.",
                session_required=True,
            )
        self._current = await self.broker.refresh_user_credential(self.session.refresh_token)
        self.refreshed = self._current
        return self._current


__all__ = [
    "AppCredentialSource",
    "TokenBroker",
    "UserCredentialSource",
]
