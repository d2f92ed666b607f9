"""Tests for TokenBroker and the credential sources."""

import asyncio
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest
from pytest_httpx import HTTPXMock

from previewspot.application.cache import InMemoryCredentialStore
from previewspot.config import SpotifySettings
from previewspot.domain.entities import CredentialKind, UserSession
from previewspot.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    TokenRefreshException,
)
from previewspot.infrastructure.integrations.token_broker import (
    AppCredentialSource,
    TokenBroker,
    UserCredentialSource,
)

from factories import SPOTIFY_TOKEN_URL, token_response


@pytest.fixture
def broker(spotify_settings: SpotifySettings, http_client: httpx.AsyncClient) -> TokenBroker:
    broker = TokenBroker(spotify_settings, http_client, store=InMemoryCredentialStore())
    broker._sleep = AsyncMock()  # type: ignore[method-assign]
    return broker


class TestAppCredential:
    """Test the client-credentials grant, caching and single-flight."""

    async def test_exchange_uses_basic_auth_and_form(self, broker, httpx_mock: HTTPXMock):
        """Test the token request shape."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response())

        credential = await broker.get_app_credential()

        assert credential.value == "app-token-1"
        assert credential.kind is CredentialKind.APP
        request = httpx_mock.get_request()
        assert request.headers["Authorization"].startswith("Basic ")
        assert parse_qs(request.content.decode()) == {"grant_type": ["client_credentials"]}

    async def test_cached_credential_is_reused(self, broker, httpx_mock: HTTPXMock):
        """Test that two calls within the lifetime cause one exchange."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response())

        first = await broker.get_app_credential()
        second = await broker.get_app_credential()

        assert first is second
        assert broker.app_exchange_count == 1
        assert len(httpx_mock.get_requests()) == 1

    async def test_expired_credential_is_exchanged_again(self, broker, httpx_mock: HTTPXMock):
        """Test that a zero-lifetime token is not served from cache."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("short", expires_in=0)
        )
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("fresh")
        )

        await broker.get_app_credential()
        credential = await broker.get_app_credential()

        assert credential.value == "fresh"
        assert broker.app_exchange_count == 2

    async def test_single_flight(self, broker, httpx_mock: HTTPXMock):
        """Test that N concurrent callers on an empty cache trigger exactly one exchange."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response())

        credentials = await asyncio.gather(*(broker.get_app_credential() for _ in range(20)))

        assert {c.value for c in credentials} == {"app-token-1"}
        assert broker.app_exchange_count == 1
        assert len(httpx_mock.get_requests()) == 1

    async def test_renew_replaces_rejected_credential(self, broker, httpx_mock: HTTPXMock):
        """Test invalidate + exchange after a 401."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("one"))
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("two"))

        rejected = await broker.get_app_credential()
        renewed = await broker.renew_app_credential(rejected)

        assert renewed.value == "two"
        assert broker.app_exchange_count == 2

    async def test_renew_reuses_credential_replaced_by_someone_else(
        self, broker, httpx_mock: HTTPXMock
    ):
        """Test that a stale rejection doesn't throw away an already renewed token."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("one"))
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("two"))

        old = await broker.get_app_credential()
        await broker.renew_app_credential(old)
        again = await broker.renew_app_credential(old)

        assert again.value == "two"
        assert broker.app_exchange_count == 2

    async def test_server_error_is_retried(self, broker, httpx_mock: HTTPXMock):
        """Test 5xx and {"error": "server_error"} retries with linear backoff."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", status_code=503)
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", status_code=400, json={"error": "server_error"}
        )
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response())

        credential = await broker.get_app_credential()

        assert credential.value == "app-token-1"
        delays = [call.args[0] for call in broker._sleep.await_args_list]
        assert delays == pytest.approx([0.3, 0.6])

    async def test_exhausted_retries_raise_with_payload(self, broker, httpx_mock: HTTPXMock):
        """Test AuthenticationError with the last upstream payload after 3 failures."""
        for _ in range(3):
            httpx_mock.add_response(
                url=SPOTIFY_TOKEN_URL,
                method="POST",
                status_code=500,
                json={"error": "server_error", "error_description": "try later"},
            )

        with pytest.raises(AuthenticationError) as exc_info:
            await broker.get_app_credential()

        assert exc_info.value.details["error_description"] == "try later"
        assert exc_info.value.session_required is False

    async def test_invalid_client_is_not_retried(self, broker, httpx_mock: HTTPXMock):
        """Test that a 400 invalid_client fails right away."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", status_code=400, json={"error": "invalid_client"}
        )

        with pytest.raises(AuthenticationError):
            await broker.get_app_credential()

        assert len(httpx_mock.get_requests()) == 1
        broker._sleep.assert_not_called()

    async def test_missing_access_token_is_an_error(self, broker, httpx_mock: HTTPXMock):
        """Test that a 200 without access_token is rejected."""
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json={"token_type": "Bearer"})

        with pytest.raises(AuthenticationError):
            await broker.get_app_credential()

    async def test_missing_client_credentials(self, http_client):
        """Test ConfigurationError before any request when id/secret are missing."""
        broker = TokenBroker(SpotifySettings(client_id="", client_secret=""), http_client)

        with pytest.raises(ConfigurationError):
            await broker.get_app_credential()


class TestUserCredential:
    """Test the refresh-token grant and the authorization code flow."""

    async def test_refresh(self, broker, httpx_mock: HTTPXMock):
        """Test that a refresh returns a USER credential and is not cached."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("user-token")
        )

        credential = await broker.refresh_user_credential("refresh-1")

        assert credential.kind is CredentialKind.USER
        assert broker.store.peek() is None
        form = parse_qs(httpx_mock.get_request().content.decode())
        assert form == {"grant_type": ["refresh_token"], "refresh_token": ["refresh-1"]}

    async def test_invalid_grant_raises_token_refresh_exception(
        self, broker, httpx_mock: HTTPXMock
    ):
        """Test that a revoked refresh token asks for re-authentication."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL,
            method="POST",
            status_code=400,
            json={"error": "invalid_grant", "error_description": "Refresh token revoked"},
        )

        with pytest.raises(TokenRefreshException) as exc_info:
            await broker.refresh_user_credential("revoked")

        assert exc_info.value.error_code == "invalid_grant"
        assert exc_info.value.session_required is True

    def test_authorization_url(self, broker):
        """Test the consent screen URL."""
        url = urlparse(broker.get_authorization_url("state-123"))
        params = parse_qs(url.query)

        assert url.netloc == "accounts.spotify.com"
        assert params["response_type"] == ["code"]
        assert params["client_id"] == ["test-client-id"]
        assert params["state"] == ["state-123"]
        assert params["show_dialog"] == ["true"]
        assert params["scope"] == ["playlist-read-private playlist-read-collaborative"]

    def test_authorization_url_requires_redirect_uri(self, http_client):
        """Test ConfigurationError without redirect URI."""
        broker = TokenBroker(
            SpotifySettings(client_id="id", client_secret="secret", redirect_uri=""),
            http_client,
        )

        with pytest.raises(ConfigurationError):
            broker.get_authorization_url("state")

    async def test_exchange_authorization_code(self, broker, httpx_mock: HTTPXMock):
        """Test the callback code exchange."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL,
            method="POST",
            json={**token_response("user-token"), "refresh_token": "refresh-1", "scope": "x"},
        )

        grant = await broker.exchange_authorization_code("code-1")

        assert grant.access_token == "user-token"
        assert grant.refresh_token == "refresh-1"
        form = parse_qs(httpx_mock.get_request().content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["redirect_uri"] == ["http://localhost:8000/api/spotify-callback"]


class TestCredentialSources:
    """Test what the executor sees."""

    async def test_app_source_renew_exchanges_again(self, broker, httpx_mock: HTTPXMock):
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("one"))
        httpx_mock.add_response(url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("two"))
        source = AppCredentialSource(broker)

        assert (await source.get()).value == "one"
        assert (await source.renew()).value == "two"

    async def test_user_source_uses_session_access_token(self, broker):
        """Test that a caller-supplied access token is used without any exchange."""
        source = UserCredentialSource(broker, UserSession(access_token="sess-token"))

        credential = await source.get()

        assert credential.value == "sess-token"
        assert source.refreshed is None

    async def test_user_source_refreshes_when_needed(self, broker, httpx_mock: HTTPXMock):
        """Test that renew() uses the refresh token and remembers the new credential."""
        httpx_mock.add_response(
            url=SPOTIFY_TOKEN_URL, method="POST", json=token_response("refreshed")
        )
        source = UserCredentialSource(broker, UserSession(refresh_token="refresh-1"))

        credential = await source.get()

        assert credential.value == "refreshed"
        assert source.refreshed is credential

    async def test_user_source_without_refresh_token(self, broker):
        """Test that renew() without a refresh token asks for a login."""
        source = UserCredentialSource(broker, UserSession(access_token="stale"))

        with pytest.raises(AuthenticationError) as exc_info:
            await source.renew()

        assert exc_info.value.session_required is True
