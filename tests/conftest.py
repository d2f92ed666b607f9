"""Shared fixtures.

Hey future me - nothing in here touches the network or real env vars. Settings are
built explicitly (so a developer's .env can't change test outcomes), and retry sleeps
are patched to no-ops wherever a test goes through the executor or the broker.
"""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from previewspot.config import (
    DeezerSettings,
    ResolverSettings,
    RetrySettings,
    Settings,
    SpotifySettings,
)
from previewspot.domain.entities import Credential, CredentialKind

from factories import DEEZER_API, SPOTIFY_API, SPOTIFY_TOKEN_URL


@pytest.fixture
def spotify_settings() -> SpotifySettings:
    return SpotifySettings(
        client_id="test-client-id",
        client_secret="test-client-secret",
        redirect_uri="http://localhost:8000/api/spotify-callback",
        token_url=SPOTIFY_TOKEN_URL,
        api_base_url=SPOTIFY_API,
    )


@pytest.fixture
def resolver_settings() -> ResolverSettings:
    return ResolverSettings(
        markets=["US", "AR", "ES", ""],
        default_keywords=["top hits", "pop", "rock classics"],
        default_genres=["pop", "rock", "latin"],
        budget_seconds=5.0,
    )


@pytest.fixture
def settings(
    spotify_settings: SpotifySettings, resolver_settings: ResolverSettings
) -> Settings:
    return Settings(
        spotify=spotify_settings,
        deezer=DeezerSettings(api_base_url=DEEZER_API),
        retry=RetrySettings(max_attempts=3, server_error_backoff=0.3, rate_limit_backoff=0.5),
        resolver=resolver_settings,
    )


@pytest.fixture
async def http_client() -> AsyncGenerator[httpx.AsyncClient, None]:
    """Plain AsyncClient - pytest-httpx intercepts its transport."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture
def app_credential() -> Credential:
    return Credential(
        value="app-token-1",
        kind=CredentialKind.APP,
        expires_at=datetime.now(UTC) + timedelta(hours=1),
    )
