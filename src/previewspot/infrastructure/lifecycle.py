"""Application lifecycle management for startup and shutdown tasks.

This module handles the FastAPI lifespan context manager that wires the
long-lived objects together and parks them on app.state:

    HttpClientPool ─► httpx.AsyncClient (one per process)
        ├─► TokenBroker (app credential cache + single-flight)
        ├─► Spotify executor (RetryPolicy + Spotify RateLimiter) ─► SpotifyCatalogClient
        └─► Deezer executor  (RetryPolicy + Deezer RateLimiter)  ─► DeezerClient
    TrackResolver(spotify, deezer, FallbackTermRegistry, ResolverSettings)
    PlaylistDiagnosticsService(spotify)
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from previewspot.application.services import PlaylistDiagnosticsService, TrackResolver
from previewspot.config import Settings
from previewspot.domain.value_objects import FallbackTermRegistry
from previewspot.infrastructure.integrations import (
    DeezerClient,
    HttpClientPool,
    RetryingRequestExecutor,
    RetryPolicy,
    SpotifyCatalogClient,
    TokenBroker,
)
from previewspot.infrastructure.observability import configure_logging
from previewspot.infrastructure.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


async def build_services(app: FastAPI, settings: Settings, pool: HttpClientPool) -> None:
    """Build broker, clients, resolver and diagnostics on top of the shared HTTP client."""
    client = await pool.get_client()
    policy = RetryPolicy.from_settings(settings.retry)

    broker = TokenBroker(
        settings.spotify,
        client,
        max_attempts=settings.retry.max_attempts,
        backoff_seconds=settings.retry.server_error_backoff,
        timeout=settings.http.timeout,
    )
    spotify = SpotifyCatalogClient(
        settings.spotify,
        RetryingRequestExecutor(
            client,
            policy=policy,
            rate_limiter=RateLimiter.for_spotify(),
            timeout=settings.http.timeout,
            name="spotify",
        ),
    )
    deezer = DeezerClient(
        settings.deezer,
        RetryingRequestExecutor(
            client,
            policy=policy,
            rate_limiter=RateLimiter.for_deezer(),
            timeout=settings.http.timeout,
            name="deezer",
        ),
    )

    app.state.token_broker = broker
    app.state.track_resolver = TrackResolver(
        spotify,
        deezer,
        FallbackTermRegistry.with_defaults(),
        settings.resolver,
    )
    app.state.diagnostics_service = PlaylistDiagnosticsService(
        spotify, page_size=settings.resolver.page_size
    )


# Listen future me, @asynccontextmanager makes this a CONTEXT MANAGER for FastAPI lifespan!
# Everything before `yield` runs at STARTUP, everything after runs at SHUTDOWN. The try/finally
# makes sure the connection pool is closed even when startup blows up halfway. No network
# calls at startup: the first app credential is fetched lazily by the first request, so a
# Spotify outage doesn't keep the server from booting.
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    settings: Settings = app.state.settings

    configure_logging(
        log_level=settings.observability.level,
        json_format=settings.observability.json_format,
        app_name=settings.app_name,
    )
    logger.info("Starting application: %s", settings.app_name)
    if not settings.spotify.is_configured():
        logger.warning(
            "Spotify client credentials are not configured - "
            "every Spotify tier will fail until SPOTIFY_CLIENT_ID/SECRET are set"
        )

    pool = HttpClientPool(settings.http)
    app.state.http_pool = pool
    try:
        await build_services(app, settings, pool)
        logger.info(
            "Resolver ready (markets=%s, budget=%ss)",
            settings.resolver.markets,
            settings.resolver.budget_seconds,
        )
        yield
    finally:
        await pool.close()
        logger.info("Application shutdown complete")
