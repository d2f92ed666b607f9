"""Shared HTTP client pool for connection reuse across upstream clients.

Hey future me - this is the CENTRAL http client! Spotify, the token endpoint and Deezer
all share one httpx.AsyncClient so keep-alive actually works (a resolution can fire a
dozen requests at the same host). The lifespan in lifecycle.py opens it on startup and
closes it on shutdown.

Usage:
    pool = HttpClientPool(settings.http)
    client = await pool.get_client()
    ...
    await pool.close()

The per-request timeout lives HERE (httpx.Timeout) - the executor relies on it and
treats httpx.TimeoutException like a 5xx.
"""

import asyncio
import logging

import httpx

from previewspot.config.settings import HttpSettings

logger = logging.getLogger(__name__)


class HttpClientPool:
    """Lazily created, shared httpx.AsyncClient.

    Features:
    - Lazy initialization (created on first use, inside the running loop)
    - asyncio.Lock so two first-callers don't create two clients
    - Configurable limits and timeout
    - Proper cleanup at shutdown
    """

    def __init__(self, settings: HttpSettings | None = None) -> None:
        self.settings = settings or HttpSettings()
        self._client: httpx.AsyncClient | None = None
        self._lock: asyncio.Lock | None = None

    def _ensure_lock(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def get_client(self) -> httpx.AsyncClient:
        """Get the shared client, creating it on first call."""
        async with self._ensure_lock():
            if self._client is None:
                self._client = httpx.AsyncClient(
                    timeout=httpx.Timeout(self.settings.timeout),
                    limits=httpx.Limits(
                        max_keepalive_connections=self.settings.max_keepalive,
                        max_connections=self.settings.max_connections,
                    ),
                    http2=self.settings.http2,
                    follow_redirects=True,
                )
                logger.info(
                    "HTTP client pool initialized (timeout=%.1fs, keepalive=%d, max_conn=%d)",
                    self.settings.timeout,
                    self.settings.max_keepalive,
                    self.settings.max_connections,
                )
            return self._client

    async def close(self) -> None:
        """Close the shared client. A later get_client() creates a new one."""
        async with self._ensure_lock():
            if self._client is not None:
                await self._client.aclose()
                self._client = None
                logger.info("HTTP client pool closed")

    def is_initialized(self) -> bool:
        return self._client is not None
