"""Deezer public API client - the credential-free last resort catalog.

Hey future me - Deezer is AWESOME as a fallback because its public search API works
WITHOUT authentication, and almost every hit carries a 30-second `preview` MP3. When
Spotify gives us nothing (no previews in any market, recommendations retired, playlist
gone) we still have something to play.

Rate limits: 50 requests per 5 seconds (per IP). The executor gets a Deezer RateLimiter.

Deezer quirk: quota errors come back as HTTP 200 with a JSON body like
{"error": {"type": "Exception", "message": "Quota limit exceeded", "code": 4}}.
We turn those into proper exceptions here so the resolver doesn't have to know.
"""

import logging
from typing import Any

from previewspot.config.settings import DeezerSettings
from previewspot.domain.exceptions import ExternalServiceError, RateLimitExceededError
from previewspot.infrastructure.integrations.request_executor import (
    RetryingRequestExecutor,
)

logger = logging.getLogger(__name__)

DEEZER_QUOTA_ERROR_CODE = 4


class DeezerClient:
    """HTTP client for the Deezer public search API."""

    def __init__(self, settings: DeezerSettings, executor: RetryingRequestExecutor) -> None:
        """
        Initialize Deezer client.

        Args:
            settings: Deezer configuration
            executor: Retrying executor (no credentials are ever passed)
        """
        self.settings = settings
        self.executor = executor

    @property
    def api_base_url(self) -> str:
        return self.settings.api_base_url.rstrip("/")

    async def search_tracks(self, query: str, limit: int | None = None) -> dict[str, Any]:
        """Search for tracks. Hits are in result["data"].

        Raises:
            RateLimitExceededError: Deezer quota error in a 200 body
            ExternalServiceError: Any other Deezer error body
        """
        params = {"q": query, "limit": min(limit or self.settings.search_limit, 100)}
        data = await self.executor.get_json(f"{self.api_base_url}/search/track", params=params)

        if "error" in data:
            error = data.get("error") or {}
            code = error.get("code") if isinstance(error, dict) else None
            if code == DEEZER_QUOTA_ERROR_CODE:
                logger.warning("Deezer quota exceeded while searching %r", query)
                raise RateLimitExceededError("Deezer quota exceeded", details=data)
            raise ExternalServiceError(f"Deezer search failed for {query!r}", details=data)

        return data


__all__ = ["DeezerClient"]
