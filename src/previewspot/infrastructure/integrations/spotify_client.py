"""Spotify Web API catalog client (playlists, search, recommendations)."""

import logging
from typing import Any

from previewspot.config.settings import SpotifySettings
from previewspot.domain.exceptions import ExternalServiceError
from previewspot.domain.ports import ICredentialSource
from previewspot.infrastructure.integrations.request_executor import (
    RetryingRequestExecutor,
)

logger = logging.getLogger(__name__)


class SpotifyCatalogClient:
    """Read-only client for the Spotify catalog endpoints the resolver needs.

    Every call goes through the RetryingRequestExecutor, so this class stays dumb:
    build URL + params, decode JSON. Credentials are passed per call because the same
    client serves app-credential and user-session requests.
    """

    # Only what the existence check needs - the full playlist object can be HUGE
    PLAYLIST_FIELDS = "id,name,public,tracks.total"

    def __init__(self, settings: SpotifySettings, executor: RetryingRequestExecutor) -> None:
        """
        Initialize Spotify catalog client.

        Args:
            settings: Spotify configuration settings
            executor: Retrying executor bound to the shared HTTP client
        """
        self.settings = settings
        self.executor = executor

    @property
    def api_base_url(self) -> str:
        return self.settings.api_base_url.rstrip("/")

    @staticmethod
    def _with_market(params: dict[str, Any], market: str | None) -> dict[str, Any]:
        if market:
            params["market"] = market
        return params

    async def get_playlist(
        self, playlist_id: str, credentials: ICredentialSource
    ) -> dict[str, Any]:
        """Get lightweight playlist metadata (id, name, public, tracks.total).

        Raises:
            UpstreamNotFoundError: Playlist doesn't exist or isn't visible to this credential
        """
        data = await self.executor.get_json(
            f"{self.api_base_url}/playlists/{playlist_id}",
            params={"fields": self.PLAYLIST_FIELDS},
            credentials=credentials,
        )
        return data

    async def get_playlist_tracks_page(
        self,
        playlist_id: str,
        credentials: ICredentialSource,
        market: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> dict[str, Any]:
        """Get one page of playlist items (max 100 per page)."""
        params = self._with_market({"limit": min(limit, 100), "offset": offset}, market)
        data = await self.executor.get_json(
            f"{self.api_base_url}/playlists/{playlist_id}/tracks",
            params=params,
            credentials=credentials,
        )
        return data

    # Hey future me, Spotify paginates playlist items at 100. The `next` URL already carries
    # market/limit/offset, so we just follow it as-is. max_pages caps how far we go.
    # A failing later page ends paging: what we already collected is still a usable pool.
    async def get_playlist_items(
        self,
        playlist_id: str,
        credentials: ICredentialSource,
        market: str | None = None,
        page_size: int = 100,
        max_pages: int = 10,
    ) -> tuple[list[dict[str, Any]], dict[str, Any]]:
        """Collect playlist items across pages.

        Returns:
            (items, first_page) - first_page is kept as upstream diagnostic
        """
        first_page = await self.get_playlist_tracks_page(
            playlist_id, credentials, market=market, limit=page_size
        )
        items: list[dict[str, Any]] = list(first_page.get("items") or [])
        next_url = first_page.get("next")
        pages = 1

        while next_url and pages < max_pages:
            try:
                page = await self.executor.get_json(next_url, credentials=credentials)
            except ExternalServiceError as e:
                logger.warning(
                    "Stopped paging playlist %s at page %d (%d items kept): %s",
                    playlist_id, pages + 1, len(items), e.message,
                )
                return items, first_page
            items.extend(page.get("items") or [])
            next_url = page.get("next")
            pages += 1

        if next_url:
            logger.debug(
                "Stopped paging playlist %s after %d pages (%d items)",
                playlist_id, pages, len(items),
            )
        return items, first_page

    async def search_tracks(
        self,
        query: str,
        credentials: ICredentialSource,
        market: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        """Search tracks by keyword. Hits are in result["tracks"]["items"]."""
        params = self._with_market(
            {"q": query, "type": "track", "limit": min(limit, 50)}, market
        )
        data = await self.executor.get_json(
            f"{self.api_base_url}/search", params=params, credentials=credentials
        )
        return data

    async def get_recommendations(
        self,
        seed_genre: str,
        credentials: ICredentialSource,
        market: str | None = None,
        limit: int = 50,
    ) -> dict[str, Any]:
        """Get recommendations for one genre seed. Hits are in result["tracks"].

        Heads-up: Spotify answers 404 here for apps registered after Nov 2024. The
        resolver treats that like any other empty tier step.
        """
        params = self._with_market(
            {"seed_genres": seed_genre, "limit": min(limit, 100)}, market
        )
        data = await self.executor.get_json(
            f"{self.api_base_url}/recommendations",
            params=params,
            credentials=credentials,
        )
        return data


__all__ = ["SpotifyCatalogClient"]
