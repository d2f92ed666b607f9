"""Playlist diagnostics: how many tracks of a playlist actually have a preview?

Handy when the game says "no song found" for a playlist that clearly has songs - usually
Spotify simply doesn't ship preview_url for most of them anymore. This walks every page
(no market parameter) and counts.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from previewspot.application.services.result_shaper import is_playable_spotify_track
from previewspot.domain.entities import PlayableTrack
from previewspot.domain.exceptions import ValidationError
from previewspot.domain.ports import ICredentialSource
from previewspot.infrastructure.integrations.spotify_client import SpotifyCatalogClient

logger = logging.getLogger(__name__)

MAX_EXAMPLES = 5
# 100 pages * 100 items - Spotify caps playlists at 10k tracks anyway
MAX_PAGES = 100


@dataclass
class PlaylistDiagnosis:
    """Preview availability of one playlist."""

    total: int = 0
    with_preview: int = 0
    without_preview: int = 0
    examples_with: list[dict[str, str]] = field(default_factory=list)
    examples_without: list[dict[str, str]] = field(default_factory=list)

    @property
    def tracks_considered(self) -> int:
        return self.with_preview + self.without_preview

    @property
    def percentage(self) -> int:
        """Share of considered tracks with a preview, rounded (0 when nothing was considered)."""
        if not self.tracks_considered:
            return 0
        return round(self.with_preview / self.tracks_considered * 100)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "tracks_considered": self.tracks_considered,
            "withPreview": self.with_preview,
            "withoutPreview": self.without_preview,
            "percentage": self.percentage,
            "examplesWith": self.examples_with,
            "examplesWithout": self.examples_without,
        }


def _example(track: dict[str, Any]) -> dict[str, str]:
    artists = [a.get("name", "") for a in track.get("artists") or [] if isinstance(a, dict)]
    return {
        "name": track.get("name") or "",
        "artist": PlayableTrack.ARTIST_SEPARATOR.join(artists),
    }


class PlaylistDiagnosticsService:
    """Counts tracks with and without preview for a playlist."""

    def __init__(self, spotify: SpotifyCatalogClient, page_size: int = 100) -> None:
        self.spotify = spotify
        self.page_size = page_size

    async def diagnose(
        self, playlist_id: str, credentials: ICredentialSource
    ) -> PlaylistDiagnosis:
        """Walk all playlist pages and count preview availability.

        Local files, podcast episodes and removed tracks (track=null) count towards
        `total` but not towards `tracks_considered`.

        Raises:
            ValidationError: Blank playlist id
            ExternalServiceError: Spotify failed (details carry the payload)
        """
        playlist_id = (playlist_id or "").strip()
        if not playlist_id:
            raise ValidationError("playlistId is required")

        items, _ = await self.spotify.get_playlist_items(
            playlist_id,
            credentials,
            market=None,
            page_size=self.page_size,
            max_pages=MAX_PAGES,
        )

        diagnosis = PlaylistDiagnosis(total=len(items))
        for item in items:
            track = item.get("track") if isinstance(item, dict) else None
            if not isinstance(track, dict) or track.get("type", "track") != "track":
                continue
            if track.get("is_local") or item.get("is_local"):
                continue

            if is_playable_spotify_track(track):
                diagnosis.with_preview += 1
                if len(diagnosis.examples_with) < MAX_EXAMPLES:
                    diagnosis.examples_with.append(_example(track))
            else:
                diagnosis.without_preview += 1
                if len(diagnosis.examples_without) < MAX_EXAMPLES:
                    diagnosis.examples_without.append(_example(track))

        logger.info(
            "Playlist %s: %d/%d tracks have a preview (%d%%)",
            playlist_id, diagnosis.with_preview, diagnosis.tracks_considered,
            diagnosis.percentage,
        )
        return diagnosis


__all__ = ["PlaylistDiagnosis", "PlaylistDiagnosticsService"]
