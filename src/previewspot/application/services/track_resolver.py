"""Track resolution pipeline: playlist id -> one random playable preview.

Hey future me - this is the heart of the service. It's a small state machine:

    CheckExistence ──ok / other error──► FetchDirect ──playable──► Select
         │                                   │
         │ 404                               │ nothing playable
         ▼                                   ▼
    term set? ──no──► NotFound          term set? ──no──► readable: derived terms
         │ yes        (zero searches!)       │ yes        unreadable: re-raise existence error
         ▼                                   ▼
    SearchFallback ──► RecommendationFallback ──► CatalogFallback (Deezer) ──► NotFound
         │                      │                        │
         └──────────────────────┴────────────────────────┴──playable──► Select

Rules that hold in EVERY tier:
- Markets are tried in the same order (ResolverSettings.markets, "" = no market).
- The first market/keyword/genre step with at least one playable item wins. No ranking,
  Select is a uniform random pick over that step's playable items.
- One failing step (429 budget gone, 5xx, 404, other 4xx) is NOT fatal. We remember its
  payload as the diagnostic and move on. Only AuthenticationError aborts the pipeline,
  because no other tier can fix a credential problem.
- Only a 404 from CheckExistence means "this playlist does not exist". Any other existence
  failure says nothing about the playlist, so FetchDirect still gets its chance.
- Retries and the one-shot re-auth happen INSIDE the executor. Nothing here counts attempts.
- The whole thing runs under asyncio.timeout(budget_seconds). Running out of time gives
  ResolutionTimeoutError (504), not NotFound - "we gave up" and "there's nothing" are
  different answers for the caller.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

from previewspot.application.services.result_shaper import (
    is_playable_deezer_track,
    is_playable_playlist_item,
    is_playable_spotify_track,
    shape_deezer_track,
    shape_playlist_item,
    shape_spotify_track,
)
from previewspot.config.settings import ResolverSettings
from previewspot.domain.entities import PlayableTrack
from previewspot.domain.exceptions import (
    ExternalServiceError,
    ResolutionTimeoutError,
    TrackNotFoundError,
    UpstreamNotFoundError,
    ValidationError,
)
from previewspot.domain.ports import ICredentialSource
from previewspot.domain.value_objects import FallbackTermRegistry, FallbackTermSet
from previewspot.infrastructure.integrations.deezer_client import DeezerClient
from previewspot.infrastructure.integrations.spotify_client import SpotifyCatalogClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResolutionStage(str, Enum):
    """Pipeline stage names (also what shows up in error details)."""

    CHECK_EXISTENCE = "check_existence"
    FETCH_DIRECT = "fetch_direct"
    SEARCH_FALLBACK = "search_fallback"
    RECOMMENDATION_FALLBACK = "recommendation_fallback"
    CATALOG_FALLBACK = "catalog_fallback"


@dataclass
class ResolutionRun:
    """Mutable bookkeeping for ONE resolve() call.

    Lives outside the timeout scope so a ResolutionTimeoutError can still report
    where we were and what upstream said last.
    """

    playlist_id: str
    credentials: ICredentialSource
    stage: ResolutionStage = ResolutionStage.CHECK_EXISTENCE
    playlist_name: str | None = None
    term_set: FallbackTermSet | None = None
    last_payload: Any = None
    upstream_calls: int = 0
    stages_visited: list[ResolutionStage] = field(default_factory=list)
    # True once any playlist endpoint answered 2xx
    playlist_readable: bool = False
    existence_error: ExternalServiceError | None = None

    def enter(self, stage: ResolutionStage) -> None:
        self.stage = stage
        self.stages_visited.append(stage)

    @property
    def path(self) -> str:
        return " -> ".join(s.value for s in self.stages_visited)

    def diagnostic(self) -> dict[str, Any]:
        return {"tier": self.stage.value, "upstream": self.last_payload}


class TrackResolver:
    """Resolves a playlist id into one playable track."""

    def __init__(
        self,
        spotify: SpotifyCatalogClient,
        deezer: DeezerClient,
        registry: FallbackTermRegistry,
        settings: ResolverSettings,
        rng: random.Random | None = None,
    ) -> None:
        """
        Initialize resolver.

        Args:
            spotify: Spotify catalog client
            deezer: Deezer client (credential-free last resort)
            registry: Playlist id -> fallback keywords/genres
            settings: Markets, defaults, paging and time budget
            rng: Random source for Select (seed it in tests)
        """
        self.spotify = spotify
        self.deezer = deezer
        self.registry = registry
        self.settings = settings
        self.rng = rng or random.Random()

    async def resolve(
        self, playlist_id: str, credentials: ICredentialSource
    ) -> PlayableTrack:
        """Resolve a playlist id into one random playable track.

        Args:
            playlist_id: Spotify playlist id (surrounding whitespace is ignored)
            credentials: App or user credential source for the Spotify tiers

        Returns:
            A PlayableTrack with a non-empty preview URL

        Raises:
            ValidationError: Blank playlist id
            TrackNotFoundError: Every tier came up empty (details carry the last payload)
            ResolutionTimeoutError: The time budget ran out
            AuthenticationError: Credentials could not be obtained or were rejected twice
            ExternalServiceError: Existence check failed (not 404), nothing playable
                and no fallback terms for the id
        """
        playlist_id = (playlist_id or "").strip()
        if not playlist_id:
            raise ValidationError("playlistId is required")

        run = ResolutionRun(playlist_id=playlist_id, credentials=credentials)
        try:
            async with asyncio.timeout(self.settings.budget_seconds):
                pool = await self._run_pipeline(run)
        except TimeoutError as e:
            logger.error(
                "Resolution of playlist %s ran out of time after %d upstream calls (%s)",
                playlist_id, run.upstream_calls, run.path,
            )
            raise ResolutionTimeoutError(
                f"Resolving playlist {playlist_id} took longer than "
                f"{self.settings.budget_seconds:g}s",
                details=run.diagnostic(),
            ) from e

        track = self.rng.choice(pool)
        logger.info(
            "Resolved playlist %s via %s: %r by %s (%d candidates, %d upstream calls)",
            playlist_id, run.stage.value, track.title, track.display_artist,
            len(pool), run.upstream_calls,
        )
        return track

    async def _run_pipeline(self, run: ResolutionRun) -> list[PlayableTrack]:
        run.enter(ResolutionStage.CHECK_EXISTENCE)
        exists = await self._check_existence(run)

        if not exists:
            run.term_set = self.registry.get(run.playlist_id)
            if run.term_set is None:
                # Unknown id AND a 404 - searching for random hits would
                # just hand back music that has nothing to do with what was asked for.
                logger.info(
                    "Playlist %s is not readable and has no fallback terms", run.playlist_id
                )
                raise self._not_found(run)
        else:
            run.enter(ResolutionStage.FETCH_DIRECT)
            pool = await self._fetch_direct(run)
            if pool:
                return pool
            run.term_set = self.registry.get(run.playlist_id)
            if run.term_set is None:
                if not run.playlist_readable and run.existence_error is not None:
                    # Existence never confirmed: report the upstream failure, not NotFound
                    logger.warning(
                        "Playlist %s: existence unknown and no fallback terms, giving up (%s)",
                        run.playlist_id, run.path,
                    )
                    raise run.existence_error
                run.term_set = self._derived_terms(run)

        for stage, tier in (
            (ResolutionStage.SEARCH_FALLBACK, self._search_fallback),
            (ResolutionStage.RECOMMENDATION_FALLBACK, self._recommendation_fallback),
            (ResolutionStage.CATALOG_FALLBACK, self._catalog_fallback),
        ):
            logger.info("Playlist %s: falling back to %s", run.playlist_id, stage.value)
            run.enter(stage)
            pool = await tier(run)
            if pool:
                return pool

        raise self._not_found(run)

    # =========================================================================
    # STEP HELPER
    # =========================================================================

    async def _step(
        self, run: ResolutionRun, call: Callable[[], Awaitable[T]], what: str
    ) -> T | None:
        """Run one upstream step. Non-auth upstream failures become None + diagnostic."""
        run.upstream_calls += 1
        try:
            return await call()
        except ExternalServiceError as e:
            self._record_failure(run, e, what)
            return None

    def _record_failure(self, run: ResolutionRun, e: ExternalServiceError, what: str) -> None:
        run.last_payload = e.details if e.details is not None else {"error": e.message}
        logger.warning(
            "Playlist %s: %s failed in %s (%s: %s)",
            run.playlist_id, what, run.stage.value, type(e).__name__, e.message,
        )

    # =========================================================================
    # TIERS
    # =========================================================================

    async def _check_existence(self, run: ResolutionRun) -> bool:
        """False only when Spotify says 404. Other failures leave existence open."""
        run.upstream_calls += 1
        try:
            playlist = await self.spotify.get_playlist(run.playlist_id, run.credentials)
        except UpstreamNotFoundError as e:
            self._record_failure(run, e, "existence check")
            return False
        except ExternalServiceError as e:
            self._record_failure(run, e, "existence check")
            run.existence_error = e
            return True

        run.last_payload = playlist
        run.playlist_readable = True
        run.playlist_name = playlist.get("name")
        return True

    async def _fetch_direct(self, run: ResolutionRun) -> list[PlayableTrack]:
        for market in self.settings.market_order:
            result = await self._step(
                run,
                lambda market=market: self.spotify.get_playlist_items(
                    run.playlist_id,
                    run.credentials,
                    market=market,
                    page_size=self.settings.page_size,
                    max_pages=self.settings.max_pages,
                ),
                f"playlist items (market={market or '-'})",
            )
            if result is None:
                continue
            items, first_page = result
            run.last_payload = first_page
            run.playlist_readable = True
            if not items:
                continue

            # First market that returns ANY items decides, even if none of them play.
            pool = [shape_playlist_item(i) for i in items if is_playable_playlist_item(i)]
            logger.info(
                "Playlist %s: %d/%d items playable in market %s",
                run.playlist_id, len(pool), len(items), market or "-",
            )
            return pool
        return []

    async def _search_fallback(self, run: ResolutionRun) -> list[PlayableTrack]:
        for keyword in self._keywords(run):
            for market in self.settings.market_order:
                data = await self._step(
                    run,
                    lambda keyword=keyword, market=market: self.spotify.search_tracks(
                        keyword,
                        run.credentials,
                        market=market,
                        limit=self.settings.search_limit,
                    ),
                    f"search {keyword!r} (market={market or '-'})",
                )
                if data is None:
                    continue
                run.last_payload = data
                hits = (data.get("tracks") or {}).get("items") or []
                pool = [shape_spotify_track(t) for t in hits if is_playable_spotify_track(t)]
                if pool:
                    return pool
        return []

    async def _recommendation_fallback(self, run: ResolutionRun) -> list[PlayableTrack]:
        for genre in self._genres(run):
            for market in self.settings.market_order:
                data = await self._step(
                    run,
                    lambda genre=genre, market=market: self.spotify.get_recommendations(
                        genre,
                        run.credentials,
                        market=market,
                        limit=self.settings.search_limit,
                    ),
                    f"recommendations {genre!r} (market={market or '-'})",
                )
                if data is None:
                    continue
                run.last_payload = data
                hits = data.get("tracks") or []
                pool = [shape_spotify_track(t) for t in hits if is_playable_spotify_track(t)]
                if pool:
                    return pool
        return []

    async def _catalog_fallback(self, run: ResolutionRun) -> list[PlayableTrack]:
        for keyword in self._keywords(run):
            data = await self._step(
                run,
                lambda keyword=keyword: self.deezer.search_tracks(keyword),
                f"deezer search {keyword!r}",
            )
            if data is None:
                continue
            run.last_payload = data
            hits = data.get("data") or []
            pool = [shape_deezer_track(h) for h in hits if is_playable_deezer_track(h)]
            if pool:
                return pool
        return []

    # =========================================================================
    # TERMS
    # =========================================================================

    def _derived_terms(self, run: ResolutionRun) -> FallbackTermSet:
        """Terms for a readable playlist that isn't in the registry."""
        keywords = [run.playlist_name] if run.playlist_name else self.settings.default_keywords
        return FallbackTermSet.of(keywords=keywords, genres=self.settings.default_genres)

    def _keywords(self, run: ResolutionRun) -> tuple[str, ...]:
        if run.term_set is not None and run.term_set.keywords:
            return run.term_set.keywords
        return tuple(self.settings.default_keywords)

    def _genres(self, run: ResolutionRun) -> tuple[str, ...]:
        if run.term_set is not None and run.term_set.genres:
            return run.term_set.genres
        return tuple(self.settings.default_genres)

    def _not_found(self, run: ResolutionRun) -> TrackNotFoundError:
        logger.info(
            "No playable track for playlist %s after %d upstream calls (%s)",
            run.playlist_id, run.upstream_calls, run.path,
        )
        return TrackNotFoundError(
            f"No playable track found for playlist {run.playlist_id}",
            details=run.diagnostic(),
        )


__all__ = ["ResolutionRun", "ResolutionStage", "TrackResolver"]
