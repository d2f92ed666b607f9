"""Fallback search terms for playlists we can't read directly.

Hey future me - this is the "plan B" table of the resolver!

Spotify editorial playlists (the 37i9dQZF1... ids) regularly come back as 404 for
client-credentials tokens, and plenty of public playlists have zero previews in some
regions. When that happens we approximate the playlist with keyword searches and genre
seeds instead. This module holds those approximations.

MISS POLICY (important!):
- FallbackTermRegistry.get(playlist_id) returns None for unknown ids. It NEVER raises.
- The resolver decides what a miss means: on a 404 existence check a miss is terminal
  (NotFound, zero search calls), on an existing-but-unplayable playlist it derives
  terms from the playlist name instead.

Usage:
    registry = FallbackTermRegistry.with_defaults()
    terms = registry.get("37i9dQZF1DXcBWIGoYBM5M")
    if terms is not None:
        for keyword in terms.keywords: ...
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class FallbackTermSet:
    """Ordered keywords and genre seeds approximating one playlist."""

    keywords: tuple[str, ...] = field(default_factory=tuple)
    genres: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def of(
        cls, keywords: Iterable[str] = (), genres: Iterable[str] = ()
    ) -> "FallbackTermSet":
        """Build a term set, dropping blank entries but keeping order."""
        return cls(
            keywords=tuple(k.strip() for k in keywords if k and k.strip()),
            genres=tuple(g.strip() for g in genres if g and g.strip()),
        )

    @property
    def is_empty(self) -> bool:
        return not self.keywords and not self.genres


# Keyed by Spotify playlist id. Keep keywords ordered from most to least specific -
# the resolver stops at the first keyword that yields anything playable.
DEFAULT_FALLBACK_TERMS: dict[str, FallbackTermSet] = {
    # Today's Top Hits
    "37i9dQZF1DXcBWIGoYBM5M": FallbackTermSet.of(
        keywords=["top hits", "pop hits", "viral hits"],
        genres=["pop", "dance", "hip-hop"],
    ),
    # RapCaviar
    "37i9dQZF1DX0XUsuxWHRQd": FallbackTermSet.of(
        keywords=["rap hits", "hip hop"],
        genres=["hip-hop"],
    ),
    # mint
    "37i9dQZF1DX4dyzvuaRJ0n": FallbackTermSet.of(
        keywords=["dance hits", "edm"],
        genres=["edm", "dance", "house"],
    ),
    # Rock Classics
    "37i9dQZF1DWXRqgorJj26U": FallbackTermSet.of(
        keywords=["rock classics", "classic rock"],
        genres=["rock", "hard-rock"],
    ),
    # Viva Latino
    "37i9dQZF1DX10zKzsJ2jva": FallbackTermSet.of(
        keywords=["reggaeton", "latin hits"],
        genres=["reggaeton", "latin"],
    ),
}


class FallbackTermRegistry(Mapping[str, FallbackTermSet]):
    """Lookup table: playlist id -> FallbackTermSet.

    Read-only Mapping plus register() for extending the table at startup or in tests.
    Ids are matched after stripping whitespace.
    """

    def __init__(self, terms: Mapping[str, FallbackTermSet] | None = None) -> None:
        self._terms: dict[str, FallbackTermSet] = {}
        for playlist_id, term_set in (terms or {}).items():
            self.register(playlist_id, term_set)

    @classmethod
    def with_defaults(cls) -> "FallbackTermRegistry":
        """Registry pre-loaded with DEFAULT_FALLBACK_TERMS."""
        return cls(DEFAULT_FALLBACK_TERMS)

    def register(self, playlist_id: str, term_set: FallbackTermSet) -> None:
        """Add or replace the term set for a playlist id."""
        self._terms[playlist_id.strip()] = term_set

    def get(  # type: ignore[override]
        self, playlist_id: str, default: FallbackTermSet | None = None
    ) -> FallbackTermSet | None:
        """Return the term set for playlist_id, or `default` (None) on a miss."""
        return self._terms.get(playlist_id.strip(), default)

    def __getitem__(self, playlist_id: str) -> FallbackTermSet:
        return self._terms[playlist_id.strip()]

    def __contains__(self, playlist_id: object) -> bool:
        return isinstance(playlist_id, str) and playlist_id.strip() in self._terms

    def __iter__(self) -> Iterator[str]:
        return iter(self._terms)

    def __len__(self) -> int:
        return len(self._terms)


__all__ = [
    "DEFAULT_FALLBACK_TERMS",
    "FallbackTermRegistry",
    "FallbackTermSet",
]
