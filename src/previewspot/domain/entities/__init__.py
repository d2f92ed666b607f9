"""Domain entities."""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum


# Hey future me, APP credentials come from the client-credentials grant (no user involved, shared
# by the whole process). USER credentials come from the refresh-token grant and belong to ONE
# browser session. They are never mixed up in the same cache - the broker only caches APP.
class CredentialKind(str, Enum):
    """Kind of access credential."""

    APP = "app"
    USER = "user"


@dataclass(frozen=True)
class Credential:
    """An access token plus the moment it stops being valid.

    A credential is only ever REPLACED, never patched.
    """

    value: str
    kind: CredentialKind
    expires_at: datetime

    @classmethod
    def from_lifetime(
        cls,
        value: str,
        kind: CredentialKind,
        expires_in: float,
        now: datetime | None = None,
    ) -> "Credential":
        """Build a credential that expires `expires_in` seconds from now."""
        issued_at = now or datetime.now(UTC)
        return cls(
            value=value,
            kind=kind,
            expires_at=issued_at + timedelta(seconds=expires_in),
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        """Check whether the credential can no longer be used."""
        return (now or datetime.now(UTC)) >= self.expires_at

    @property
    def expires_in(self) -> int:
        """Seconds of lifetime left (0 when expired)."""
        remaining = (self.expires_at - datetime.now(UTC)).total_seconds()
        return max(0, int(remaining))


@dataclass(frozen=True)
class UserSession:
    """User-scoped tokens carried by the caller (cookie or header).

    The broker never stores these - every request brings its own.
    """

    access_token: str | None = None
    refresh_token: str | None = None

    @property
    def is_empty(self) -> bool:
        """True when the caller sent no usable token at all."""
        return not (self.access_token or self.refresh_token)


@dataclass(frozen=True)
class TokenGrant:
    """Raw result of an authorization-code exchange."""

    access_token: str
    token_type: str
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None


# Yo, PlayableTrack is THE thing we hand back to the game. The invariant is simple and absolute:
# no preview URL, no PlayableTrack. __post_init__ enforces it so no code path can sneak an
# unplayable item through, even if a filter upstream gets it wrong.
@dataclass(frozen=True)
class PlayableTrack:
    """A catalog track that has a usable short audio preview."""

    title: str
    artists: tuple[str, ...]
    preview_url: str
    artwork_url: str
    source: str = "spotify"

    ARTIST_SEPARATOR = ", "

    def __post_init__(self) -> None:
        if not self.preview_url or not self.preview_url.strip():
            raise ValueError(f"Track '{self.title}' has no preview URL")

    @property
    def display_artist(self) -> str:
        """All artist credits joined into one display string."""
        return self.ARTIST_SEPARATOR.join(self.artists)

    def to_dict(self) -> dict[str, object]:
        """Public JSON shape returned by /api/get-track."""
        return {
            "title": self.title,
            "artists": list(self.artists),
            "artist": self.display_artist,
            "previewUrl": self.preview_url,
            "artworkUrl": self.artwork_url,
            "source": self.source,
        }


__all__ = [
    "Credential",
    "CredentialKind",
    "PlayableTrack",
    "TokenGrant",
    "UserSession",
]
