"""Application settings loaded from environment variables and .env.

Hey future me - every knob of the resolver lives here! Each concern gets its own
BaseSettings class with its own env prefix, and Settings glues them together.
get_settings() is lru_cached, so settings are read ONCE per process. In tests,
build Settings(...) directly instead of touching the environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from previewspot.domain.exceptions import ConfigurationError


class SpotifySettings(BaseSettings):
    """Spotify Web API / OAuth configuration."""

    model_config = SettingsConfigDict(
        env_prefix="SPOTIFY_", env_file=".env", extra="ignore"
    )

    client_id: str = ""
    client_secret: str = ""
    redirect_uri: str = ""
    authorize_url: str = "https://accounts.spotify.com/authorize"
    token_url: str = "https://accounts.spotify.com/api/token"  # nosec B105 - public endpoint URL
    api_base_url: str = "https://api.spotify.com/v1"
    scopes: list[str] = Field(
        default_factory=lambda: [
            "playlist-read-private",
            "playlist-read-collaborative",
        ]
    )

    def is_configured(self) -> bool:
        return bool(self.client_id.strip() and self.client_secret.strip())

    # Yo, fail FAST with a readable message. Spotify's own error for a missing client id
    # is "invalid_client" with no context, which sends you hunting in the wrong place.
    def require_credentials(self) -> None:
        """Raise ConfigurationError when client id/secret are missing."""
        if not self.is_configured():
            raise ConfigurationError(
                "SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET are not configured. "
                "Get credentials at https://developer.spotify.com/dashboard"
            )


class DeezerSettings(BaseSettings):
    """Deezer public API (credential-free alternate catalog)."""

    model_config = SettingsConfigDict(
        env_prefix="DEEZER_", env_file=".env", extra="ignore"
    )

    api_base_url: str = "https://api.deezer.com"
    search_limit: int = Field(default=50, ge=1, le=100)


class HttpSettings(BaseSettings):
    """Shared HTTP client pool configuration."""

    model_config = SettingsConfigDict(
        env_prefix="HTTP_", env_file=".env", extra="ignore"
    )

    timeout: float = Field(default=10.0, gt=0)
    max_connections: int = Field(default=50, ge=1)
    max_keepalive: int = Field(default=20, ge=0)
    http2: bool = True


class RetrySettings(BaseSettings):
    """Retry policy for every outbound call."""

    model_config = SettingsConfigDict(
        env_prefix="RETRY_", env_file=".env", extra="ignore"
    )

    max_attempts: int = Field(default=3, ge=1)
    server_error_backoff: float = Field(default=0.3, ge=0)
    rate_limit_backoff: float = Field(default=0.5, ge=0)


class ResolverSettings(BaseSettings):
    """Track resolution pipeline configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RESOLVER_", env_file=".env", extra="ignore"
    )

    # Order matters! Same order in every tier. "" means "no market parameter".
    markets: list[str] = Field(default_factory=lambda: ["US", "AR", "ES", ""])
    default_keywords: list[str] = Field(
        default_factory=lambda: ["top hits", "pop", "rock classics"]
    )
    default_genres: list[str] = Field(
        default_factory=lambda: ["pop", "rock", "latin"]
    )
    page_size: int = Field(default=100, ge=1, le=100)
    max_pages: int = Field(default=10, ge=1)
    search_limit: int = Field(default=50, ge=1, le=50)
    budget_seconds: float = Field(default=12.0, gt=0)
    require_user_session: bool = False

    @field_validator("markets")
    @classmethod
    def _normalize_markets(cls, value: list[str]) -> list[str]:
        markets = [m.strip().upper() for m in value]
        if not markets:
            raise ValueError("at least one market is required")
        return markets

    @property
    def market_order(self) -> tuple[str | None, ...]:
        """Markets as passed to the API (None = no market parameter)."""
        return tuple(m or None for m in self.markets)


class ObservabilitySettings(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LOG_", env_file=".env", extra="ignore"
    )

    level: str = "INFO"
    json_format: bool = False


class Settings(BaseSettings):
    """Root settings object."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "previewspot"
    spotify: SpotifySettings = Field(default_factory=SpotifySettings)
    deezer: DeezerSettings = Field(default_factory=DeezerSettings)
    http: HttpSettings = Field(default_factory=HttpSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    resolver: ResolverSettings = Field(default_factory=ResolverSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
