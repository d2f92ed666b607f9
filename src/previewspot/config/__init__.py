"""Configuration module for previewspot."""

from .settings import (
    DeezerSettings,
    HttpSettings,
    ObservabilitySettings,
    ResolverSettings,
    RetrySettings,
    Settings,
    SpotifySettings,
    get_settings,
)

__all__ = [
    "DeezerSettings",
    "HttpSettings",
    "ObservabilitySettings",
    "ResolverSettings",
    "RetrySettings",
    "Settings",
    "SpotifySettings",
    "get_settings",
]
