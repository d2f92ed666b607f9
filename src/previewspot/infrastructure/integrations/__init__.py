"""Integrations with external catalog services (Spotify, Deezer)."""

from previewspot.infrastructure.integrations.deezer_client import DeezerClient
from previewspot.infrastructure.integrations.http_pool import HttpClientPool
from previewspot.infrastructure.integrations.request_executor import (
    RetryingRequestExecutor,
)
from previewspot.infrastructure.integrations.retry_policy import RetryAction, RetryPolicy
from previewspot.infrastructure.integrations.spotify_client import SpotifyCatalogClient
from previewspot.infrastructure.integrations.token_broker import (
    AppCredentialSource,
    TokenBroker,
    UserCredentialSource,
)

__all__ = [
    "AppCredentialSource",
    "DeezerClient",
    "HttpClientPool",
    "RetryAction",
    "RetryPolicy",
    "RetryingRequestExecutor",
    "SpotifyCatalogClient",
    "TokenBroker",
    "UserCredentialSource",
]
