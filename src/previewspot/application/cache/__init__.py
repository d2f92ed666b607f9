"""Application-level caches."""

from previewspot.application.cache.credential_store import InMemoryCredentialStore

__all__ = ["InMemoryCredentialStore"]
