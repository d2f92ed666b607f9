"""Tests for InMemoryCredentialStore."""

from datetime import UTC, datetime, timedelta

from previewspot.application.cache import InMemoryCredentialStore
from previewspot.domain.entities import Credential, CredentialKind


def _credential(expires_in: timedelta) -> Credential:
    return Credential("tok", CredentialKind.APP, datetime.now(UTC) + expires_in)


class TestInMemoryCredentialStore:
    """Test get/set/invalidate."""

    def test_empty_store_misses(self):
        store = InMemoryCredentialStore()

        assert store.get() is None
        assert store.misses == 1

    def test_set_then_get(self):
        store = InMemoryCredentialStore()
        credential = _credential(timedelta(hours=1))

        store.set(credential)

        assert store.get() is credential
        assert store.hits == 1

    def test_expired_credential_is_not_returned(self):
        store = InMemoryCredentialStore()
        store.set(_credential(timedelta(seconds=-1)))

        assert store.get() is None
        assert store.peek() is not None

    def test_invalidate(self):
        store = InMemoryCredentialStore()
        store.set(_credential(timedelta(hours=1)))

        store.invalidate()

        assert store.get() is None
        assert store.peek() is None
