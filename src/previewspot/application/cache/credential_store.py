"""In-memory credential store for the process-wide app credential."""

import logging
from datetime import UTC, datetime

from previewspot.domain.entities import Credential
from previewspot.domain.ports import ICredentialStore

logger = logging.getLogger(__name__)


class InMemoryCredentialStore(ICredentialStore):
    """Single-slot credential cache, lost on restart.

    Hey future me - no lock in here! The store itself is never touched across an await,
    so in a single event loop get/set/invalidate are atomic. The single-flight gate that
    keeps concurrent callers from stampeding the token endpoint lives in TokenBroker,
    NOT here.
    """

    def __init__(self) -> None:
        self._credential: Credential | None = None
        self.hits = 0
        self.misses = 0

    def get(self) -> Credential | None:
        credential = self._credential
        if credential is None or credential.is_expired(datetime.now(UTC)):
            self.misses += 1
            return None
        self.hits += 1
        return credential

    def set(self, credential: Credential) -> None:
        self._credential = credential
        logger.debug(
            "Cached %s credential until %s",
            credential.kind.value,
            credential.expires_at.isoformat(),
        )

    def invalidate(self) -> None:
        if self._credential is not None:
            logger.info("Invalidated cached %s credential", self._credential.kind.value)
        self._credential = None

    def peek(self) -> Credential | None:
        """Return whatever is stored, expired or not (for debugging/tests)."""
        return self._credential


__all__ = ["InMemoryCredentialStore"]
