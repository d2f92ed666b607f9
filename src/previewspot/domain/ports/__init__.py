"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod

from previewspot.domain.entities import Credential


# Hey future me, ICredentialStore is injected into the TokenBroker. Tests get a fresh store per test,
# and the only thing shared between requests is the app credential. get/set/invalidate is the whole
# API: a credential is replaced, never updated in place.
class ICredentialStore(ABC):
    """Holds at most one cached credential."""

    @abstractmethod
    def get(self) -> Credential | None:
        """Return the cached credential if present and not expired, else None."""
        pass

    @abstractmethod
    def set(self, credential: Credential) -> None:
        """Replace the cached credential."""
        pass

    @abstractmethod
    def invalidate(self) -> None:
        """Drop the cached credential (after a 401/403)."""
        pass


# Yo, a credential source is what the RetryingRequestExecutor talks to. It doesn't care whether
# the token belongs to the app or to a user - it only needs "give me a token" and "that token
# just got a 401, give me a fresh one". renew() is called AT MOST ONCE per logical request.
class ICredentialSource(ABC):
    """Supplies bearer credentials to the request executor."""

    @abstractmethod
    async def get(self) -> Credential:
        """Return a usable credential."""
        pass

    @abstractmethod
    async def renew(self) -> Credential:
        """Throw away the current credential and obtain a new one."""
        pass


__all__ = [
    "ICredentialSource",
    "ICredentialStore",
]
