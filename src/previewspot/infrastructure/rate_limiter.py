"""
Token bucket throttle for outbound catalog calls.

Hey future me - this is the PROACTIVE half of our 429 story!
The RetryingRequestExecutor reacts to 429s (Retry-After, backoff). This limiter
tries to not get there in the first place by spacing requests out per upstream.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate per second
- Each request takes 1 token
- Empty bucket: wait until one token is back

One limiter per upstream (Spotify, Deezer), created in the app lifespan and
injected into that upstream's executor. No module globals - tests build their
own with a huge bucket so they never sleep.

USAGE:
    limiter = RateLimiter.for_spotify()

    async with limiter:
        response = await client.get(url)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Spotify allows roughly 180 requests / minute in a rolling window. We stay
    at 2 req/sec sustained with a burst of 10, which a single resolution
    (a handful of markets x keywords) never exhausts.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second


@dataclass
class RateLimiter:
    """Token bucket rate limiter, usable as `async with limiter:`."""

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        self._tokens = float(self.config.max_tokens)

    @classmethod
    def for_spotify(cls) -> "RateLimiter":
        """Limiter tuned for the Spotify Web API."""
        return cls(config=RateLimiterConfig(max_tokens=10, refill_rate=2.0), name="spotify")

    @classmethod
    def for_deezer(cls) -> "RateLimiter":
        """Limiter tuned for Deezer (50 requests / 5 seconds per IP, we use half)."""
        return cls(config=RateLimiterConfig(max_tokens=15, refill_rate=5.0), name="deezer")

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            self.config.max_tokens, self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Take one token, waiting if the bucket is empty."""
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    "RateLimiter[%s]: no tokens available, waiting %.2fs",
                    self.name,
                    wait_time,
                )
                # Release lock while waiting so other callers can queue up behind us
                self._lock.release()
                try:
                    await asyncio.sleep(wait_time)
                finally:
                    await self._lock.acquire()
                self._refill_tokens()

            self._tokens -= 1.0

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        """Token already consumed, nothing to give back."""
        return None

    @property
    def available_tokens(self) -> float:
        """Current available tokens (for debugging)."""
        self._refill_tokens()
        return self._tokens


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
]
