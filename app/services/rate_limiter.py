from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 30
DEFAULT_WINDOW_S = 60.0
DEFAULT_REFILL_RATE = 30


@dataclass(frozen=True)
class RateLimitConfig:
    max_tokens: int = DEFAULT_MAX_TOKENS
    window_s: float = DEFAULT_WINDOW_S
    refill_rate: int = DEFAULT_REFILL_RATE


@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int


@dataclass
class _TokenBucket:
    tokens: int
    last_refill: float


class TokenBucketRateLimiter:
    """Per-identity token bucket kept in process memory.

    Tokens come back in whole windows: after ``n`` full windows the bucket
    gains ``n * refill_rate`` tokens, capped at ``max_tokens``.
    """

    def __init__(
        self,
        config: RateLimitConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._buckets: dict[str, _TokenBucket] = {}
        self._lock = threading.Lock()

    def check_limit(self, user_id: str) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            bucket = self._buckets.get(user_id)
            if bucket is None:
                bucket = _TokenBucket(tokens=self.config.max_tokens, last_refill=now)
                self._buckets[user_id] = bucket
            else:
                self._refill(bucket, now)

            allowed = bucket.tokens > 0
            if allowed:
                bucket.tokens -= 1
            remaining = max(0, bucket.tokens)

        if not allowed:
            logger.warning("check_limit: denied user=%s", user_id)
        return RateLimitResult(allowed=allowed, remaining=remaining)

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()

    def _refill(self, bucket: _TokenBucket, now: float) -> None:
        windows_elapsed = int((now - bucket.last_refill) // self.config.window_s)
        if windows_elapsed > 0:
            bucket.tokens = min(
                self.config.max_tokens,
                bucket.tokens + windows_elapsed * self.config.refill_rate,
            )
            bucket.last_refill = now
