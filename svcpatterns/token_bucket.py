"""Token bucket rate limiter and a request interceptor built on it."""

from __future__ import annotations

import threading
import time
from typing import Any, Callable, TypeVar

T = TypeVar("T")


class TokenBucket:
    """A bucket that refills ``rate`` tokens per whole elapsed second."""

    def __init__(self, capacity: int, rate: int) -> None:
        self._capacity = capacity
        self._tokens = capacity
        self._rate = rate
        self._last_updated = time.monotonic()
        self._lock = threading.Lock()

    @property
    def tokens(self) -> int:
        """Tokens currently in the bucket."""
        return self._tokens

    def consume(self, tokens: int = 1) -> bool:
        """Take ``tokens`` from the bucket; return False if there are too few."""
        with self._lock:
            now = time.monotonic()
            to_add = self._rate * int(now - self._last_updated)
            if to_add > 0:
                self._tokens = min(self._capacity, self._tokens + to_add)
                self._last_updated = now
            if self._tokens < tokens:
                return False
            self._tokens -= tokens
            return True

    def add(self, count: int) -> None:
        """Put ``count`` tokens into the bucket, ignoring its capacity."""
        with self._lock:
            self._tokens += count


def rate_limit_interceptor(
    bucket: TokenBucket,
) -> Callable[[Any, Callable[..., T]], T]:
    """Build an interceptor that tells the handler whether it was rate limited.

    The handler is always called, as ``handler(request, rate_limited=...)``.
    """

    def intercept(request: Any, handler: Callable[..., T]) -> T:
        return handler(request, rate_limited=not bucket.consume(1))

    return intercept