"""Request limiter that rejects everything while memory usage is high."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, TypeVar

from svcpatterns.memory_monitor import MemoryMonitor

logger = logging.getLogger(__name__)

HIGH_WATERMARK = 80.0
LOW_WATERMARK = 60.0
HANDLER_DELAY = 0.1

T = TypeVar("T")


class RateLimitedError(RuntimeError):
    """Raised when a request is rejected because memory usage is high."""


class MemoryLimiter:
    """Polls a monitor in the background and limits requests above 80%.

    Limiting stops once usage falls to 60% or below.
    """

    def __init__(self, monitor: MemoryMonitor, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._monitor = monitor
        self._interval = interval
        self._limited = False
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    @property
    def limited(self) -> bool:
        return self._limited

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            self.refresh()

    def refresh(self) -> bool:
        """Take one reading and update the state; return whether limited."""
        try:
            usage = self._monitor.get_memory_usage()
        except Exception:
            logger.error("failed to read memory usage", exc_info=True)
            return self._limited
        if usage >= HIGH_WATERMARK:
            self._limited = True
        elif usage <= LOW_WATERMARK:
            self._limited = False
        return self._limited

    def build_interceptor(self) -> Callable[[Any, Callable[[Any], T]], T]:
        """Build an interceptor that raises RateLimitedError while limited."""

        def intercept(request: Any, handler: Callable[[Any], T]) -> T:
            if self._limited:
                raise RateLimitedError("request rejected: memory usage too high")
            return handler(request)

        return intercept

    def close(self) -> None:
        """Stop the background polling."""
        self._stop.set()
        if self._thread.is_alive() and self._thread is not threading.current_thread():
            self._thread.join()

    def __enter__(self) -> "MemoryLimiter":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def timestamp_handler(request: Any) -> int:
    """Wait 100 ms, then return the current time in milliseconds."""
    time.sleep(HANDLER_DELAY)
    return int(time.time() * 1000)