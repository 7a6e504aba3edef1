"""Sources of memory usage readings."""

from __future__ import annotations

import abc
import time
from typing import Callable

import psutil

MOCK_HIGH_USAGE = 95.0
MOCK_NORMAL_USAGE = 50.0
MOCK_HIGH_START_MS = 2000
MOCK_HIGH_END_MS = 5000


class MemoryMonitor(abc.ABC):
    """Something that reports memory usage as a percentage."""

    @abc.abstractmethod
    def get_memory_usage(self) -> float:
        """Return the memory usage in percent."""


class MockMonitor(MemoryMonitor):
    """Reports high usage from two to five seconds after creation."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._start = clock()

    def get_memory_usage(self) -> float:
        elapsed_ms = int((self._clock() - self._start) * 1000)
        if MOCK_HIGH_START_MS <= elapsed_ms <= MOCK_HIGH_END_MS:
            return MOCK_HIGH_USAGE
        return MOCK_NORMAL_USAGE


class PhysicalMonitor(MemoryMonitor):
    """Reads the memory usage of this machine."""

    def get_memory_usage(self) -> float:
        return float(psutil.virtual_memory().percent)