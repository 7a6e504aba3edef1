"""Client-side registry of service nodes whose weights react to failures."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Optional

MIN_WEIGHT = 1
MAX_WEIGHT = 100


class NodeError(Exception):
    """Base class for failures reported against a service node."""


class NetworkFailure(NodeError):
    """The node could not be reached."""


class RequestTimeout(NodeError):
    """The node did not answer in time."""


class Throttled(NodeError):
    """The node is shedding load."""


class CircuitOpen(NodeError):
    """The node's circuit breaker is open."""


@dataclass
class ServiceNode:
    url: str
    weight: int


class WeightedClient:
    """Keeps one weight per node URL and lowers it according to failures."""

    def __init__(self) -> None:
        self._nodes: dict[str, ServiceNode] = {}
        self._lock = threading.Lock()

    def add_node(self, url: str, weight: int) -> None:
        """Register ``url`` with ``weight``, replacing any existing entry."""
        with self._lock:
            self._nodes[url] = ServiceNode(url, weight)

    def adjust_weight(self, url: str, error: Optional[BaseException] = None) -> None:
        """Lower the weight of ``url`` according to ``error``.

        Network failures and an open circuit drop the weight to zero, a
        timeout takes one off and throttling halves it; the last two never
        go below MIN_WEIGHT. No error, or any other error, leaves it as is.
        Unknown URLs are ignored.
        """
        with self._lock:
            node = self._nodes.get(url)
            if node is None:
                return
            if isinstance(error, (NetworkFailure, CircuitOpen)):
                node.weight = 0
            elif isinstance(error, RequestTimeout):
                node.weight = max(node.weight - 1, MIN_WEIGHT)
            elif isinstance(error, Throttled):
                node.weight = int(max(node.weight / 2, MIN_WEIGHT))

    def get_weight(self, url: str) -> Optional[int]:
        """Return the weight of ``url``, or None if it is not registered."""
        with self._lock:
            node = self._nodes.get(url)
            return None if node is None else node.weight

    def __contains__(self, url: object) -> bool:
        with self._lock:
            return url in self._nodes