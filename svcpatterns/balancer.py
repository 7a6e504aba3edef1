"""Nodes with health status and a smooth weighted round-robin balancer."""

from __future__ import annotations

import enum
import time
from dataclasses import dataclass, field
from typing import Protocol, Sequence


class NodeStatus(str, enum.Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    PROBATION = "probation"


@dataclass(eq=False)
class Node:
    """A service node; nodes compare by identity."""

    url: str
    weight: int
    status: NodeStatus = NodeStatus.HEALTHY
    last_check_at: float = field(default_factory=time.monotonic)


class NoAvailableNodesError(LookupError):
    """Raised when no node can be selected."""


class LoadBalancer(Protocol):
    def select(self, nodes: Sequence[Node]) -> Node: ...


class WeightedRoundRobinBalancer:
    """Smooth weighted round robin.

    The weights are read from the nodes the first time and again only when
    the number of nodes offered changes.
    """

    def __init__(self) -> None:
        self._weights: list[int] = []
        self._current: list[int] = []
        self._last_index = -1

    def select(self, nodes: Sequence[Node]) -> Node:
        """Pick the next node; raise NoAvailableNodesError if none can be."""
        if not nodes:
            raise NoAvailableNodesError("no available nodes")

        if len(self._weights) != len(nodes):
            self._weights = [node.weight for node in nodes]
            self._current = [0] * len(nodes)
            self._last_index = -1

        total = sum(self._weights)
        self._current = [c + w for c, w in zip(self._current, self._weights)]
        if total == 0:
            raise NoAvailableNodesError("no available nodes")

        chosen = max(range(len(self._current)), key=self._current.__getitem__)
        self._current[chosen] -= total
        self._last_index = chosen
        return nodes[chosen]