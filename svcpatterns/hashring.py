"""Slot-based hash ring that rebalances slots by observed request load."""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from itertools import accumulate
from pathlib import Path
from typing import Callable, Optional, Sequence

logger = logging.getLogger(__name__)

DEFAULT_SLOT_NUM = 1024

HashCodeFunc = Callable[[int], int]


@dataclass(frozen=True)
class Node:
    """A cache node; its cache entries are kept as small files."""

    name: str
    address: str
    cache_dir: Path = Path("cache")

    def get_cache(self, uid: int) -> str:
        """Return the cached text for ``uid``, creating it on first access.

        The cache directory must already exist.
        """
        path = Path(self.cache_dir) / f"c_{self.address}_{uid}.txt"
        with open(path, "a+", encoding="utf-8") as fh:
            fh.seek(0)
            content = fh.read()
            if not content:
                content = f"节点{self.name}缓存"
                fh.write(content)
        return content


class HashRing:
    """Maps request keys to nodes through a fixed number of hash slots."""

    def __init__(
        self,
        nodes: Sequence[Node],
        slot_num: int = DEFAULT_SLOT_NUM,
        hash_code_func: Optional[HashCodeFunc] = None,
    ) -> None:
        if not nodes:
            raise ValueError("a hash ring needs at least one node")
        if slot_num <= 0:
            raise ValueError("slot_num must be positive")
        self._nodes = list(nodes)
        self._slot_num = slot_num
        self._hash = hash_code_func or (lambda uid: uid % slot_num)
        self._lock = threading.Lock()
        self._request_counts = [0] * slot_num
        self._slots = self._initial_layout()

    def _initial_layout(self) -> list[Node]:
        avg = self._slot_num // len(self._nodes)
        slots: list[Node] = []
        boundary = 0
        last = len(self._nodes) - 1
        for i, node in enumerate(self._nodes):
            boundary = self._slot_num if i == last else boundary + avg
            slots.extend([node] * max(0, boundary + 1 - len(slots)))
        return slots

    def get_node(self, uid: int) -> Node:
        """Return the node owning ``uid``'s slot and count the request."""
        slot = self._hash(uid)
        with self._lock:
            self._request_counts[slot] += 1
            return self._slots[slot]

    def load_request_counts(self, counts: Sequence[int]) -> None:
        """Replace the per-slot request counters."""
        if len(counts) != self._slot_num:
            raise ValueError(
                f"expected {self._slot_num} slot counts, got {len(counts)}"
            )
        with self._lock:
            self._request_counts = list(counts)

    def balance(self) -> list[list[int]]:
        """Reassign contiguous slot ranges to nodes by recorded load.

        The first node keeps the leading slots; the cut points are chosen so
        that each following node's request total strays as little as possible
        from the per-node average. Counters are reset afterwards. Returns the
        per-node slot counts that the split was based on.
        """
        with self._lock:
            counts = self._request_counts
            node_num = len(self._nodes)
            slot_num = self._slot_num
            prefix = list(accumulate(counts, initial=0))
            avg = prefix[-1] // node_num

            dp = [[0, 0] + [math.inf] * (node_num - 1) for _ in range(slot_num + 1)]
            cuts = [[0] * (node_num + 1) for _ in range(slot_num + 1)]

            for j in range(2, node_num + 1):
                for i in range(j, slot_num + 1):
                    best, cut = min(
                        (dp[k][j - 1] + abs(avg - (prefix[i] - prefix[k])), k)
                        for k in range(j - 1, i)
                    )
                    dp[i][j] = best
                    cuts[i][j] = cut

            split_keys = [0] * node_num
            segments: list[list[int]] = [[] for _ in range(node_num)]
            idx = slot_num
            for j in range(node_num, 0, -1):
                prev = cuts[idx][j]
                split_keys[j - 1] = idx
                segments[j - 1] = counts[prev:idx]
                idx = prev

            for number, segment in enumerate(segments, start=1):
                logger.info("segment %d: %s, total %d", number, segment, sum(segment))

            slots: list[Node] = []
            for node, key in zip(self._nodes, split_keys):
                slots.extend([node] * max(0, key - len(slots)))

            self._slots = slots
            self._request_counts = [0] * slot_num
            return segments