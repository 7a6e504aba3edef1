"""Main/backup cache failover with gradual (gray) traffic shifting."""

from __future__ import annotations

import enum
import logging
import random
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Optional, Protocol, Union

logger = logging.getLogger(__name__)

MAX_TRAFFIC_WEIGHT = 100
ADJUST_TRAFFIC_WEIGHT_CNT = 10
MAIN_TO_BACKUP_WEIGHT = 90
BACKUP_TO_MAIN_WEIGHT = 1


class GrayMode(enum.IntEnum):
    NONE = 0
    MAIN_TO_BACKUP = 1
    BACKUP_TO_MAIN = 2


class MainNodeUnavailableError(RuntimeError):
    """Raised when a request is refused while traffic leaves the main node."""


class RedisClient(Protocol):
    def get(self, name: str) -> Any: ...

    def set(self, name: str, value: Any, ex: Any = None) -> Any: ...

    def ping(self) -> Any: ...


@dataclass
class _RedisNode:
    client: RedisClient
    active: bool = True


class RedisManager:
    """Routes reads and writes to a main node, failing over to a backup.

    Heartbeats decide when the main node is down or back; traffic then
    shifts gradually, one weight point per ten successful gray requests.
    """

    def __init__(
        self,
        main_client: RedisClient,
        backup_client: RedisClient,
        main_break_num: int,
        main_recover_num: int,
    ) -> None:
        self._main = _RedisNode(main_client)
        self._backup = _RedisNode(backup_client)
        self._main_break_num = main_break_num
        self._main_recover_num = main_recover_num
        self._gray_mode = GrayMode.NONE
        self._heartbreak_cnt = 0
        self._heartbeat_cnt = 0
        self._success_resp_cnt = 0
        self._traffic_weight = MAX_TRAFFIC_WEIGHT
        self._lock = threading.Lock()

    @property
    def gray_mode(self) -> GrayMode:
        return self._gray_mode

    @property
    def traffic_weight(self) -> int:
        return self._traffic_weight

    @property
    def main_active(self) -> bool:
        return self._main.active

    def get_value(self, key: str) -> Union[str, Any]:
        """Read ``key``; raise KeyError if it does not exist."""
        with self._lock:
            node, is_gray = self._select_node()
            if node is None:
                raise MainNodeUnavailableError("main node unavailable")
            value = node.client.get(key)
            if value is None:
                raise KeyError(f"key {key!r} does not exist")
            if is_gray:
                self._adjust_weight()
            if isinstance(value, bytes):
                return value.decode("utf-8")
            return value

    def set_value(
        self, key: str, value: Any, expiration: Union[float, timedelta] = 0
    ) -> None:
        """Write ``key``; an expiration of zero means the key never expires."""
        if isinstance(expiration, timedelta):
            ex: Optional[timedelta] = expiration if expiration else None
        else:
            ex = timedelta(seconds=expiration) if expiration else None
        with self._lock:
            node, is_gray = self._select_node()
            if node is None:
                raise MainNodeUnavailableError("main node unavailable")
            node.client.set(key, value, ex=ex)
            if is_gray:
                self._adjust_weight()

    def _select_node(self) -> tuple[Optional[_RedisNode], bool]:
        if self._gray_mode is GrayMode.NONE:
            return (self._main if self._main.active else self._backup), False
        roll = random.randrange(100)
        if self._gray_mode is GrayMode.MAIN_TO_BACKUP:
            if roll < self._traffic_weight:
                return self._backup, True
            return None, False
        if roll < self._traffic_weight:
            return self._main, True
        return self._backup, False

    def _adjust_weight(self) -> None:
        if self._gray_mode is GrayMode.NONE:
            return
        self._success_resp_cnt += 1
        if self._success_resp_cnt % ADJUST_TRAFFIC_WEIGHT_CNT == 0:
            self._traffic_weight += 1
        if self._traffic_weight == MAX_TRAFFIC_WEIGHT:
            self._gray_mode = GrayMode.NONE
            self._success_resp_cnt = 0

    def check_heartbeat(self) -> bool:
        """Ping the main node once and update the failover state.

        Returns whether the ping succeeded.
        """
        try:
            ok = bool(self._main.client.ping())
        except Exception:
            ok = False

        with self._lock:
            if ok:
                if not self._main.active:
                    self._heartbreak_cnt = 0
                    self._heartbeat_cnt += 1
                    if self._heartbeat_cnt >= self._main_recover_num:
                        self._main.active = True
                        self._heartbeat_cnt = 0
                        self._gray_mode = GrayMode.BACKUP_TO_MAIN
                        self._traffic_weight = BACKUP_TO_MAIN_WEIGHT
                        logger.info("main node recovered, shifting traffic back")
                else:
                    logger.debug("heartbeat ok")
            elif self._main.active:
                self._heartbeat_cnt = 0
                self._heartbreak_cnt += 1
                if self._heartbreak_cnt >= self._main_break_num:
                    self._main.active = False
                    self._heartbreak_cnt = 0
                    self._gray_mode = GrayMode.MAIN_TO_BACKUP
                    self._traffic_weight = MAIN_TO_BACKUP_WEIGHT
                    logger.warning("main node unavailable, switching to backup")
        return ok

    def heartbeat_checker(
        self, stop_event: threading.Event, interval: float = 1.0
    ) -> None:
        """Check the main node every ``interval`` seconds until stopped."""
        while not stop_event.wait(interval):
            self.check_heartbeat()