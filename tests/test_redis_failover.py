import threading
import time
from datetime import timedelta
from unittest.mock import patch

import pytest

from svcpatterns.redis_failover import (
    GrayMode,
    MainNodeUnavailableError,
    RedisManager,
)

KEY = "test_key"
VALUE = "test_value"


class FakeRedis:
    def __init__(self, pings=()):
        self.data = {}
        self.pings = list(pings)
        self.set_calls = []

    def ping(self):
        result = self.pings.pop(0) if self.pings else True
        if isinstance(result, Exception):
            raise result
        return result

    def get(self, name):
        return self.data.get(name)

    def set(self, name, value, ex=None):
        self.data[name] = value
        self.set_calls.append((name, value, ex))
        return True


def failing_main():
    main = FakeRedis(pings=[ConnectionError("down"), ConnectionError("down")])
    backup = FakeRedis()
    manager = RedisManager(main, backup, 2, 2)
    manager.check_heartbeat()
    manager.check_heartbeat()
    return main, backup, manager


def test_main_node_healthy():
    main, backup = FakeRedis(pings=[True]), FakeRedis()
    manager = RedisManager(main, backup, 2, 2)
    assert manager.check_heartbeat() is True
    manager.set_value(KEY, VALUE, 0)
    assert manager.get_value(KEY) == VALUE
    assert main.data == {KEY: VALUE}
    assert backup.data == {}
    assert manager.gray_mode is GrayMode.NONE


def test_single_failure_keeps_main():
    main = FakeRedis(pings=[ConnectionError("down")])
    manager = RedisManager(main, FakeRedis(), 2, 2)
    assert manager.check_heartbeat() is False
    assert manager.main_active is True
    assert manager.gray_mode is GrayMode.NONE


def test_main_failure_switches_to_backup():
    main, backup, manager = failing_main()
    assert manager.main_active is False
    assert manager.gray_mode is GrayMode.MAIN_TO_BACKUP
    assert manager.traffic_weight == 90
    with patch("random.randrange", return_value=0):
        manager.set_value(KEY, VALUE, 0)
        assert manager.get_value(KEY) == VALUE
    assert backup.data == {KEY: VALUE}
    assert main.data == {}


def test_requests_outside_weight_are_refused_during_failover():
    _, _, manager = failing_main()
    with patch("random.randrange", return_value=95):
        with pytest.raises(MainNodeUnavailableError):
            manager.get_value(KEY)
        with pytest.raises(MainNodeUnavailableError):
            manager.set_value(KEY, VALUE)


def test_weight_grows_until_failover_completes():
    _, backup, manager = failing_main()
    backup.data[KEY] = VALUE
    with patch("random.randrange", return_value=0):
        for _ in range(10):
            manager.get_value(KEY)
        assert manager.traffic_weight == 91
        for _ in range(90):
            manager.get_value(KEY)
    assert manager.traffic_weight == 100
    assert manager.gray_mode is GrayMode.NONE
    # Main still inactive: everything goes to the backup without randomness.
    with patch("random.randrange", return_value=99):
        assert manager.get_value(KEY) == VALUE


def test_main_recovers_into_gray_mode():
    main = FakeRedis(
        pings=[ConnectionError("down"), ConnectionError("down"), True, True]
    )
    backup = FakeRedis()
    manager = RedisManager(main, backup, 2, 2)
    for _ in range(4):
        manager.check_heartbeat()
    assert manager.main_active is True
    assert manager.gray_mode is GrayMode.BACKUP_TO_MAIN
    assert manager.traffic_weight == 1
    with patch("random.randrange", return_value=0):
        manager.set_value(KEY, VALUE, 0)
        assert manager.get_value(KEY) == VALUE
    assert main.data == {KEY: VALUE}
    with patch("random.randrange", return_value=50):
        manager.set_value(KEY, "other", 0)
    assert backup.data == {KEY: "other"}


def test_missing_key_raises_key_error():
    manager = RedisManager(FakeRedis(), FakeRedis(), 2, 2)
    with pytest.raises(KeyError):
        manager.get_value("absent")


def test_bytes_values_are_decoded():
    main = FakeRedis()
    main.data[KEY] = VALUE.encode()
    manager = RedisManager(main, FakeRedis(), 2, 2)
    assert manager.get_value(KEY) == VALUE


def test_expiration_is_passed_as_timedelta():
    main = FakeRedis()
    manager = RedisManager(main, FakeRedis(), 2, 2)
    manager.set_value(KEY, VALUE, 10)
    manager.set_value("k2", VALUE)
    assert main.set_calls == [
        (KEY, VALUE, timedelta(seconds=10)),
        ("k2", VALUE, None),
    ]


def test_heartbeat_checker_runs_until_stopped():
    main = FakeRedis(pings=[ConnectionError("down")] * 1000)
    manager = RedisManager(main, FakeRedis(), 2, 2)
    stop = threading.Event()
    worker = threading.Thread(target=manager.heartbeat_checker, args=(stop, 0.01))
    worker.start()
    deadline = time.monotonic() + 2
    while manager.main_active and time.monotonic() < deadline:
        time.sleep(0.01)
    stop.set()
    worker.join(timeout=2)
    assert manager.main_active is False
    assert not worker.is_alive()