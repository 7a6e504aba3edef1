import time
import urllib.error
import urllib.request

import pytest

from svcpatterns.fault_server import FaultServer, status_for_fault
from svcpatterns.weighted_client import (
    CircuitOpen,
    NetworkFailure,
    RequestTimeout,
    Throttled,
    WeightedClient,
)


def fetch_status(url):
    try:
        with urllib.request.urlopen(url, timeout=5) as resp:
            return resp.status
    except urllib.error.HTTPError as exc:
        exc.close()
        return exc.code


def error_for(status, query):
    if status == 503:
        return NetworkFailure() if query == "error=network" else CircuitOpen()
    if status == 408:
        return RequestTimeout()
    if status == 429:
        return Throttled()
    return None


CASES = [
    ("", 200),
    ("network", 503),
    ("timeout", 408),
    ("throttle", 429),
    ("circuit_breaker", 503),
]


@pytest.mark.parametrize("kind, expected", CASES)
def test_status_for_fault(kind, expected):
    assert status_for_fault(kind, 0, 0) == expected


def test_status_for_unknown_kind_is_ok():
    assert status_for_fault("nonsense", 0, 0) == 200
    assert status_for_fault(None, 0, 0) == 200


def test_network_fault_waits():
    start = time.monotonic()
    assert status_for_fault("network", 0.05, 0) == 503
    assert time.monotonic() - start >= 0.05


@pytest.fixture
def server():
    srv = FaultServer("127.0.0.1:0", network_delay=0.01, timeout_delay=0.01)
    srv.serve_in_background()
    yield srv
    srv.close()


@pytest.mark.parametrize("kind, expected", CASES)
def test_server_handle_request(server, kind, expected):
    query = f"error={kind}" if kind else ""
    assert fetch_status(f"{server.url}/?{query}") == expected


def test_address_reports_bound_port(server):
    host, _, port = server.address.rpartition(":")
    assert host == "127.0.0.1"
    assert int(port) > 0


def test_invalid_address_rejected():
    with pytest.raises(ValueError):
        FaultServer("no-port-here")


@pytest.mark.parametrize(
    "query, expected_weight, expected_error",
    [
        ("", 50, None),
        ("error=network", 0, NetworkFailure),
        ("error=timeout", 49, RequestTimeout),
        ("error=throttle", 25, Throttled),
        ("error=circuit_breaker", 0, CircuitOpen),
    ],
)
def test_integration_with_weighted_client(server, query, expected_weight, expected_error):
    client = WeightedClient()
    client.add_node(server.url, 50)
    error = error_for(fetch_status(f"{server.url}/?{query}"), query)
    client.adjust_weight(server.url, error)
    assert client.get_weight(server.url) == expected_weight
    if expected_error is None:
        assert error is None
    else:
        assert type(error) is expected_error


def test_context_manager_serves_and_closes():
    with FaultServer("127.0.0.1:0", network_delay=0, timeout_delay=0) as srv:
        url = srv.url
        assert fetch_status(f"{url}/?error=throttle") == 429
    with pytest.raises(urllib.error.URLError):
        urllib.request.urlopen(f"{url}/", timeout=1)