"""HTTP server that simulates failures selected by the ``error`` query parameter."""

from __future__ import annotations

import logging
import threading
import time
from http import HTTPStatus
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Optional
from urllib.parse import parse_qs, urlsplit

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_DELAY = 0.1
DEFAULT_TIMEOUT_DELAY = 2.0


def status_for_fault(
    kind: Optional[str],
    network_delay: float = DEFAULT_NETWORK_DELAY,
    timeout_delay: float = DEFAULT_TIMEOUT_DELAY,
) -> int:
    """Return the HTTP status for a simulated fault, sleeping where it stalls."""
    if kind == "network":
        time.sleep(network_delay)
        return HTTPStatus.SERVICE_UNAVAILABLE
    if kind == "timeout":
        time.sleep(timeout_delay)
        return HTTPStatus.REQUEST_TIMEOUT
    if kind == "throttle":
        return HTTPStatus.TOO_MANY_REQUESTS
    if kind == "circuit_breaker":
        return HTTPStatus.SERVICE_UNAVAILABLE
    return HTTPStatus.OK


class _FaultHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, network_delay: float, timeout_delay: float) -> None:
        self.network_delay = network_delay
        self.timeout_delay = timeout_delay
        super().__init__(address, _FaultHandler)


class _FaultHandler(BaseHTTPRequestHandler):
    server: _FaultHTTPServer

    def _respond(self) -> None:
        values = parse_qs(urlsplit(self.path).query).get("error")
        kind = values[0] if values else None
        status = status_for_fault(
            kind, self.server.network_delay, self.server.timeout_delay
        )
        self.send_response(status)
        self.send_header("Content-Length", "0")
        self.end_headers()

    do_GET = do_POST = do_PUT = do_DELETE = do_HEAD = _respond

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        logger.debug("%s - " + format, self.address_string(), *args)


def _parse_address(address: str) -> tuple[str, int]:
    host, sep, port = address.rpartition(":")
    if not sep:
        raise ValueError(f"address {address!r} has no port")
    return host, int(port)


class FaultServer:
    """Listens on ``address`` ("host:port") and answers with simulated faults."""

    def __init__(
        self,
        address: str,
        network_delay: float = DEFAULT_NETWORK_DELAY,
        timeout_delay: float = DEFAULT_TIMEOUT_DELAY,
    ) -> None:
        self._server = _FaultHTTPServer(
            _parse_address(address), network_delay, timeout_delay
        )
        self._thread: Optional[threading.Thread] = None

    @property
    def address(self) -> str:
        """The bound "host:port"."""
        host, port = self._server.server_address[:2]
        return f"{host}:{port}"

    @property
    def url(self) -> str:
        host, port = self._server.server_address[:2]
        if host in ("", "0.0.0.0"):
            host = "127.0.0.1"
        return f"http://{host}:{port}"

    def serve_in_background(self) -> "FaultServer":
        """Start serving on a daemon thread."""
        if self._thread is None:
            self._thread = threading.Thread(
                target=self._server.serve_forever, daemon=True
            )
            self._thread.start()
        return self

    def close(self) -> None:
        """Stop serving and release the socket."""
        if self._thread is not None:
            self._server.shutdown()
            self._thread.join()
            self._thread = None
        self._server.server_close()

    def __enter__(self) -> "FaultServer":
        return self.serve_in_background()

    def __exit__(self, *exc_info) -> None:
        self.close()