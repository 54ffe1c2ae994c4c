"""Remote sinks: best-effort delivery of NDJSON lines over TCP."""

import logging
import random
import select
import socket
import time
from typing import Protocol

from log_emitter.config import DEFAULT_TIMEOUT, EmitterConfig, parse_endpoint
from log_emitter.formatter import encode_line
from log_emitter.models import LogRecord

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """A record could not be handed to the remote sink."""

    def __init__(self, endpoint: str, reason: str):
        super().__init__(f"delivery to {endpoint} failed: {reason}")
        self.endpoint = endpoint
        self.reason = reason


def format_address(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def to_wire(payload) -> bytes:
    """Normalize a record, str, or bytes into one newline-terminated line."""
    if isinstance(payload, LogRecord):
        return encode_line(payload)
    if isinstance(payload, str):
        payload = payload.encode("utf-8")
    return payload.rstrip(b"\n") + b"\n"


def _await_peer_close(sock: socket.socket, deadline: float):
    """Drain until the peer closes its side, or raise once the deadline passes."""
    while True:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise socket.timeout("timed out waiting for the collector to close")
        sock.settimeout(remaining)
        if not sock.recv(4096):
            return


def deliver(payload, sink_endpoint, timeout: float = DEFAULT_TIMEOUT):
    """Open a connection, write one line, close cleanly. Raises DeliveryError.

    Each call uses a fresh connection. The write side is half-closed after the
    line and the call waits for the collector to close, so a collector that
    drops the connection without reading is reported as a failure.
    """
    host, port = parse_endpoint(sink_endpoint)
    address = format_address(host, port)
    data = to_wire(payload)
    deadline = time.monotonic() + timeout

    try:
        sock = socket.create_connection((host, port), timeout=timeout)
    except OSError as e:
        raise DeliveryError(address, f"connect failed: {e}") from e

    try:
        sock.sendall(data)
        sock.shutdown(socket.SHUT_WR)
        _await_peer_close(sock, deadline)
    except OSError as e:
        raise DeliveryError(address, str(e) or type(e).__name__) from e
    finally:
        sock.close()


class Sink(Protocol):
    endpoint: str

    def send(self, data: bytes) -> None: ...

    def close(self) -> None: ...


class TCPSink:
    """Per-message sink: every send opens and closes its own connection."""

    def __init__(self, host: str, port: int, timeout: float = DEFAULT_TIMEOUT):
        self._host = host
        self._port = port
        self._timeout = timeout

    @property
    def endpoint(self) -> str:
        return format_address(self._host, self._port)

    def send(self, data: bytes):
        deliver(data, (self._host, self._port), self._timeout)

    def close(self):
        pass


class PersistentTCPSink:
    """Keeps one connection open; reconnects with exponential backoff and jitter.

    Backoff is tracked as a "not before" time rather than a sleep, so a send
    during the backoff window fails fast instead of stalling the caller.
    """

    def __init__(
        self,
        host: str,
        port: int,
        timeout: float = DEFAULT_TIMEOUT,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        rng: random.Random | None = None,
        clock=time.monotonic,
    ):
        self._host = host
        self._port = port
        self._timeout = timeout
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._rng = rng or random.Random()
        self._clock = clock
        self._sock: socket.socket | None = None
        self._failures = 0
        self._next_attempt = 0.0

    @property
    def endpoint(self) -> str:
        return format_address(self._host, self._port)

    @property
    def connected(self) -> bool:
        return self._sock is not None

    @property
    def next_attempt(self) -> float:
        return self._next_attempt

    def send(self, data: bytes):
        if self._sock is not None and self._peer_closed():
            logger.info("Collector %s closed the connection", self.endpoint)
            self._drop()

        if self._sock is None:
            wait = self._next_attempt - self._clock()
            if wait > 0:
                raise DeliveryError(self.endpoint, f"reconnect backoff, next attempt in {wait:.1f}s")
            self._connect()

        try:
            self._sock.sendall(data)
        except OSError as e:
            self._drop()
            self._schedule_retry()
            raise DeliveryError(self.endpoint, f"send failed: {e}") from e

    def close(self):
        self._drop()

    def _connect(self):
        try:
            sock = socket.create_connection((self._host, self._port), timeout=self._timeout)
        except OSError as e:
            self._schedule_retry()
            raise DeliveryError(self.endpoint, f"connect failed: {e}") from e
        self._sock = sock
        self._failures = 0
        self._next_attempt = 0.0
        logger.info("Connected to %s", self.endpoint)

    def _schedule_retry(self):
        self._failures += 1
        delay = min(self._base_delay * (2 ** (self._failures - 1)), self._max_delay)
        jitter = self._rng.uniform(0, delay * 0.3)
        self._next_attempt = self._clock() + delay + jitter
        logger.debug(
            "Reconnect to %s allowed in %.1fs (failure %d)",
            self.endpoint, delay + jitter, self._failures,
        )

    def _peer_closed(self) -> bool:
        """True if the collector has closed or reset its end of the socket."""
        try:
            readable, _, _ = select.select([self._sock], [], [], 0)
            if not readable:
                return False
            return self._sock.recv(1, socket.MSG_PEEK) == b""
        except OSError:
            return True

    def _drop(self):
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass
            self._sock = None


def build_sink(config: EmitterConfig) -> Sink:
    if config.persistent:
        return PersistentTCPSink(config.sink_host, config.sink_port, config.delivery_timeout)
    return TCPSink(config.sink_host, config.sink_port, config.delivery_timeout)
