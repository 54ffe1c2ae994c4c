import socket
import struct
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest

from log_emitter.collector import LogCollector


class FakeClock:
    """Deterministic clock advancing a fixed step per call."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.now = start or datetime(2024, 1, 15, 8, 23, 45, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        current = self.now
        self.now = self.now + self.step
        return current


def free_port() -> int:
    """A loopback port with nothing listening on it."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    s.bind(("127.0.0.1", 0))
    port = s.getsockname()[1]
    s.close()
    return port


def start_aborting_server(shutdown_event):
    """Accept connections and immediately reset them. Returns (host, port)."""
    srv = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    srv.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    srv.settimeout(0.2)
    srv.bind(("127.0.0.1", 0))
    srv.listen(5)
    host, port = srv.getsockname()

    def accept_loop():
        while not shutdown_event.is_set():
            try:
                conn, _ = srv.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            # SO_LINGER with zero timeout makes close() send RST instead of FIN
            conn.setsockopt(socket.SOL_SOCKET, socket.SO_LINGER, struct.pack("ii", 1, 0))
            conn.close()
        srv.close()

    threading.Thread(target=accept_loop, daemon=True).start()
    return host, port


@pytest.fixture
def collector():
    shutdown = threading.Event()
    server = LogCollector("127.0.0.1", 0, shutdown)
    t = threading.Thread(target=server.start, daemon=True)
    t.start()
    for _ in range(100):
        if server.server_address:
            break
        time.sleep(0.02)
    yield server
    server.stop()
    t.join(timeout=3)


@pytest.fixture
def fake_clock():
    return FakeClock()
