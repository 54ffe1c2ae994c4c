"""Minimal TCP collector that accepts NDJSON log records.

Stands in for a Logstash tcp input during tests and local demos. Stores
parsed records in ``received`` for assertions.
"""

import logging
import socket
import threading
import time

from log_emitter.formatter import RecordFormatError, parse_line
from log_emitter.models import LogRecord

logger = logging.getLogger(__name__)


class LogCollector:
    def __init__(self, host: str, port: int, shutdown_event: threading.Event):
        self._host = host
        self._port = port
        self._shutdown = shutdown_event
        self._sock: socket.socket | None = None
        self._server_address: tuple | None = None
        self._lock = threading.Lock()
        self.received: list[LogRecord] = []
        self.rejected = 0

    @property
    def server_address(self) -> tuple:
        return self._server_address

    def start(self):
        """Bind, listen, and accept connections until shutdown."""
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.settimeout(1.0)
        self._sock.bind((self._host, self._port))
        self._sock.listen(16)
        self._server_address = self._sock.getsockname()
        logger.info("Collector listening on %s:%d", *self._server_address[:2])

        while not self._shutdown.is_set():
            try:
                conn, addr = self._sock.accept()
            except socket.timeout:
                continue
            except OSError:
                break

            t = threading.Thread(
                target=self._handle_client,
                args=(conn, addr),
                daemon=True,
            )
            t.start()

    def stop(self):
        """Signal shutdown and close the listen socket."""
        self._shutdown.set()
        if self._sock:
            try:
                self._sock.close()
            except OSError:
                pass

    def _handle_client(self, conn: socket.socket, addr: tuple):
        logger.debug("Client connected from %s:%d", *addr[:2])
        buf = b""
        conn.settimeout(1.0)

        try:
            while not self._shutdown.is_set():
                try:
                    data = conn.recv(4096)
                except socket.timeout:
                    continue
                except OSError:
                    break
                if not data:
                    break

                buf += data
                while b"\n" in buf:
                    line, buf = buf.split(b"\n", 1)
                    if line.strip():
                        self._process_line(line)
            if buf.strip():
                logger.warning("Discarding unterminated line from %s:%d", *addr[:2])
                with self._lock:
                    self.rejected += 1
        finally:
            conn.close()
            logger.debug("Client disconnected: %s:%d", *addr[:2])

    def _process_line(self, line: bytes):
        try:
            record = parse_line(line)
        except RecordFormatError as e:
            with self._lock:
                self.rejected += 1
            logger.warning("Rejected line: %s", e)
            return

        with self._lock:
            self.received.append(record)
        logger.info("[%s] %s %s", record.level, record.service, record.message)

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        """Block until at least `count` records have arrived or timeout expires."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            with self._lock:
                if len(self.received) >= count:
                    return True
            time.sleep(0.02)
        with self._lock:
            return len(self.received) >= count
