"""Thread-safe delivery metrics and periodic reporting."""

import sys
import threading


class Metrics:
    """Thread-safe counters for tracking emitter delivery."""

    def __init__(self):
        self._lock = threading.Lock()
        self._emitted = 0
        self._delivered = 0
        self._failed = 0
        self._latencies: list[float] = []

    def record_emitted(self):
        with self._lock:
            self._emitted += 1

    def record_delivered(self, latency_ms: float):
        """Record a successful delivery with its latency in milliseconds."""
        with self._lock:
            self._delivered += 1
            self._latencies.append(latency_ms)

    def record_failed(self):
        with self._lock:
            self._failed += 1

    def snapshot_and_reset(self) -> dict:
        """Atomically read all counters and reset them to zero."""
        with self._lock:
            latencies = self._latencies
            snapshot = {
                "emitted": self._emitted,
                "delivered": self._delivered,
                "failed": self._failed,
                "avg_latency_ms": (
                    sum(latencies) / len(latencies) if latencies else 0.0
                ),
                "max_latency_ms": max(latencies) if latencies else 0.0,
            }

            self._emitted = 0
            self._delivered = 0
            self._failed = 0
            self._latencies = []

            return snapshot


def format_snapshot(service: str, snapshot: dict) -> str:
    return (
        f"[metrics] service={service} "
        f"emitted={snapshot['emitted']} "
        f"delivered={snapshot['delivered']} "
        f"failed={snapshot['failed']} "
        f"avg_latency={snapshot['avg_latency_ms']:.1f}ms "
        f"max_latency={snapshot['max_latency_ms']:.1f}ms"
    )


class MetricsReporter:
    """Background thread that periodically prints metrics summaries to stderr."""

    def __init__(
        self,
        metrics: Metrics,
        service: str,
        interval: float,
        shutdown_event: threading.Event,
        stream=None,
    ):
        self._metrics = metrics
        self._service = service
        self._interval = interval
        self._shutdown = shutdown_event
        self._stream = stream
        self._thread: threading.Thread | None = None

    def start(self):
        self._thread = threading.Thread(target=self._report_loop, daemon=True)
        self._thread.start()

    def stop(self):
        if self._thread:
            self._thread.join(timeout=5)

    def _report_loop(self):
        while not self._shutdown.is_set():
            self._shutdown.wait(self._interval)
            if self._shutdown.is_set():
                break

            snapshot = self._metrics.snapshot_and_reset()
            print(
                format_snapshot(self._service, snapshot),
                file=self._stream or sys.stderr,
                flush=True,
            )
