"""Synthetic event emitter: generate, write locally, ship best-effort, wait."""

import logging
import random
import threading
import time

from log_emitter.config import EmitterConfig
from log_emitter.formatter import format_line
from log_emitter.metrics import Metrics, MetricsReporter
from log_emitter.models import LogRecord, generate_record, utc_now
from log_emitter.output import LocalWriter
from log_emitter.sink import DeliveryError, Sink, build_sink, to_wire

logger = logging.getLogger(__name__)


class Emitter:
    """Emits one record per tick to stdout and offers it to a remote sink.

    Local output failures propagate (LocalOutputError). Delivery failures are
    logged to the diagnostic channel and counted, and the loop carries on.
    """

    def __init__(
        self,
        config: EmitterConfig,
        shutdown_event: threading.Event | None = None,
        sink: Sink | None = None,
        writer: LocalWriter | None = None,
        rng: random.Random | None = None,
        clock=None,
    ):
        self._config = config
        self._shutdown = shutdown_event or threading.Event()
        self._sink = sink or build_sink(config)
        self._writer = writer or LocalWriter()
        self._rng = rng or random.Random()
        self._clock = clock or utc_now
        self._metrics = Metrics()
        self._last_timestamp = None
        self._emitted = 0
        self._delivered = 0
        self._failed = 0

    @property
    def config(self) -> EmitterConfig:
        return self._config

    @property
    def metrics(self) -> Metrics:
        return self._metrics

    @property
    def emitted(self) -> int:
        return self._emitted

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def failed(self) -> int:
        return self._failed

    def stop(self):
        self._shutdown.set()

    def _next_record(self) -> LogRecord:
        now = self._clock()
        # Clamp so timestamps never go backwards if the wall clock is stepped
        if self._last_timestamp is not None and now < self._last_timestamp:
            now = self._last_timestamp
        self._last_timestamp = now
        return generate_record(self._config.service_name, self._rng, now)

    def tick(self) -> LogRecord:
        """Run one emission: generate, write locally, attempt delivery."""
        record = self._next_record()
        line = format_line(record)

        self._writer.write(line)
        self._emitted += 1
        self._metrics.record_emitted()

        t0 = time.monotonic()
        try:
            self._sink.send(to_wire(line))
        except DeliveryError as e:
            self._failed += 1
            self._metrics.record_failed()
            logger.warning("Delivery to %s failed: %s", e.endpoint, e.reason)
        else:
            self._delivered += 1
            self._metrics.record_delivered((time.monotonic() - t0) * 1000)
        return record

    def run(self, max_ticks: int | None = None):
        """Tick every `interval` seconds until stopped or `max_ticks` is reached."""
        reporter_stop = threading.Event()
        reporter = None
        if self._config.metrics_interval > 0:
            reporter = MetricsReporter(
                self._metrics, self._config.service_name,
                self._config.metrics_interval, reporter_stop,
            )
            reporter.start()

        logger.info(
            "Emitter started: service=%s, sink=%s, interval=%.2fs, mode=%s",
            self._config.service_name, self._sink.endpoint, self._config.interval,
            "persistent" if self._config.persistent else "per-message",
        )

        ticks = 0
        try:
            while not self._shutdown.is_set():
                self.tick()
                ticks += 1
                if max_ticks is not None and ticks >= max_ticks:
                    break
                self._shutdown.wait(self._config.interval)
        finally:
            self._sink.close()
            reporter_stop.set()
            if reporter:
                reporter.stop()
            logger.info(
                "Emitter %s stopped: emitted=%d, delivered=%d, failed=%d",
                self._config.service_name, self._emitted, self._delivered, self._failed,
            )


def run(
    config: EmitterConfig,
    shutdown_event: threading.Event | None = None,
    max_ticks: int | None = None,
    rng: random.Random | None = None,
    clock=None,
    stream=None,
    sink: Sink | None = None,
) -> Emitter:
    """Build an Emitter for `config` and run it. Returns the finished emitter."""
    emitter = Emitter(
        config,
        shutdown_event=shutdown_event,
        sink=sink,
        writer=LocalWriter(stream),
        rng=rng,
        clock=clock,
    )
    emitter.run(max_ticks=max_ticks)
    return emitter


def run_emitters(
    configs: list[EmitterConfig],
    shutdown_event: threading.Event,
    max_ticks: int | None = None,
    stream=None,
) -> list[Emitter]:
    """Run one emitter per config, each on its own thread with its own sink.

    Blocks until every emitter has finished. If one emitter fails fatally the
    others are stopped and the first error is re-raised.
    """
    writer = LocalWriter(stream)
    emitters = [Emitter(c, shutdown_event, writer=writer) for c in configs]
    errors: list[BaseException] = []

    def _run(emitter: Emitter):
        try:
            emitter.run(max_ticks=max_ticks)
        except Exception as e:
            logger.error("Emitter %s crashed: %s", emitter.config.service_name, e)
            errors.append(e)
            shutdown_event.set()

    threads = [
        threading.Thread(
            target=_run, args=(e,), name=f"emitter-{e.config.service_name}", daemon=True,
        )
        for e in emitters
    ]
    for t in threads:
        t.start()
    for t in threads:
        while t.is_alive():
            t.join(timeout=0.5)

    if errors:
        raise errors[0]
    return emitters
