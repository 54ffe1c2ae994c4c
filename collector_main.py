"""Entry point for the local NDJSON test collector."""

import logging
import os
import signal
import sys
import threading

from log_emitter.collector import LogCollector


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    host = os.environ.get("COLLECTOR_HOST", "0.0.0.0")
    port = int(os.environ.get("COLLECTOR_PORT", "5000"))
    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logging.getLogger(__name__).info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    collector = LogCollector(host, port, shutdown_event)
    try:
        collector.start()
    finally:
        collector.stop()


if __name__ == "__main__":
    main()
