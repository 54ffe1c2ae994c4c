"""Entry point for the synthetic log emitter."""

import logging
import signal
import sys
import threading

from log_emitter.config import ConfigurationError, build_configs, load_settings
from log_emitter.emitter import run_emitters
from log_emitter.output import LocalOutputError


def main(argv: list[str] | None = None) -> int:
    try:
        settings = load_settings(argv)
    except ConfigurationError as e:
        logging.basicConfig(stream=sys.stderr)
        logging.getLogger(__name__).error("Invalid configuration: %s", e)
        return 2

    logging.basicConfig(
        level=getattr(logging, settings["log_level"], logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    logger = logging.getLogger(__name__)

    try:
        configs = build_configs(settings)
    except ConfigurationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    shutdown_event = threading.Event()

    def signal_handler(signum, frame):
        logger.info("Received signal %d, shutting down...", signum)
        shutdown_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Starting %d emitter(s)", len(configs))
    try:
        run_emitters(configs, shutdown_event)
    except LocalOutputError as e:
        logger.error("Local output failed, exiting: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
