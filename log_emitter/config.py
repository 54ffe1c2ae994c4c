"""Emitter configuration: frozen dataclass built from YAML, env vars, and CLI args."""

import argparse
import logging
import math
import os
from dataclasses import dataclass

import yaml

logger = logging.getLogger(__name__)

DEFAULT_SERVICE_NAME = "demo-app"
DEFAULT_SINK_PORT = 5000
DEFAULT_INTERVAL = 5.0
DEFAULT_TIMEOUT = 3.0

# Per-emitter keys accepted in the YAML file (top level and `emitters:` items)
_EMITTER_KEYS = (
    "service_name", "sink_host", "sink_port", "interval", "timeout",
    "persistent", "metrics_interval",
)


class ConfigurationError(ValueError):
    """Raised when emitter settings are invalid. Fatal at startup."""


@dataclass(frozen=True)
class EmitterConfig:
    sink_host: str
    sink_port: int = DEFAULT_SINK_PORT
    service_name: str = DEFAULT_SERVICE_NAME
    interval: float = DEFAULT_INTERVAL
    delivery_timeout: float = DEFAULT_TIMEOUT
    persistent: bool = False
    metrics_interval: float = 0.0

    @property
    def sink_endpoint(self) -> tuple[str, int]:
        return (self.sink_host, self.sink_port)


def _parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("true", "1", "yes")


def _to_float(name: str, value) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from None
    if math.isnan(result) or math.isinf(result):
        raise ConfigurationError(f"{name} must be finite, got {value!r}")
    return result


def _to_port(value) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"sink port must be an integer, got {value!r}")
    try:
        port = int(str(value).strip())
    except ValueError:
        raise ConfigurationError(f"sink port must be an integer, got {value!r}") from None
    if not 1 <= port <= 65535:
        raise ConfigurationError(f"sink port out of range 1-65535: {port}")
    return port


def parse_endpoint(endpoint) -> tuple[str, int]:
    """Split a sink endpoint into (host, port).

    Accepts ``"host:port"``, ``"[::1]:port"`` or a ``(host, port)`` pair.
    """
    if isinstance(endpoint, (tuple, list)):
        if len(endpoint) != 2:
            raise ConfigurationError(f"sink endpoint must be (host, port), got {endpoint!r}")
        host, port = endpoint
    elif isinstance(endpoint, str):
        text = endpoint.strip()
        if text.startswith("["):
            host, sep, rest = text[1:].partition("]")
            if not sep or not rest.startswith(":"):
                raise ConfigurationError(f"malformed sink endpoint: {endpoint!r}")
            port = rest[1:]
        else:
            host, sep, port = text.rpartition(":")
            if not sep or ":" in host:
                raise ConfigurationError(
                    f"sink endpoint must look like host:port, got {endpoint!r}"
                )
    else:
        raise ConfigurationError(f"unsupported sink endpoint type: {type(endpoint).__name__}")

    if not isinstance(host, str) or not host.strip():
        raise ConfigurationError(f"sink endpoint has no host: {endpoint!r}")
    host = host.strip()
    if any(c.isspace() for c in host) or "/" in host:
        raise ConfigurationError(f"invalid sink host: {host!r}")
    return host, _to_port(port)


def configure(
    service_name: str,
    cadence_interval: float,
    sink_endpoint,
    delivery_timeout: float = DEFAULT_TIMEOUT,
    persistent: bool = False,
    metrics_interval: float = 0.0,
) -> EmitterConfig:
    """Validate emitter settings and return an immutable EmitterConfig.

    Raises ConfigurationError for a non-positive cadence or timeout, a
    negative metrics interval, or a malformed sink endpoint.
    """
    interval = _to_float("cadence interval", cadence_interval)
    if interval <= 0:
        raise ConfigurationError(f"cadence interval must be positive, got {cadence_interval!r}")

    timeout = _to_float("delivery timeout", delivery_timeout)
    if timeout <= 0:
        raise ConfigurationError(f"delivery timeout must be positive, got {delivery_timeout!r}")

    metrics = _to_float("metrics interval", metrics_interval)
    if metrics < 0:
        raise ConfigurationError(f"metrics interval must be >= 0, got {metrics_interval!r}")

    host, port = parse_endpoint(sink_endpoint)

    name = (service_name or "").strip()
    if not name:
        logger.warning("No service name supplied, using placeholder %r", DEFAULT_SERVICE_NAME)
        name = DEFAULT_SERVICE_NAME

    return EmitterConfig(
        sink_host=host,
        sink_port=port,
        service_name=name,
        interval=interval,
        delivery_timeout=timeout,
        persistent=_parse_bool(persistent),
        metrics_interval=metrics,
    )


def build_cli_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Synthetic log emitter")
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument("--sink-host", default=None, help="Collector host (required)")
    parser.add_argument("--sink-port", default=None, help="Collector TCP port")
    parser.add_argument("--service-name", default=None, help="Service name stamped on records")
    parser.add_argument("--interval", default=None, help="Seconds between records")
    parser.add_argument("--timeout", default=None, help="Connect/write timeout in seconds")
    parser.add_argument(
        "--persistent", action="store_const", const="true", default=None,
        help="Keep one connection open and reconnect with backoff",
    )
    parser.add_argument(
        "--metrics-interval", default=None,
        help="Seconds between metrics summaries on stderr (0 disables)",
    )
    parser.add_argument("--log-level", default=None, help="Diagnostic log level")
    return parser


def load_yaml_config(path: str | None) -> dict:
    """Load settings from a YAML file. Returns empty dict if no path."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigurationError(f"config file {path} not found") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_settings(argv: list[str] | None = None) -> dict:
    """Merge defaults <- YAML <- env vars <- CLI args into a raw settings dict."""
    args = build_cli_parser().parse_args(argv)

    yaml_data = load_yaml_config(args.config or os.environ.get("EMITTER_CONFIG"))

    settings: dict = {
        "sink_host": None,
        "sink_port": DEFAULT_SINK_PORT,
        "service_name": DEFAULT_SERVICE_NAME,
        "interval": DEFAULT_INTERVAL,
        "timeout": DEFAULT_TIMEOUT,
        "persistent": False,
        "metrics_interval": 0.0,
        "log_level": "INFO",
    }
    for key in _EMITTER_KEYS + ("log_level",):
        if key in yaml_data:
            settings[key] = yaml_data[key]

    env_map = {
        "sink_host": "SINK_HOST",
        "sink_port": "SINK_PORT",
        "service_name": "SERVICE_NAME",
        "interval": "EMIT_INTERVAL",
        "timeout": "DELIVERY_TIMEOUT",
        "persistent": "PERSISTENT",
        "metrics_interval": "METRICS_INTERVAL",
        "log_level": "LOG_LEVEL",
    }
    for key, env_name in env_map.items():
        if env_name in os.environ:
            settings[key] = os.environ[env_name]

    cli_values = {
        "sink_host": args.sink_host,
        "sink_port": args.sink_port,
        "service_name": args.service_name,
        "interval": args.interval,
        "timeout": args.timeout,
        "persistent": args.persistent,
        "metrics_interval": args.metrics_interval,
        "log_level": args.log_level,
    }
    for key, value in cli_values.items():
        if value is not None:
            settings[key] = value

    settings["log_level"] = str(settings["log_level"]).upper()
    settings["emitters"] = yaml_data.get("emitters") or []
    return settings


def _config_from(settings: dict) -> EmitterConfig:
    host = settings.get("sink_host")
    if host is None or not str(host).strip():
        raise ConfigurationError(
            "sink host is required (set SINK_HOST, --sink-host, or sink_host in the config file)"
        )
    return configure(
        service_name=str(settings.get("service_name") or ""),
        cadence_interval=settings.get("interval"),
        sink_endpoint=(str(host), settings.get("sink_port")),
        delivery_timeout=settings.get("timeout"),
        persistent=settings.get("persistent", False),
        metrics_interval=settings.get("metrics_interval", 0.0),
    )


def build_configs(settings: dict) -> list[EmitterConfig]:
    """Turn merged settings into one EmitterConfig per emitter.

    Items of a YAML ``emitters:`` list are layered over the top-level values.
    Without such a list a single config is returned.
    """
    emitters = settings.get("emitters") or []
    if not isinstance(emitters, list):
        raise ConfigurationError("'emitters' must be a list of mappings")
    if not emitters:
        return [_config_from(settings)]

    configs = []
    for i, item in enumerate(emitters):
        if not isinstance(item, dict):
            raise ConfigurationError(f"emitters[{i}] must be a mapping")
        unknown = set(item) - set(_EMITTER_KEYS)
        if unknown:
            raise ConfigurationError(f"emitters[{i}] has unknown keys: {sorted(unknown)}")
        merged = dict(settings)
        merged.update(item)
        configs.append(_config_from(merged))
    return configs


def load_configs(argv: list[str] | None = None) -> list[EmitterConfig]:
    return build_configs(load_settings(argv))


def load_config(argv: list[str] | None = None) -> EmitterConfig:
    """Build a single EmitterConfig from defaults <- YAML <- env <- CLI."""
    return load_configs(argv)[0]
