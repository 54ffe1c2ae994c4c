"""Serialize log records to NDJSON lines and parse them back."""

import json
from datetime import datetime, timezone

from log_emitter.models import LogRecord

REQUIRED_FIELDS = ("@timestamp", "level", "service", "message")


class RecordFormatError(ValueError):
    """Raised when a wire line cannot be parsed into a LogRecord."""


def format_timestamp(ts: datetime) -> str:
    """Render as ISO-8601 UTC with microseconds. Naive datetimes are taken as UTC."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(text: str) -> datetime:
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def to_dict(record: LogRecord) -> dict:
    return {
        "@timestamp": format_timestamp(record.timestamp),
        "level": record.level,
        "service": record.service,
        "message": record.message,
    }


def format_line(record: LogRecord) -> str:
    """Compact single-line JSON, without the trailing newline."""
    return json.dumps(to_dict(record), separators=(",", ":"), ensure_ascii=False)


def encode_line(record: LogRecord) -> bytes:
    """Wire form: compact JSON + newline, encoded as UTF-8."""
    return (format_line(record) + "\n").encode("utf-8")


def parse_line(line: str | bytes) -> LogRecord:
    """Parse one NDJSON line back into a LogRecord."""
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise RecordFormatError(f"line is not valid UTF-8: {e}") from e
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise RecordFormatError(f"invalid JSON: {e}") from e

    if not isinstance(data, dict):
        raise RecordFormatError("record must be a JSON object")
    missing = [f for f in REQUIRED_FIELDS if f not in data]
    if missing:
        raise RecordFormatError(f"missing required fields: {', '.join(missing)}")
    for field in REQUIRED_FIELDS:
        if not isinstance(data[field], str):
            raise RecordFormatError(f"field {field!r} must be a string")

    try:
        timestamp = parse_timestamp(data["@timestamp"])
    except ValueError as e:
        raise RecordFormatError(f"invalid @timestamp: {data['@timestamp']!r}") from e

    return LogRecord(
        timestamp=timestamp,
        level=data["level"],
        service=data["service"],
        message=data["message"],
    )
