"""Log record data model and random record generation."""

import random
from dataclasses import dataclass
from datetime import datetime, timezone

LEVELS = ("INFO", "ERROR")
ACTIONS = ("login", "upload", "download")


@dataclass(frozen=True)
class LogRecord:
    timestamp: datetime
    level: str
    service: str
    message: str


def outcome_for(level: str) -> str:
    return "failed" if level == "ERROR" else "success"


def build_message(action: str, level: str) -> str:
    """Message text for an action; the outcome word follows from the level."""
    return f"User {action} {outcome_for(level)}"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_record(
    service: str,
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> LogRecord:
    """Produce one record with level and action drawn independently and uniformly."""
    rng = rng or random
    level = rng.choice(LEVELS)
    action = rng.choice(ACTIONS)
    return LogRecord(
        timestamp=now if now is not None else utc_now(),
        level=level,
        service=service,
        message=build_message(action, level),
    )
