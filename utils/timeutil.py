"""Timestamp helpers shared by the persisted models."""
from datetime import datetime, timezone


def utc_now():
    return datetime.now(timezone.utc)


def parse_timestamp(value):
    """Parse an ISO string, epoch milliseconds or datetime into an aware UTC datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        dt = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def to_iso(dt):
    return dt.isoformat() if dt is not None else None


def epoch_ms(dt):
    return int(dt.timestamp() * 1000)
