"""Formatting utilities for display."""
from datetime import datetime, timezone

from utils.timeutil import parse_timestamp


def format_pct(value, decimals=1, with_color=False):
    """Format a 0-100 percentage. Optionally include rich color markup (green at 100)."""
    if value is None:
        return "N/A"
    value = float(value)
    formatted = f"{value:.{decimals}f}%"
    if with_color:
        color = "green" if value >= 99 else "yellow" if value >= 95 else "red"
        return f"[{color}]{formatted}[/{color}]"
    return formatted


def format_ms(ms):
    """Format a millisecond duration: 950 → '950ms', 125000 → '2m 5s'."""
    if ms is None:
        return "N/A"
    ms = float(ms)
    if ms < 1000:
        return f"{ms:.0f}ms"
    seconds = int(ms // 1000)
    if seconds < 60:
        return f"{ms / 1000:.1f}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    if seconds < 86400:
        return f"{seconds // 3600}h {(seconds % 3600) // 60}m"
    return f"{seconds // 86400}d {(seconds % 86400) // 3600}h"


def format_timestamp(ts):
    """Format a datetime (or ISO string) to human-readable string."""
    if ts is None:
        return "N/A"
    if isinstance(ts, str):
        try:
            ts = parse_timestamp(ts)
        except ValueError:
            return ts
    return ts.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")


def time_ago(dt, now=None):
    """Return human-readable time since dt. E.g., '3h ago', '2d ago'."""
    if dt is None:
        return "N/A"
    now = now or datetime.now(timezone.utc)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    delta = now - dt
    seconds = int(delta.total_seconds())

    if seconds < 60:
        return f"{seconds}s ago"
    elif seconds < 3600:
        return f"{seconds // 60}m ago"
    elif seconds < 86400:
        return f"{seconds // 3600}h ago"
    else:
        return f"{seconds // 86400}d ago"
