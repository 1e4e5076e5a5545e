"""Utility modules for chainwatch."""
from utils.logger import setup_logging
from utils.formatters import format_pct, format_ms, format_timestamp, time_ago
