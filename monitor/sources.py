"""Metric sources feeding each rule category.

A source either yields a metrics dict (evaluated by metric conditions) or a
list of log lines (evaluated by pattern conditions). ``None`` means there is
nothing to evaluate this tick.
"""
import json
import logging
import resource
import sys
from collections import deque
from pathlib import Path

from models.enums import RuleCategory
from utils.timeutil import utc_now

logger = logging.getLogger("chainwatch.sources")

METRICS = "metrics"
LINES = "lines"


class HealthSource:
    kind = METRICS

    def observe(self, record):
        return {
            "status": record.status.value,
            "responseTime": record.latency_ms,
            "latency": record.latency_ms,
            "errorRate": record.error_rate_pct,
            "failedOperations": [name for name, ok in record.operations.items() if not ok],
        }


def process_memory_bytes():
    """Peak resident set size of this process."""
    rss = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # macOS reports bytes, Linux kilobytes
    return rss if sys.platform == "darwin" else rss * 1024


class PerformanceSource:
    kind = METRICS

    def __init__(self, memory_probe=process_memory_bytes):
        self.memory_probe = memory_probe

    def observe(self, record):
        return {
            "responseTime": record.latency_ms,
            "memoryUsage": self.memory_probe(),
        }


class LogTailSource:
    """Last N lines of a log file, only if it was written recently."""
    kind = LINES

    def __init__(self, path, tail_lines=100, freshness_seconds=300, clock=None):
        self.path = Path(path)
        self.tail_lines = tail_lines
        self.freshness_seconds = freshness_seconds
        self.clock = clock or utc_now

    def observe(self, record=None):
        try:
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        if self.freshness_seconds and self.clock().timestamp() - mtime > self.freshness_seconds:
            return None
        with open(self.path, errors="replace") as f:
            return [line.rstrip("\n") for line in deque(f, maxlen=self.tail_lines)]


class DeploymentStatusSource:
    """Fields of the last deployment's JSON status file, e.g. ``{"success": false}``."""
    kind = METRICS

    def __init__(self, path):
        self.path = Path(path)

    def observe(self, record=None):
        if not self.path.exists():
            return None
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable deployment status {self.path}: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Deployment status {self.path} is not an object")
            return None
        return data


def build_sources(settings, clock=None):
    alerts = settings.alerts
    return {
        RuleCategory.HEALTH: HealthSource(),
        RuleCategory.PERFORMANCE: PerformanceSource(),
        RuleCategory.ERROR_LOG: LogTailSource(
            alerts.error_log_path, alerts.log_tail_lines, alerts.log_freshness_seconds, clock,
        ),
        RuleCategory.SECURITY: LogTailSource(
            alerts.security_log_path, alerts.log_tail_lines, alerts.log_freshness_seconds, clock,
        ),
        RuleCategory.DEPLOYMENT: DeploymentStatusSource(alerts.deployment_status_path),
    }
