"""Trend detection over the health history."""
import logging
from statistics import fmean

from config.settings import TrendSettings
from models.enums import Trend
from models.health import TrendSummary

logger = logging.getLogger("chainwatch.trends")


def uptime_pct(records):
    if not records:
        return 100.0
    return sum(1 for r in records if r.is_healthy) / len(records) * 100


def _classify(recent, older, lower, upper, higher_is_better):
    """Multiplicative band comparison of two window means."""
    if recent == older:
        return Trend.STABLE
    if recent <= older * lower:
        return Trend.DEGRADING if higher_is_better else Trend.IMPROVING
    if recent >= older * upper:
        return Trend.IMPROVING if higher_is_better else Trend.DEGRADING
    return Trend.STABLE


class TrendAnalyzer:
    """Compares the most recent window of records against the window before it."""

    def __init__(self, settings=None):
        self.settings = settings or TrendSettings()

    def split(self, history):
        m = self.settings.window
        records = list(history)
        recent = records[-m:]
        older = records[-2 * m:-m] if len(records) > m else []
        return recent, older

    def analyze(self, history) -> TrendSummary:
        s = self.settings
        recent, older = self.split(history)
        if len(recent) < s.min_samples or len(older) < s.min_samples:
            return TrendSummary()

        latency = _classify(
            fmean(r.latency_ms for r in recent), fmean(r.latency_ms for r in older),
            s.improving_ratio, s.degrading_ratio, higher_is_better=False,
        )
        errors = _classify(
            fmean(r.error_rate_pct for r in recent), fmean(r.error_rate_pct for r in older),
            s.improving_ratio, s.degrading_ratio, higher_is_better=False,
        )
        uptime = _classify(
            uptime_pct(recent), uptime_pct(older),
            1 - s.uptime_band, 1 + s.uptime_band, higher_is_better=True,
        )
        summary = TrendSummary(latency_trend=latency, error_trend=errors, uptime_trend=uptime)
        logger.debug(f"Trends: {summary.to_dict()}")
        return summary
