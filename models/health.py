"""Dataclasses for sampled health records and monitoring reports."""
from dataclasses import dataclass, field
from datetime import datetime

from models.enums import HealthStatus, Trend
from utils.timeutil import parse_timestamp, to_iso, utc_now

DOWN_ERROR_RATE = 50.0


def derive_status(error_rate_pct) -> HealthStatus:
    """healthy at 0%, down at 50% or more, degraded in between."""
    if error_rate_pct <= 0:
        return HealthStatus.HEALTHY
    if error_rate_pct < DOWN_ERROR_RATE:
        return HealthStatus.DEGRADED
    return HealthStatus.DOWN


@dataclass(frozen=True)
class HealthCheckRecord:
    timestamp: datetime
    status: HealthStatus
    latency_ms: float
    error_rate_pct: float
    operations: dict = field(default_factory=dict)

    @classmethod
    def from_outcomes(cls, operations, latency_ms, timestamp=None):
        total = len(operations)
        failed = sum(1 for ok in operations.values() if not ok)
        error_rate = (failed / total) * 100 if total else 0.0
        return cls(
            timestamp=timestamp or utc_now(),
            status=derive_status(error_rate),
            latency_ms=latency_ms,
            error_rate_pct=error_rate,
            operations=dict(operations),
        )

    @property
    def is_healthy(self):
        return self.status == HealthStatus.HEALTHY

    def to_dict(self):
        return {
            "timestamp": to_iso(self.timestamp),
            "status": self.status.value,
            "latencyMs": self.latency_ms,
            "errorRate": self.error_rate_pct,
            "operations": dict(self.operations),
        }

    @classmethod
    def from_dict(cls, d):
        error_rate = float(d.get("errorRate", 0.0))
        status = d.get("status")
        return cls(
            timestamp=parse_timestamp(d["timestamp"]),
            status=HealthStatus(status) if status else derive_status(error_rate),
            latency_ms=float(d.get("latencyMs", d.get("latency", 0.0))),
            error_rate_pct=error_rate,
            operations=dict(d.get("operations") or {}),
        )


@dataclass(frozen=True)
class TrendSummary:
    latency_trend: Trend = Trend.STABLE
    error_trend: Trend = Trend.STABLE
    uptime_trend: Trend = Trend.STABLE

    def to_dict(self):
        return {
            "latencyTrend": self.latency_trend.value,
            "errorTrend": self.error_trend.value,
            "uptimeTrend": self.uptime_trend.value,
        }


@dataclass(frozen=True)
class ReportSummary:
    uptime_pct: float = 100.0
    avg_latency: float = 0.0
    avg_error_rate: float = 0.0
    total_checks: int = 0
    failed_checks: int = 0

    def to_dict(self):
        return {
            "uptime": self.uptime_pct,
            "averageLatency": self.avg_latency,
            "averageErrorRate": self.avg_error_rate,
            "totalChecks": self.total_checks,
            "failedChecks": self.failed_checks,
        }


@dataclass(frozen=True)
class MonitoringReport:
    period_start: datetime
    period_end: datetime
    summary: ReportSummary
    trends: TrendSummary
    recent_alerts: tuple = ()
    recommendations: tuple = ()

    def to_dict(self):
        return {
            "period": {"start": to_iso(self.period_start), "end": to_iso(self.period_end)},
            "summary": self.summary.to_dict(),
            "trends": self.trends.to_dict(),
            "alerts": [a.to_dict() for a in self.recent_alerts],
            "recommendations": list(self.recommendations),
        }
