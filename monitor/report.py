"""Monitoring report synthesis and persistence."""
import json
import logging
from datetime import timedelta
from pathlib import Path

from models.enums import Trend
from models.health import MonitoringReport, ReportSummary
from monitor.trends import TrendAnalyzer, uptime_pct
from utils.timeutil import epoch_ms, utc_now

logger = logging.getLogger("chainwatch.report")

RECENT_ALERT_WINDOW = timedelta(hours=24)


def summarize(records) -> ReportSummary:
    if not records:
        return ReportSummary()
    n = len(records)
    return ReportSummary(
        uptime_pct=uptime_pct(records),
        avg_latency=sum(r.latency_ms for r in records) / n,
        avg_error_rate=sum(r.error_rate_pct for r in records) / n,
        total_checks=n,
        failed_checks=sum(1 for r in records if not r.is_healthy),
    )


def recommendations(summary, trends):
    recs = []
    if summary.total_checks and summary.uptime_pct < 95:
        recs.append("Uptime is below 95% - investigate frequent failures")
    if summary.avg_latency > 5000:
        recs.append("Average latency is high - consider optimizing operations or checking network")
    if summary.avg_error_rate > 10:
        recs.append("Error rate is high - review recent changes and system health")
    if trends.latency_trend == Trend.DEGRADING:
        recs.append("Latency is trending upward - investigate performance bottlenecks")
    if trends.error_trend == Trend.DEGRADING:
        recs.append("Error rate is increasing - check system stability and recent deployments")
    return recs


class ReportBuilder:
    """Derives a MonitoringReport from the history and alert log; never stores state."""

    def __init__(self, history, alert_log, analyzer=None, reports_dir=None, clock=None):
        self.history = history
        self.alert_log = alert_log
        self.analyzer = analyzer or TrendAnalyzer()
        self.reports_dir = Path(reports_dir) if reports_dir else None
        self.clock = clock or utc_now

    def build(self, period_start=None) -> MonitoringReport:
        now = self.clock()
        records = self.history.all()
        if period_start is None:
            period_start = records[0].timestamp if records else now
        summary = summarize(records)
        trends = self.analyzer.analyze(records)
        recent = tuple(self.alert_log.recent(now - RECENT_ALERT_WINDOW)) if self.alert_log else ()
        return MonitoringReport(
            period_start=period_start,
            period_end=now,
            summary=summary,
            trends=trends,
            recent_alerts=recent,
            recommendations=tuple(recommendations(summary, trends)),
        )

    def save(self, report):
        """Write ``report-<epoch_ms>.json`` under the reports dir. Raises OSError on failure."""
        if self.reports_dir is None:
            return None
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        path = self.reports_dir / f"report-{epoch_ms(report.period_end)}.json"
        with open(path, "w") as f:
            json.dump(report.to_dict(), f, indent=2, default=str)
        logger.info(f"Report saved to {path}")
        return path


def render_report(report, console):
    """Print a report with rich formatting."""
    from rich.table import Table

    s = report.summary
    t = report.trends
    table = Table(title="Monitoring Report", show_header=False)
    table.add_column("Metric", style="dim")
    table.add_column("Value")
    table.add_row("Period", f"{report.period_start:%Y-%m-%d %H:%M} → {report.period_end:%Y-%m-%d %H:%M} UTC")
    table.add_row("Uptime", f"{s.uptime_pct:.1f}%")
    table.add_row("Avg Latency", f"{s.avg_latency:.1f}ms")
    table.add_row("Avg Error Rate", f"{s.avg_error_rate:.1f}%")
    table.add_row("Checks", f"{s.total_checks} ({s.failed_checks} failed)")
    table.add_row("Latency Trend", t.latency_trend.value)
    table.add_row("Error Trend", t.error_trend.value)
    table.add_row("Uptime Trend", t.uptime_trend.value)
    table.add_row("Alerts (24h)", str(len(report.recent_alerts)))
    console.print(table)

    if report.recommendations:
        console.print("\n[yellow]Recommendations:[/yellow]")
        for rec in report.recommendations:
            console.print(f"[yellow]  - {rec}[/yellow]")
