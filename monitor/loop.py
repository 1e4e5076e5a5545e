"""MonitoringLoop - tick sequencing for sampling, alerting, history and reports."""
import json
import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta

from models.enums import LoopState
from monitor.trends import uptime_pct
from utils.timeutil import epoch_ms, to_iso, utc_now

logger = logging.getLogger("chainwatch.loop")


class StartupError(Exception):
    """The loop cannot start, e.g. required directories cannot be created."""


@dataclass
class TickResult:
    record: object
    alerts: list = field(default_factory=list)
    report: object = None


class MonitoringLoop:
    """idle → running → stopped.

    Each tick runs sample → evaluate/dispatch → history append → persist →
    (every ``report_every`` ticks) report. A failing tick is logged and the
    loop stays running; only ``stop()`` leaves the running state.
    """

    def __init__(self, settings, sampler, engine, history, report_builder, clock=None):
        self.settings = settings
        self.sampler = sampler
        self.engine = engine
        self.history = history
        self.report_builder = report_builder
        self.clock = clock or utc_now
        self.state = LoopState.IDLE
        self.tick_count = 0
        self.started_at = None

    @property
    def retention(self):
        return timedelta(days=self.settings.retention_days)

    @property
    def is_running(self):
        return self.state == LoopState.RUNNING

    def start(self):
        if self.state != LoopState.IDLE:
            raise RuntimeError(f"Cannot start a loop that is {self.state.value}")
        for d in (self.settings.data_dir, self.settings.alerts_dir, self.settings.reports_dir):
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise StartupError(f"Cannot create directory {d}: {e}") from e

        self.history.load(retention=self.retention)
        self.started_at = self.clock()
        self.state = LoopState.RUNNING
        logger.info(
            f"Monitoring started (network={self.settings.network}, "
            f"interval={self.settings.interval_seconds}s, probes={len(self.sampler.probes)})"
        )

    def tick(self):
        """Run one monitoring cycle. Returns a TickResult, or None if the tick failed."""
        if not self.is_running:
            logger.debug(f"Tick skipped, loop is {self.state.value}")
            return None

        self.tick_count += 1
        try:
            record = self.sampler.sample()
            alerts = self.engine.evaluate(record)
            self.history.append(record)
        except Exception as e:
            logger.error(f"Monitoring tick {self.tick_count} failed: {e}", exc_info=True)
            return None

        logger.info(
            f"{record.status.value.upper()} | Latency: {record.latency_ms:.0f}ms | "
            f"Error Rate: {record.error_rate_pct:.1f}% | "
            f"Ops: {sum(record.operations.values())}/{len(record.operations)}"
        )
        result = TickResult(record=record, alerts=alerts)

        if self.settings.prune_every and self.tick_count % self.settings.prune_every == 0:
            self.history.prune(self.retention)

        try:
            self.persist(rules_changed=bool(alerts))
        except OSError as e:
            logger.error(f"Persisting monitoring data failed, retrying next tick: {e}")

        if self.tick_count % self.settings.report_every == 0:
            result.report = self.generate_report()
        return result

    def snapshot(self):
        now = self.clock()
        latest = self.history.latest()
        started = self.started_at or now
        return {
            "timestamp": to_iso(now),
            "status": latest.status.value if latest else "unknown",
            "uptime": uptime_pct(self.history.all()),
            "totalChecks": len(self.history),
            "monitoringDurationMs": epoch_ms(now) - epoch_ms(started),
        }

    def persist(self, rules_changed=False):
        """Save history, the current-status snapshot and, if asked, the rule set."""
        self.history.save()
        path = self.settings.status_path
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".json.tmp")
        with open(tmp_path, "w") as f:
            json.dump(self.snapshot(), f, indent=2)
        os.replace(tmp_path, path)
        if rules_changed:
            self.engine.rule_store.save()

    def generate_report(self):
        try:
            report = self.report_builder.build(period_start=self.started_at)
            self.report_builder.save(report)
        except Exception as e:
            logger.error(f"Report generation failed: {e}")
            return None
        s = report.summary
        logger.info(
            f"Report: uptime {s.uptime_pct:.1f}% | avg latency {s.avg_latency:.1f}ms | "
            f"avg error rate {s.avg_error_rate:.1f}% | {s.total_checks} checks"
        )
        for rec in report.recommendations:
            logger.warning(f"Recommendation: {rec}")
        return report

    def stop(self):
        """Enter the terminal state, flushing a final snapshot and report best-effort."""
        if self.state == LoopState.STOPPED:
            return
        was_running = self.is_running
        self.state = LoopState.STOPPED
        if not was_running:
            return
        logger.info("Stopping monitoring...")
        try:
            self.persist(rules_changed=True)
        except OSError as e:
            logger.error(f"Final snapshot failed: {e}")
        if len(self.history):
            self.generate_report()
        logger.info("Monitoring stopped gracefully")
