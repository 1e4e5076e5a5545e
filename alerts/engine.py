"""Alert evaluation engine."""
import logging
from concurrent.futures import ThreadPoolExecutor

from alerts import conditions
from alerts.alert_log import AlertLog
from alerts.cooldown import CooldownTracker
from models.alerts import Alert, MetricCondition, PatternCondition
from models.enums import RuleCategory, Severity
from monitor.sources import LINES, METRICS
from utils.timeutil import utc_now

logger = logging.getLogger("chainwatch.alerts.engine")

TITLE_PREFIX = {
    RuleCategory.HEALTH: "Health Alert",
    RuleCategory.PERFORMANCE: "Performance Alert",
    RuleCategory.ERROR_LOG: "Error Pattern Alert",
    RuleCategory.SECURITY: "Security Alert",
    RuleCategory.DEPLOYMENT: "Deployment Alert",
}


class AlertEngine:
    def __init__(self, rule_store, dispatcher, sources, alert_log=None, cooldowns=None,
                 clock=None, tail_lines=conditions.LOG_TAIL_LINES, max_workers=5):
        self.rule_store = rule_store
        self.dispatcher = dispatcher
        self.sources = sources
        self.clock = clock or utc_now
        self.alert_log = alert_log or AlertLog(clock=self.clock)
        self.cooldowns = cooldowns or CooldownTracker(self.clock)
        self.tail_lines = tail_lines
        self.max_workers = max_workers

    def evaluate(self, record):
        """Evaluate every enabled rule against the fresh record, firing as needed.

        Categories read disjoint sources and are fanned out concurrently; a
        failing category is logged and does not affect the others.
        """
        categories = [c for c in RuleCategory if self.rule_store.rules_by_category(c, enabled_only=True)]
        if not categories:
            return []

        if self.max_workers <= 1 or len(categories) == 1:
            results = [self._safe_evaluate_category(c, record) for c in categories]
        else:
            workers = min(self.max_workers, len(categories))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="alert-eval") as pool:
                futures = [pool.submit(self._safe_evaluate_category, c, record) for c in categories]
                results = [f.result() for f in futures]

        fired = [alert for group in results for alert in group]
        if fired:
            logger.info(f"{len(fired)} alert(s) fired this tick")
        return fired

    def _safe_evaluate_category(self, category, record):
        try:
            return self.evaluate_category(category, record)
        except Exception as e:
            logger.error(f"Alert evaluation for {category.value} failed: {e}", exc_info=True)
            return []

    def evaluate_category(self, category, record):
        rules = self.rule_store.rules_by_category(category, enabled_only=True)
        source = self.sources.get(category)
        if not rules:
            return []
        if source is None:
            logger.debug(f"No metric source for {category.value}, {len(rules)} rule(s) idle")
            return []

        observed = source.observe(record)
        if observed is None:
            return []

        fired = []
        for rule in rules:
            if not self.cooldowns.may_fire(rule):
                continue
            alert = self._evaluate_rule(rule, source.kind, observed, record)
            if alert is not None:
                fired.append(alert)
        return fired

    def _matches(self, rule, kind, observed):
        """Returns (hit, value) or None when the rule cannot be evaluated here."""
        cond = rule.condition
        if kind == METRICS and isinstance(cond, MetricCondition):
            if cond.metric not in observed:
                logger.debug(f"Rule {rule.id}: metric {cond.metric!r} not reported by {rule.category.value}")
                return None
            value = observed[cond.metric]
            return conditions.evaluate(cond, value), value
        if kind == LINES and isinstance(cond, PatternCondition):
            return conditions.evaluate(cond, observed, self.tail_lines), None

        logger.warning(
            f"Rule {rule.id}: {type(cond).__name__} cannot be evaluated against "
            f"the {rule.category.value} source, skipped"
        )
        return None

    def _evaluate_rule(self, rule, kind, observed, record):
        result = self._matches(rule, kind, observed)
        if result is None or not result[0]:
            return None
        title, message, metadata = self._describe(rule, observed, result[1], record)
        return self._fire(rule, title, message, metadata)

    def _describe(self, rule, observed, value, record):
        title = f"{TITLE_PREFIX[rule.category]}: {rule.name}"
        cond = rule.condition

        if isinstance(cond, PatternCondition):
            meta = conditions.pattern_metadata(cond, observed, self.tail_lines)
            return title, f"Found {meta['matchCount']} line(s) matching '{cond.pattern}' in logs", meta

        if rule.category == RuleCategory.HEALTH:
            failed = observed.get("failedOperations", [])
            total = len(record.operations) if record is not None else 0
            message = f"Service is {observed['status']}. {len(failed)}/{total} operations failed"
            if failed:
                message += f": {', '.join(failed)}"
            meta = {
                "status": observed["status"],
                "latencyMs": observed["latency"],
                "errorRate": observed["errorRate"],
                "failedOperations": failed,
            }
            return title, message, meta

        meta = {"metric": cond.metric, "value": value, "threshold": cond.value}
        if cond.metric == "memoryUsage" and isinstance(value, (int, float)):
            meta["usageMB"] = round(value / 1024 / 1024)
            message = f"Memory usage is high: {meta['usageMB']}MB"
        else:
            message = f"{cond.metric} = {value} ({cond.operator.value} {cond.value})"
        return title, message, meta

    def _fire(self, rule, title, message, metadata):
        # cooldown check, alert creation and last_triggered update happen under the rule's lock
        with self.cooldowns.claim(rule) as now:
            if now is None:
                return None
            alert = Alert.create(rule, title, message, metadata, now)
            self.rule_store.mark_triggered(rule, now)
            self.alert_log.append(alert)
        logger.info(f"Alert {alert.id} created for rule {rule.id} [{alert.severity.value}]")
        self.dispatcher.dispatch(alert, rule.channels)
        return alert

    def test_rules(self, record):
        """Evaluate ALL rules ignoring cooldowns and without firing."""
        results = []
        for rule in self.rule_store.get_all_rules():
            source = self.sources.get(rule.category)
            observed = source.observe(record) if source is not None else None
            result = self._matches(rule, source.kind, observed) if observed is not None else None
            results.append({
                "rule_id": rule.id,
                "name": rule.name,
                "category": rule.category.value,
                "current_value": result[1] if result else None,
                "would_fire": bool(result and result[0]),
                "in_cooldown": not self.cooldowns.may_fire(rule) if rule.enabled else False,
                "enabled": rule.enabled,
            })
        return results

    def resolve(self, alert_id):
        return self.alert_log.resolve(alert_id)

    def active_alerts(self):
        return self.alert_log.active()

    def status_summary(self):
        rules = self.rule_store.get_all_rules()
        return {
            "active": len(self.alert_log.active()),
            "by_severity": {s.value: n for s, n in self.alert_log.severity_counts().items()},
            "total_rules": len(rules),
            "enabled_rules": sum(1 for r in rules if r.enabled),
        }

    def format_alert_summary(self, alerts):
        """Format alerts for display."""
        if not alerts:
            return "All clear - no alerts triggered."
        icons = {Severity.CRITICAL: "!!!", Severity.HIGH: "!!", Severity.MEDIUM: "!", Severity.LOW: "i"}
        lines = []
        for a in alerts:
            lines.append(f"[{icons.get(a.severity, '?')}] [{a.severity.value.upper()}] {a.title}: {a.message}")
        return "\n".join(lines)
