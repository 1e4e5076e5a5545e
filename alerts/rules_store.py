"""Alert rules loading, persistence and lookup."""
import json
import logging
import os
import threading
from pathlib import Path

from models.alerts import (
    AlertChannel, AlertRule, ConfigurationError, ConsoleConfig, FileConfig,
    MetricCondition, PatternCondition,
)
from models.enums import ChannelKind, Operator, RuleCategory, Severity
from utils.timeutil import to_iso, utc_now

logger = logging.getLogger("chainwatch.alerts.rules")


def _console():
    return AlertChannel(ChannelKind.CONSOLE, ConsoleConfig())


def _file(filename):
    return AlertChannel(ChannelKind.FILE, FileConfig(filename))


def default_rules():
    """Built-in rule set used when no usable config exists."""
    return [
        AlertRule(
            id="health-critical", name="Critical Service Down",
            category=RuleCategory.HEALTH,
            condition=MetricCondition("status", Operator.EQ, "down"),
            severity=Severity.CRITICAL,
            channels=[_console(), _file("critical-alerts.log")],
            cooldown_seconds=5 * 60,
        ),
        AlertRule(
            id="health-degraded", name="Service Degraded",
            category=RuleCategory.HEALTH,
            condition=MetricCondition("status", Operator.EQ, "degraded"),
            severity=Severity.HIGH,
            channels=[_console(), _file("alerts.log")],
            cooldown_seconds=15 * 60,
        ),
        AlertRule(
            id="response-time-high", name="High Response Time",
            category=RuleCategory.PERFORMANCE,
            condition=MetricCondition("responseTime", Operator.GT, 5000),
            severity=Severity.MEDIUM,
            channels=[_console()],
            cooldown_seconds=10 * 60,
        ),
        AlertRule(
            id="memory-high", name="High Memory Usage",
            category=RuleCategory.PERFORMANCE,
            condition=MetricCondition("memoryUsage", Operator.GT, 1000 * 1024 * 1024),
            severity=Severity.MEDIUM,
            channels=[_console()],
            cooldown_seconds=30 * 60,
        ),
        AlertRule(
            id="deployment-failed", name="Deployment Failed",
            category=RuleCategory.DEPLOYMENT,
            condition=MetricCondition("success", Operator.EQ, False),
            severity=Severity.HIGH,
            channels=[_console(), _file("deployment-alerts.log")],
            cooldown_seconds=0,
        ),
        AlertRule(
            id="security-audit-fail", name="Security Audit Failure",
            category=RuleCategory.SECURITY,
            condition=PatternCondition("vulnerabilities found"),
            severity=Severity.HIGH,
            channels=[_console(), _file("security-alerts.log")],
            cooldown_seconds=60 * 60,
        ),
    ]


class RuleStore:
    """Owns the rule set. The only writer of ``AlertRule.last_triggered``."""

    def __init__(self, config_path="config/alerts.json", clock=None):
        self.config_path = Path(config_path)
        self.clock = clock or utc_now
        self.rules = []
        self._lock = threading.Lock()

    def load(self):
        """Load rules from JSON; fall back to (and persist) the defaults on failure."""
        try:
            with open(self.config_path) as f:
                data = json.load(f)
            raw_rules = data["rules"]
            if not isinstance(raw_rules, list):
                raise ValueError("'rules' must be a list")
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load alert config {self.config_path} ({e}), using defaults")
            self.rules = default_rules()
            self.save()
            return self.rules

        self.rules = self._parse_rules(raw_rules)
        logger.info(f"Loaded {len(self.rules)} alert rules from {self.config_path}")
        return self.rules

    def _parse_rules(self, raw_rules):
        rules = []
        seen = set()
        for raw in raw_rules:
            try:
                rule = AlertRule.from_dict(raw)
            except (ConfigurationError, TypeError) as e:
                rule_id = raw.get("id") if isinstance(raw, dict) else None
                logger.warning(f"Skipping malformed rule {rule_id}: {e}")
                continue
            if rule.id in seen:
                logger.warning(f"Skipping duplicate rule id {rule.id}")
                continue
            seen.add(rule.id)
            rules.append(rule)
        return rules

    def save(self, rules=None) -> bool:
        """Write the rule set as ``{rules, lastUpdated}``. Returns False on I/O failure."""
        if rules is not None:
            self.rules = list(rules)
        with self._lock:
            payload = {
                "rules": [r.to_dict() for r in self.rules],
                "lastUpdated": to_iso(self.clock()),
            }
        tmp_path = self.config_path.with_suffix(self.config_path.suffix + ".tmp")
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(payload, f, indent=2)
            os.replace(tmp_path, self.config_path)
        except OSError as e:
            logger.error(f"Failed to save alert configuration {self.config_path}: {e}")
            return False
        logger.debug(f"Saved {len(self.rules)} alert rules")
        return True

    def mark_triggered(self, rule, when):
        with self._lock:
            rule.last_triggered = when

    def rules_by_category(self, category, enabled_only=False):
        category = RuleCategory(category)
        return [
            r for r in self.rules
            if r.category == category and (r.enabled or not enabled_only)
        ]

    def get_enabled_rules(self):
        return [r for r in self.rules if r.enabled]

    def get_rule(self, rule_id):
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def get_all_rules(self):
        return self.rules
