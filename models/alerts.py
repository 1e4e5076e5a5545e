"""Dataclasses for alert rules, conditions, channels and fired alerts."""
import re
import uuid
from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timedelta
from typing import Any, Optional, Union

from models.enums import ChannelKind, Operator, RuleCategory, Severity
from utils.timeutil import epoch_ms, parse_timestamp, to_iso, utc_now


class ConfigurationError(ValueError):
    """A rule, condition or channel definition is malformed."""


def _coerce_enum(enum_cls, value, what):
    try:
        return enum_cls(value)
    except ValueError:
        raise ConfigurationError(f"Unknown {what}: {value!r}") from None


# ── Conditions ─────────────────────────────────────────

@dataclass(frozen=True)
class MetricCondition:
    metric: str
    operator: Operator
    value: Any = None

    def __post_init__(self):
        if not self.metric:
            raise ConfigurationError("Metric condition needs a metric name")
        object.__setattr__(self, "operator", _coerce_enum(Operator, self.operator, "operator"))

    def to_dict(self):
        key = "threshold" if self.operator in (Operator.GT, Operator.LT) else "value"
        return {"metric": self.metric, "operator": self.operator.value, key: self.value}


@dataclass(frozen=True)
class PatternCondition:
    """Case-insensitive regex matched against log lines. Compiled once."""
    pattern: str
    regex: re.Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.pattern:
            raise ConfigurationError("Pattern condition needs a pattern")
        try:
            object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))
        except re.error as e:
            raise ConfigurationError(f"Invalid pattern {self.pattern!r}: {e}") from e

    def to_dict(self):
        return {"pattern": self.pattern}


Condition = Union[MetricCondition, PatternCondition]


def condition_from_dict(d) -> Condition:
    if not isinstance(d, dict):
        raise ConfigurationError(f"Condition must be an object, got {type(d).__name__}")
    has_pattern = d.get("pattern") is not None
    has_metric = d.get("metric") is not None
    if has_pattern == has_metric:
        raise ConfigurationError("Condition must define exactly one of 'metric' or 'pattern'")
    if has_pattern:
        return PatternCondition(d["pattern"])
    if d.get("operator") is None:
        raise ConfigurationError(f"Condition on {d['metric']!r} has no operator")
    value = d["threshold"] if d.get("threshold") is not None else d.get("value")
    return MetricCondition(d["metric"], d["operator"], value)


# ── Channel configuration variants ─────────────────────

@dataclass(frozen=True)
class ConsoleConfig:
    pass


@dataclass(frozen=True)
class FileConfig:
    filename: str = "alerts.log"

    def __post_init__(self):
        name = self.filename
        if not isinstance(name, str) or not name or "/" in name or "\\" in name:
            raise ConfigurationError(f"File channel needs a plain filename, got {self.filename!r}")


@dataclass(frozen=True)
class WebhookConfig:
    url: str = ""
    timeout: float = 5.0

    def __post_init__(self):
        if not isinstance(self.url, str) or not self.url.startswith(("http://", "https://")):
            raise ConfigurationError(f"Webhook channel needs an http(s) url, got {self.url!r}")


@dataclass(frozen=True)
class EmailConfig:
    to: str = ""
    timeout: float = 10.0

    def __post_init__(self):
        if not isinstance(self.to, str) or "@" not in self.to:
            raise ConfigurationError(f"Email channel needs a recipient address, got {self.to!r}")


@dataclass(frozen=True)
class SlackConfig:
    webhook_url: str = ""
    channel: str = ""
    timeout: float = 5.0

    def __post_init__(self):
        if not isinstance(self.webhook_url, str) or not self.webhook_url.startswith("https://"):
            raise ConfigurationError("Slack channel needs an https webhook_url")


CHANNEL_CONFIG_TYPES = {
    ChannelKind.CONSOLE: ConsoleConfig,
    ChannelKind.FILE: FileConfig,
    ChannelKind.WEBHOOK: WebhookConfig,
    ChannelKind.EMAIL: EmailConfig,
    ChannelKind.SLACK: SlackConfig,
}


@dataclass(frozen=True)
class AlertChannel:
    kind: ChannelKind
    config: Any = field(default_factory=ConsoleConfig)
    enabled: bool = True

    def __post_init__(self):
        kind = _coerce_enum(ChannelKind, self.kind, "channel type")
        object.__setattr__(self, "kind", kind)
        expected = CHANNEL_CONFIG_TYPES[kind]
        if not isinstance(self.config, expected):
            raise ConfigurationError(
                f"{kind.value} channel expects {expected.__name__}, got {type(self.config).__name__}"
            )

    def to_dict(self):
        return {"type": self.kind.value, "config": asdict(self.config), "enabled": self.enabled}

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ConfigurationError("Channel must be an object")
        kind = _coerce_enum(ChannelKind, d.get("type", d.get("kind")), "channel type")
        config_cls = CHANNEL_CONFIG_TYPES[kind]
        raw = d.get("config") or {}
        allowed = {f.name for f in fields(config_cls)}
        unknown = set(raw) - allowed
        if unknown:
            raise ConfigurationError(f"Unknown {kind.value} channel keys: {sorted(unknown)}")
        return cls(kind=kind, config=config_cls(**raw), enabled=bool(d.get("enabled", True)))


# ── Rules and alerts ───────────────────────────────────

@dataclass
class AlertRule:
    id: str
    name: str
    category: RuleCategory
    condition: Condition
    severity: Severity = Severity.MEDIUM
    enabled: bool = True
    channels: list = field(default_factory=list)
    cooldown_seconds: float = 0
    last_triggered: Optional[datetime] = None

    def __post_init__(self):
        if not self.id:
            raise ConfigurationError("Rule needs an id")
        self.category = _coerce_enum(RuleCategory, self.category, "rule category")
        self.severity = _coerce_enum(Severity, self.severity, "severity")
        if self.cooldown_seconds < 0:
            raise ConfigurationError(f"Rule {self.id} has a negative cooldown")

    @property
    def cooldown(self) -> timedelta:
        return timedelta(seconds=self.cooldown_seconds)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category.value,
            "condition": self.condition.to_dict(),
            "severity": self.severity.value,
            "enabled": self.enabled,
            "channels": [c.to_dict() for c in self.channels],
            "cooldownSeconds": self.cooldown_seconds,
            "lastTriggered": to_iso(self.last_triggered),
        }

    @classmethod
    def from_dict(cls, d):
        if not isinstance(d, dict):
            raise ConfigurationError("Rule must be an object")
        if "cooldownSeconds" in d:
            cooldown = d["cooldownSeconds"]
        else:
            # older configs store the cooldown in minutes
            cooldown = d.get("cooldown", 0) * 60
        try:
            last = parse_timestamp(d.get("lastTriggered"))
        except ValueError as e:
            raise ConfigurationError(f"Rule {d.get('id')} has a bad lastTriggered: {e}") from e
        return cls(
            id=d.get("id", ""),
            name=d.get("name", d.get("id", "")),
            category=d.get("category", d.get("type")),
            condition=condition_from_dict(d.get("condition")),
            severity=d.get("severity", Severity.MEDIUM.value),
            enabled=bool(d.get("enabled", True)),
            channels=[AlertChannel.from_dict(c) for c in d.get("channels", [])],
            cooldown_seconds=cooldown,
            last_triggered=last,
        )


@dataclass
class Alert:
    """A fired alert. Only resolved/resolved_at change after creation."""
    id: str
    rule_id: str
    title: str
    message: str
    severity: Severity
    timestamp: datetime
    metadata: dict = field(default_factory=dict)
    resolved: bool = False
    resolved_at: Optional[datetime] = None

    @classmethod
    def create(cls, rule, title, message, metadata=None, now=None):
        now = now or utc_now()
        return cls(
            id=f"alert-{epoch_ms(now)}-{uuid.uuid4().hex[:9]}",
            rule_id=rule.id,
            title=title,
            message=message,
            severity=Severity(rule.severity),
            timestamp=now,
            metadata=dict(metadata or {}),
        )

    def resolve(self, when=None) -> bool:
        if self.resolved:
            return False
        self.resolved = True
        self.resolved_at = when or utc_now()
        return True

    def to_dict(self):
        return {
            "id": self.id,
            "ruleId": self.rule_id,
            "title": self.title,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": to_iso(self.timestamp),
            "metadata": self.metadata,
            "resolved": self.resolved,
            "resolvedAt": to_iso(self.resolved_at),
        }

    @classmethod
    def from_dict(cls, d):
        return cls(
            id=d["id"],
            rule_id=d.get("ruleId", ""),
            title=d.get("title", ""),
            message=d.get("message", ""),
            severity=Severity(d.get("severity", Severity.MEDIUM.value)),
            timestamp=parse_timestamp(d.get("timestamp")),
            metadata=d.get("metadata") or {},
            resolved=bool(d.get("resolved", False)),
            resolved_at=parse_timestamp(d.get("resolvedAt")),
        )
