"""Data models."""
from models.enums import Severity, RuleCategory, Operator, ChannelKind, HealthStatus, Trend, LoopState
from models.alerts import AlertRule, AlertChannel, Alert, MetricCondition, PatternCondition, ConfigurationError
from models.health import HealthCheckRecord, TrendSummary, ReportSummary, MonitoringReport
