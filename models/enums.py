"""Enums for rule categories, severity, channels, health status and trends."""
from enum import Enum


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RuleCategory(str, Enum):
    HEALTH = "health"
    PERFORMANCE = "performance"
    ERROR_LOG = "error-log"
    SECURITY = "security"
    DEPLOYMENT = "deployment"


class Operator(str, Enum):
    GT = "gt"
    LT = "lt"
    EQ = "eq"
    NE = "ne"
    CONTAINS = "contains"


class ChannelKind(str, Enum):
    CONSOLE = "console"
    FILE = "file"
    WEBHOOK = "webhook"
    EMAIL = "email"
    SLACK = "slack"


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DEGRADING = "degrading"


class LoopState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"
