"""Typed settings built from the loaded config dict."""
from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class TrendSettings:
    window: int = 50
    min_samples: int = 10
    improving_ratio: float = 0.9
    degrading_ratio: float = 1.1
    uptime_band: float = 0.01

    def __post_init__(self):
        if self.window < 1 or self.min_samples < 1:
            raise ValueError("trend window and min_samples must be positive")
        if not self.improving_ratio < 1 < self.degrading_ratio:
            raise ValueError("trend ratios must bracket 1.0")


@dataclass(frozen=True)
class ProbeSpec:
    name: str
    command: str
    timeout: float = 10.0


@dataclass(frozen=True)
class AlertSettings:
    config_path: Path = Path("config/alerts.json")
    log_tail_lines: int = 100
    error_log_path: Path = Path("logs/error.log")
    security_log_path: Path = Path("logs/security-audit.log")
    deployment_status_path: Path = Path("logs/deployment-status.json")
    log_freshness_seconds: float = 300
    max_workers: int = 5


@dataclass(frozen=True)
class MonitorSettings:
    network: str = "testnet"
    program_id: str = ""
    rpc_url: str = ""
    interval_seconds: float = 60
    report_every: int = 100
    prune_every: int = 60
    retention_days: float = 30
    data_dir: Path = Path("monitoring-data")
    probes: tuple = ()
    alerts: AlertSettings = field(default_factory=AlertSettings)
    trends: TrendSettings = field(default_factory=TrendSettings)

    @property
    def alerts_dir(self):
        return self.data_dir / "alerts"

    @property
    def reports_dir(self):
        return self.data_dir / "reports"

    @property
    def history_path(self):
        return self.data_dir / "health-history.json"

    @property
    def status_path(self):
        return self.data_dir / "current-status.json"

    @property
    def dashboard_path(self):
        return self.data_dir / "dashboard.html"

    @classmethod
    def from_config(cls, config):
        mon = config["monitor"]
        alerts = config.get("alerts", {})
        return cls(
            network=mon.get("network", "testnet"),
            program_id=mon.get("program_id", ""),
            rpc_url=mon.get("rpc_url", ""),
            interval_seconds=mon.get("interval_seconds", 60),
            report_every=mon.get("report_every", 100),
            prune_every=mon.get("prune_every", 60),
            retention_days=mon.get("retention_days", 30),
            data_dir=Path(config["paths"]["data_dir"]),
            probes=tuple(
                ProbeSpec(p["name"], p["command"], p.get("timeout", 10.0))
                for p in config.get("probes", [])
            ),
            alerts=AlertSettings(
                config_path=Path(alerts.get("config_path", "config/alerts.json")),
                log_tail_lines=alerts.get("log_tail_lines", 100),
                error_log_path=Path(alerts.get("error_log_path", "logs/error.log")),
                security_log_path=Path(alerts.get("security_log_path", "logs/security-audit.log")),
                deployment_status_path=Path(
                    alerts.get("deployment_status_path", "logs/deployment-status.json")
                ),
                log_freshness_seconds=alerts.get("log_freshness_seconds", 300),
                max_workers=alerts.get("max_workers", 5),
            ),
            trends=TrendSettings(**config.get("trends", {})),
        )
