"""Shared test fixtures."""
import os
import sys
import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime, timedelta, timezone

from config.settings import AlertSettings, MonitorSettings, ProbeSpec
from models.health import HealthCheckRecord

T0 = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeProbe:
    def __init__(self, name, ok=True):
        self.name = name
        self.ok = ok
        self.calls = 0

    def run(self):
        self.calls += 1
        if not self.ok:
            raise RuntimeError(f"{self.name} exploded")


def make_record(timestamp=T0, latency_ms=1000.0, operations=None):
    """Health record from operation outcomes (all passing by default)."""
    if operations is None:
        operations = {"programAccess": True, "marketplaceListing": True}
    return HealthCheckRecord.from_outcomes(operations, latency_ms, timestamp)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary directory."""
    return MonitorSettings(
        network="testnet",
        program_id="Prog1111",
        rpc_url="https://rpc.test",
        interval_seconds=1,
        report_every=100,
        prune_every=60,
        data_dir=tmp_path / "monitoring-data",
        probes=(ProbeSpec("programAccess", "true"),),
        alerts=AlertSettings(
            config_path=tmp_path / "alerts.json",
            error_log_path=tmp_path / "logs" / "error.log",
            security_log_path=tmp_path / "logs" / "security-audit.log",
            deployment_status_path=tmp_path / "logs" / "deployment-status.json",
            max_workers=1,
        ),
    )
