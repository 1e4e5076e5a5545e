"""Tests for config loading and typed settings."""
import pytest
from pathlib import Path
from unittest.mock import patch

from config import load_config, _deep_merge
from config.settings import MonitorSettings


def test_defaults_load():
    config = load_config()
    assert config["monitor"]["interval_seconds"] == 60
    assert [p["name"] for p in config["probes"]] == [
        "programAccess", "agentRegistration", "marketplaceListing", "escrowCreation",
    ]


def test_override_file_merges(tmp_path):
    override = tmp_path / "local.yaml"
    override.write_text("monitor:\n  interval_seconds: 15\npaths:\n  data_dir: /tmp/cw\n")
    config = load_config(str(override))
    assert config["monitor"]["interval_seconds"] == 15
    assert config["monitor"]["network"] == "testnet"
    assert config["paths"]["data_dir"] == "/tmp/cw"


def test_env_overrides():
    with patch.dict("os.environ", {"CHAINWATCH_INTERVAL": "30", "CHAINWATCH_NETWORK": "devnet"}):
        config = load_config()
    assert config["monitor"]["interval_seconds"] == 30
    assert config["monitor"]["network"] == "devnet"


def test_each_call_returns_fresh_dict():
    a = load_config()
    a["monitor"]["interval_seconds"] = 999
    assert load_config()["monitor"]["interval_seconds"] == 60


def test_invalid_interval_rejected(tmp_path):
    override = tmp_path / "bad.yaml"
    override.write_text("monitor:\n  interval_seconds: 0\n")
    with pytest.raises(ValueError, match="interval_seconds"):
        load_config(str(override))


def test_empty_probe_battery_rejected(tmp_path):
    override = tmp_path / "bad.yaml"
    override.write_text("probes: []\n")
    with pytest.raises(ValueError, match="probe"):
        load_config(str(override))


def test_deep_merge_does_not_mutate():
    base = {"a": {"b": 1, "c": 2}}
    merged = _deep_merge(base, {"a": {"b": 5}})
    assert merged == {"a": {"b": 5, "c": 2}}
    assert base == {"a": {"b": 1, "c": 2}}


def test_settings_from_config():
    settings = MonitorSettings.from_config(load_config())
    assert settings.data_dir == Path("monitoring-data")
    assert settings.alerts_dir == Path("monitoring-data/alerts")
    assert settings.status_path.name == "current-status.json"
    assert settings.trends.window == 50
    assert len(settings.probes) == 4
    assert settings.alerts.log_tail_lines == 100
