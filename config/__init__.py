"""Configuration management."""
import os
import yaml
from pathlib import Path

_DEFAULT_CONFIG = Path(__file__).parent / "default_config.yaml"


def load_config(path=None):
    """Load config from YAML, merging defaults with optional overrides.

    Returns a fresh dict on every call; callers pass it (or the settings built
    from it) into the components that need it.
    """
    with open(_DEFAULT_CONFIG) as f:
        config = yaml.safe_load(f)

    if path and Path(path).exists():
        with open(path) as f:
            overrides = yaml.safe_load(f) or {}
        config = _deep_merge(config, overrides)

    # Environment variable overrides
    env_map = {
        "CHAINWATCH_DATA_DIR": ("paths", "data_dir"),
        "CHAINWATCH_INTERVAL": ("monitor", "interval_seconds"),
        "CHAINWATCH_LOG_LEVEL": ("logging", "level"),
        "CHAINWATCH_NETWORK": ("monitor", "network"),
        "CHAINWATCH_PROGRAM_ID": ("monitor", "program_id"),
        "CHAINWATCH_RPC_URL": ("monitor", "rpc_url"),
    }
    for env_key, config_path in env_map.items():
        val = os.environ.get(env_key)
        if val:
            d = config
            for k in config_path[:-1]:
                d = d.setdefault(k, {})
            try:
                d[config_path[-1]] = int(val)
            except ValueError:
                d[config_path[-1]] = val

    _validate_config(config)
    return config


def _deep_merge(base, override):
    """Recursively merge override into base dict."""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = _deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _validate_config(config):
    """Basic config validation."""
    required_sections = ["monitor", "probes", "alerts", "trends", "paths"]
    for section in required_sections:
        if section not in config:
            raise ValueError(f"Missing required config section: {section}")

    if config["monitor"]["interval_seconds"] < 1:
        raise ValueError("interval_seconds must be >= 1")
    if config["monitor"]["report_every"] < 1:
        raise ValueError("report_every must be >= 1")
    if not config["probes"]:
        raise ValueError("At least one probe must be configured")
    for probe in config["probes"]:
        if not probe.get("name") or not probe.get("command"):
            raise ValueError(f"Probe needs a name and a command: {probe}")
