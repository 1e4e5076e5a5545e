"""Tests for rule loading and persistence."""
import json

from conftest import T0, FakeClock
from alerts.rules_store import RuleStore, default_rules
from models.enums import RuleCategory


def test_missing_file_bootstraps_defaults(tmp_path):
    path = tmp_path / "alerts.json"
    store = RuleStore(path, clock=FakeClock())
    rules = store.load()

    assert [r.id for r in rules] == [r.id for r in default_rules()]
    data = json.loads(path.read_text())
    assert len(data["rules"]) == len(rules)
    assert data["lastUpdated"] == T0.isoformat()


def test_corrupt_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / "alerts.json"
    path.write_text("{not json")
    store = RuleStore(path)
    assert len(store.load()) == len(default_rules())
    assert json.loads(path.read_text())["rules"]


def test_round_trip_preserves_last_triggered(tmp_path):
    path = tmp_path / "alerts.json"
    store = RuleStore(path)
    store.load()
    rule = store.get_rule("health-critical")
    store.mark_triggered(rule, T0)
    assert store.save() is True

    reloaded = RuleStore(path)
    reloaded.load()
    again = reloaded.get_rule("health-critical")
    assert again.last_triggered == T0
    assert again.cooldown_seconds == 300
    assert again.to_dict() == rule.to_dict()


def test_malformed_rule_skipped(tmp_path, caplog):
    path = tmp_path / "alerts.json"
    path.write_text(json.dumps({"rules": [
        {"id": "good", "name": "Good", "category": "health",
         "condition": {"metric": "status", "operator": "eq", "value": "down"},
         "severity": "high", "channels": [{"type": "console", "config": {}}], "cooldownSeconds": 60},
        {"id": "bad-operator", "category": "health",
         "condition": {"metric": "status", "operator": "~=", "value": "down"}},
        {"id": "bad-channel", "category": "health",
         "condition": {"metric": "status", "operator": "eq", "value": "down"},
         "channels": [{"type": "file", "config": {"filename": "a.log", "extra": 1}}]},
        {"id": "good", "category": "health", "condition": {"pattern": "dup"}},
    ]}))
    store = RuleStore(path)
    with caplog.at_level("WARNING", logger="chainwatch"):
        rules = store.load()
    assert [r.id for r in rules] == ["good"]
    assert "bad-operator" in caplog.text
    assert "bad-channel" in caplog.text
    assert "duplicate" in caplog.text


def test_non_string_channel_fields_skipped(tmp_path, caplog):
    def rule(rule_id, channel):
        return {"id": rule_id, "category": "health",
                "condition": {"metric": "status", "operator": "eq", "value": "down"},
                "channels": [channel]}

    path = tmp_path / "alerts.json"
    path.write_text(json.dumps({"rules": [
        rule("good", {"type": "console", "config": {}}),
        rule("null-webhook", {"type": "webhook", "config": {"url": None}}),
        rule("numeric-slack", {"type": "slack", "config": {"webhook_url": 42}}),
        rule("list-email", {"type": "email", "config": {"to": ["ops@test.com"]}}),
        rule("null-file", {"type": "file", "config": {"filename": None}}),
    ]}))
    store = RuleStore(path)
    with caplog.at_level("WARNING", logger="chainwatch"):
        rules = store.load()
    assert [r.id for r in rules] == ["good"]
    for rule_id in ("null-webhook", "numeric-slack", "list-email", "null-file"):
        assert rule_id in caplog.text


def test_rules_by_category(tmp_path):
    store = RuleStore(tmp_path / "alerts.json")
    store.load()
    store.get_rule("health-degraded").enabled = False

    assert {r.id for r in store.rules_by_category("health")} == {"health-critical", "health-degraded"}
    assert [r.id for r in store.rules_by_category(RuleCategory.HEALTH, enabled_only=True)] == ["health-critical"]
    assert store.rules_by_category("error-log") == []
    assert len(store.get_enabled_rules()) == len(default_rules()) - 1


def test_save_failure_returns_false(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    store = RuleStore(blocker / "alerts.json")
    store.rules = default_rules()
    assert store.save() is False
