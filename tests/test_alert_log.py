"""Tests for the fired-alert log."""
import json
from datetime import timedelta

from conftest import T0, FakeClock
from alerts.alert_log import AlertLog
from models.alerts import Alert, AlertRule, MetricCondition
from models.enums import Severity


def _alert(severity="high", when=T0, rule_id="r1"):
    rule = AlertRule(id=rule_id, name="Rule", category="health",
                     condition=MetricCondition("status", "eq", "down"), severity=severity)
    return Alert.create(rule, "Health Alert: Rule", "msg", now=when)


def test_append_writes_daily_file(tmp_path):
    log = AlertLog(tmp_path, clock=FakeClock())
    alert = _alert()
    log.append(alert)
    lines = (tmp_path / "2024-03-01.log").read_text().splitlines()
    assert json.loads(lines[0])["id"] == alert.id
    assert log.get(alert.id) is alert


def test_resolve_once(tmp_path):
    clock = FakeClock()
    log = AlertLog(tmp_path, clock=clock)
    alert = _alert()
    log.append(alert)
    clock.advance(minutes=5)

    assert log.resolve(alert.id) is True
    assert alert.resolved_at == T0 + timedelta(minutes=5)
    assert log.resolve(alert.id) is False
    assert log.resolve("alert-missing") is False
    assert log.active() == []


def test_load_replays_resolutions(tmp_path):
    clock = FakeClock()
    log = AlertLog(tmp_path, clock=clock)
    a, b = _alert(), _alert(severity="critical")
    log.append(a)
    log.append(b)
    log.resolve(a.id)

    fresh = AlertLog(tmp_path, clock=clock)
    assert fresh.load(days=7) == 2
    assert fresh.get(a.id).resolved is True
    assert [x.id for x in fresh.active()] == [b.id]


def test_load_skips_bad_lines_and_old_days(tmp_path):
    clock = FakeClock()
    old = _alert(when=T0 - timedelta(days=10))
    (tmp_path / "2024-02-20.log").write_text(json.dumps(old.to_dict()) + "\n")
    (tmp_path / "2024-03-01.log").write_text("garbage\n" + json.dumps(_alert().to_dict()) + "\n")
    log = AlertLog(tmp_path, clock=clock)
    assert log.load(days=7) == 1


def test_severity_counts_and_recent():
    clock = FakeClock()
    log = AlertLog(clock=clock)
    log.append(_alert("critical", T0 - timedelta(hours=30)))
    log.append(_alert("high"))
    log.append(_alert("high"))

    counts = log.severity_counts()
    assert counts[Severity.HIGH] == 2
    assert counts[Severity.CRITICAL] == 1
    assert counts[Severity.LOW] == 0
    assert len(log.recent(T0 - timedelta(hours=24))) == 2
