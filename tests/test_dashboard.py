"""Tests for the HTML dashboard and display formatters."""
import json
from datetime import timedelta

from conftest import T0, make_record
from dashboard.html_report import HTMLDashboardGenerator
from utils.formatters import format_ms, format_pct, format_timestamp, time_ago


def _write_data(settings, records):
    settings.data_dir.mkdir(parents=True)
    settings.history_path.write_text(json.dumps([r.to_dict() for r in records]))
    settings.status_path.write_text(json.dumps({
        "timestamp": T0.isoformat(), "status": "degraded", "uptime": 75.0,
        "totalChecks": len(records), "monitoringDurationMs": 3_600_000,
    }))


def test_no_data_returns_none(settings):
    assert HTMLDashboardGenerator(settings).generate() is None


def test_generates_dashboard(settings):
    records = [make_record(timestamp=T0 + timedelta(minutes=i), latency_ms=100 * (i + 1)) for i in range(12)]
    _write_data(settings, records)

    path = HTMLDashboardGenerator(settings).generate()
    assert path == settings.dashboard_path
    html = path.read_text()
    assert "DEGRADED" in html
    assert "75.0%" in html
    assert "1h 0m" in html
    assert "last 10 checks" in html
    # average of the last ten latencies (300..1200)
    assert "750ms" in html


def test_custom_output_path(settings, tmp_path):
    _write_data(settings, [make_record()])
    out = tmp_path / "site" / "index.html"
    assert HTMLDashboardGenerator(settings).generate(out) == out
    assert out.exists()


def test_formatters():
    assert format_pct(None) == "N/A"
    assert format_pct(99.5, with_color=True) == "[green]99.5%[/green]"
    assert format_pct(90) == "90.0%"
    assert format_ms(950) == "950ms"
    assert format_ms(2500) == "2.5s"
    assert format_ms(125000) == "2m 5s"
    assert format_ms(90_000_000) == "1d 1h"
    assert format_timestamp(T0) == "2024-03-01 12:00 UTC"
    assert format_timestamp("2024-03-01T12:00:00Z") == "2024-03-01 12:00 UTC"
    assert time_ago(T0 - timedelta(hours=3), now=T0) == "3h ago"
    assert time_ago(T0 - timedelta(days=2), now=T0) == "2d ago"
