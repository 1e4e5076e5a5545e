"""Static HTML status dashboard."""
import json
import logging
from datetime import datetime
from html import escape
from pathlib import Path

from utils.formatters import format_ms, format_timestamp

logger = logging.getLogger("chainwatch.dashboard")

HTML_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<meta name="viewport" content="width=device-width, initial-scale=1.0">
<meta http-equiv="refresh" content="30">
<title>chainwatch - {network} monitor</title>
<style>
:root {{
    --bg: #1A1A2E;
    --card: #16213E;
    --text: #E0E0E0;
    --dim: #888;
    --accent: #7C4DFF;
    --green: #00C853;
    --red: #FF1744;
    --gold: #FFD700;
}}
* {{ margin: 0; padding: 0; box-sizing: border-box; }}
body {{ background: var(--bg); color: var(--text); font-family: 'Courier New', monospace; padding: 20px; }}
h1 {{ color: var(--accent); text-align: center; margin-bottom: 5px; }}
.subtitle {{ text-align: center; color: var(--dim); margin-bottom: 30px; }}
.grid {{ display: grid; grid-template-columns: repeat(auto-fit, minmax(350px, 1fr)); gap: 20px; margin-bottom: 20px; }}
.card {{ background: var(--card); border-radius: 8px; padding: 20px; border: 1px solid #333; }}
.card h2 {{ color: var(--accent); font-size: 16px; margin-bottom: 15px; border-bottom: 1px solid #333; padding-bottom: 8px; }}
.metric {{ display: flex; justify-content: space-between; padding: 5px 0; border-bottom: 1px solid #222; }}
.metric .label {{ color: var(--dim); }}
.metric .value {{ font-weight: bold; }}
.healthy {{ color: var(--green); }}
.degraded {{ color: var(--gold); }}
.down, .unknown {{ color: var(--red); }}
footer {{ text-align: center; color: var(--dim); margin-top: 30px; font-size: 12px; }}
</style>
</head>
<body>
<h1>chainwatch</h1>
<p class="subtitle">Generated: {generated_at}</p>

<div class="grid">
<div class="card">
<h2>Current Status</h2>
{status_section}
</div>

<div class="card">
<h2>Recent Metrics (last {recent_n} checks)</h2>
{metrics_section}
</div>

<div class="card">
<h2>Recent Checks</h2>
{checks_section}
</div>
</div>

<footer>Auto-refresh every 30 seconds</footer>
</body>
</html>"""


def _metric(label, value, css=""):
    return (
        f'<div class="metric"><span class="label">{escape(label)}</span>'
        f'<span class="value {css}">{escape(str(value))}</span></div>'
    )


class HTMLDashboardGenerator:
    """Renders the current-status snapshot and recent history to a static page."""

    def __init__(self, settings, recent_n=10):
        self.settings = settings
        self.recent_n = recent_n

    def _read_json(self, path):
        with open(path) as f:
            return json.load(f)

    def generate(self, output_path=None):
        """Write the dashboard; returns its path, or None when there is no data yet."""
        status_path = self.settings.status_path
        history_path = self.settings.history_path
        if not status_path.exists() or not history_path.exists():
            logger.warning("No monitoring data available for dashboard")
            return None

        status = self._read_json(status_path)
        history = self._read_json(history_path)
        recent = history[-self.recent_n:]

        state = status.get("status", "unknown")
        status_html = "".join([
            _metric("Status", state.upper(), state),
            _metric("Last Updated", status.get("timestamp", "N/A")),
            _metric("Uptime", f"{status.get('uptime', 0):.1f}%"),
            _metric("Total Checks", status.get("totalChecks", 0)),
            _metric("Monitoring For", format_ms(status.get("monitoringDurationMs", 0))),
        ])

        if recent:
            avg_latency = sum(r.get("latencyMs", 0) for r in recent) / len(recent)
            avg_error = sum(r.get("errorRate", 0) for r in recent) / len(recent)
        else:
            avg_latency = avg_error = 0.0
        metrics_html = _metric("Average Latency", f"{avg_latency:.0f}ms") + \
            _metric("Average Error Rate", f"{avg_error:.1f}%")

        checks_html = "".join(
            _metric(
                format_timestamp(r.get("timestamp")),
                f"{r.get('status', '?').upper()} {r.get('latencyMs', 0):.0f}ms",
                r.get("status", ""),
            )
            for r in reversed(recent)
        ) or '<div class="metric"><span class="label">No checks yet</span></div>'

        html = HTML_TEMPLATE.format(
            network=escape(self.settings.network),
            generated_at=datetime.now().strftime("%Y-%m-%d %H:%M"),
            recent_n=len(recent),
            status_section=status_html,
            metrics_section=metrics_html,
            checks_section=checks_html,
        )

        output_path = Path(output_path or self.settings.dashboard_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            f.write(html)

        logger.info(f"Dashboard saved to {output_path}")
        return output_path
