"""In-memory alert log backed by one append-only JSON-lines file per day."""
import json
import logging
import threading
from collections import Counter
from datetime import timedelta
from pathlib import Path

from models.alerts import Alert
from models.enums import Severity
from utils.timeutil import parse_timestamp, to_iso, utc_now

logger = logging.getLogger("chainwatch.alerts.log")

RESOLVED_EVENT = "resolved"


class AlertLog:
    """Fired alerts are appended, never deleted; only marked resolved."""

    def __init__(self, alerts_dir=None, clock=None):
        self.alerts_dir = Path(alerts_dir) if alerts_dir else None
        self.clock = clock or utc_now
        self._alerts = []
        self._by_id = {}
        self._lock = threading.Lock()

    def _day_file(self, when):
        return self.alerts_dir / f"{when.date().isoformat()}.log"

    def _append_line(self, when, entry):
        if self.alerts_dir is None:
            return
        try:
            self.alerts_dir.mkdir(parents=True, exist_ok=True)
            with open(self._day_file(when), "a") as f:
                f.write(json.dumps(entry, default=str) + "\n")
        except OSError as e:
            logger.error(f"Failed to persist alert log entry: {e}")

    def append(self, alert: Alert):
        with self._lock:
            self._alerts.append(alert)
            self._by_id[alert.id] = alert
        self._append_line(alert.timestamp, alert.to_dict())

    def resolve(self, alert_id) -> bool:
        with self._lock:
            alert = self._by_id.get(alert_id)
            if alert is None or not alert.resolve(self.clock()):
                return False
        self._append_line(alert.resolved_at, {
            "event": RESOLVED_EVENT,
            "alertId": alert.id,
            "resolvedAt": to_iso(alert.resolved_at),
        })
        logger.info(f"Alert {alert_id} resolved at {to_iso(alert.resolved_at)}")
        return True

    def get(self, alert_id):
        return self._by_id.get(alert_id)

    def all(self):
        with self._lock:
            return list(self._alerts)

    def active(self):
        return [a for a in self.all() if not a.resolved]

    def recent(self, since):
        return [a for a in self.all() if a.timestamp >= since]

    def severity_counts(self, active_only=True):
        alerts = self.active() if active_only else self.all()
        counts = Counter(a.severity for a in alerts)
        return {s: counts.get(s, 0) for s in Severity}

    def load(self, days=7):
        """Rebuild memory from the daily files of the last ``days`` days."""
        if self.alerts_dir is None or not self.alerts_dir.exists():
            return 0
        today = self.clock().date()
        first = today - timedelta(days=max(days - 1, 0))
        alerts, resolutions = [], []
        for path in sorted(self.alerts_dir.glob("????-??-??.log")):
            if path.stem < first.isoformat():
                continue
            with open(path) as f:
                for lineno, line in enumerate(f, 1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entry = json.loads(line)
                        if entry.get("event") == RESOLVED_EVENT:
                            resolutions.append(entry)
                        else:
                            alerts.append(Alert.from_dict(entry))
                    except (ValueError, KeyError) as e:
                        logger.warning(f"Skipping bad alert log line {path.name}:{lineno}: {e}")

        with self._lock:
            self._alerts = alerts
            self._by_id = {a.id: a for a in alerts}
            for entry in resolutions:
                alert = self._by_id.get(entry.get("alertId"))
                if alert is not None:
                    alert.resolve(parse_timestamp(entry.get("resolvedAt")))
        return len(alerts)
