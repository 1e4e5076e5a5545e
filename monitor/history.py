"""Append-only, time-bounded history of health records."""
import json
import logging
import os
import threading
from pathlib import Path

from models.health import HealthCheckRecord
from utils.timeutil import utc_now

logger = logging.getLogger("chainwatch.history")


class HistoryStore:
    """Single-writer record sequence, ordered by append.

    Pruning is opportunistic (on load and when the loop asks) so that
    ``append`` stays O(1).
    """

    def __init__(self, path=None, clock=None):
        self.path = Path(path) if path else None
        self.clock = clock or utc_now
        self._records = []
        self._lock = threading.Lock()

    def __len__(self):
        return len(self._records)

    def append(self, record: HealthCheckRecord):
        with self._lock:
            self._records.append(record)

    def prune(self, retention, now=None):
        """Drop records older than ``now - retention``. Returns the number removed."""
        cutoff = (now or self.clock()) - retention
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.timestamp >= cutoff]
            removed = before - len(self._records)
        if removed:
            logger.debug(f"Pruned {removed} health records older than {cutoff.isoformat()}")
        return removed

    def window(self, n):
        """Most recent ``n`` records, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return self._records[-n:]

    def all(self):
        with self._lock:
            return list(self._records)

    def latest(self):
        with self._lock:
            return self._records[-1] if self._records else None

    def load(self, retention=None):
        """Replace contents with the persisted array. A corrupt file starts fresh."""
        if self.path is None or not self.path.exists():
            return 0
        try:
            with open(self.path) as f:
                raw = json.load(f)
            records = [HealthCheckRecord.from_dict(d) for d in raw]
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning(f"Could not load health history {self.path} ({e}), starting fresh")
            records = []
        records.sort(key=lambda r: r.timestamp)
        with self._lock:
            self._records = records
        if retention is not None:
            self.prune(retention)
        logger.info(f"Loaded {len(self._records)} historical health checks")
        return len(self._records)

    def save(self):
        """Rewrite the whole persisted array. Raises OSError on failure."""
        if self.path is None:
            return
        payload = [r.to_dict() for r in self.all()]
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp_path, "w") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, self.path)
