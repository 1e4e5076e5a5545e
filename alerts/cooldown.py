"""Per-rule cooldown tracking."""
import threading
from contextlib import contextmanager

from utils.timeutil import utc_now


class CooldownTracker:
    """Decides whether a rule may fire, and serializes firing per rule.

    The tracker never writes ``last_triggered``; the rule store does, inside
    the ``claim`` block, so the check and the update form one step.
    """

    def __init__(self, clock=None):
        self.clock = clock or utc_now
        self._locks = {}
        self._guard = threading.Lock()

    def may_fire(self, rule, now=None) -> bool:
        if not rule.enabled:
            return False
        if rule.cooldown_seconds == 0 or rule.last_triggered is None:
            return True
        now = now or self.clock()
        return now - rule.last_triggered >= rule.cooldown

    def lock_for(self, rule_id):
        with self._guard:
            lock = self._locks.get(rule_id)
            if lock is None:
                lock = self._locks[rule_id] = threading.Lock()
            return lock

    @contextmanager
    def claim(self, rule):
        """Hold the rule's lock; yields the evaluation instant if it may fire, else None."""
        with self.lock_for(rule.id):
            now = self.clock()
            yield now if self.may_fire(rule, now) else None
