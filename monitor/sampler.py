"""Probe sampler: one health record per tick."""
import logging
import time

from models.health import HealthCheckRecord
from utils.timeutil import utc_now

logger = logging.getLogger("chainwatch.sampler")


class ProbeSampler:
    """Runs the probe battery in order and aggregates it into a HealthCheckRecord.

    Partial failure is the normal case: each probe's exception is caught and
    counted, and the remaining probes still run.
    """

    def __init__(self, probes, clock=None, timer=time.monotonic):
        if not probes:
            raise ValueError("ProbeSampler needs at least one probe")
        names = [p.name for p in probes]
        if len(set(names)) != len(names):
            raise ValueError(f"Probe names must be unique: {names}")
        self.probes = list(probes)
        self.clock = clock or utc_now
        self.timer = timer

    def sample(self) -> HealthCheckRecord:
        outcomes = {}
        start = self.timer()
        for probe in self.probes:
            try:
                probe.run()
                outcomes[probe.name] = True
            except Exception as e:
                outcomes[probe.name] = False
                logger.debug(f"Probe {probe.name} failed: {e}")
        latency_ms = (self.timer() - start) * 1000

        record = HealthCheckRecord.from_outcomes(outcomes, round(latency_ms, 1), self.clock())
        failed = [n for n, ok in outcomes.items() if not ok]
        if failed:
            logger.info(f"{len(failed)}/{len(outcomes)} probes failed: {', '.join(failed)}")
        return record
