"""Fixed-interval scheduler driving the monitoring loop."""
import logging
import threading
import schedule

logger = logging.getLogger("chainwatch.scheduler")


class MonitorScheduler:
    """Ticks the loop every ``interval_seconds`` until the stop event is set.

    The stop event is checked at every tick boundary; a tick already in
    progress runs to completion.
    """

    def __init__(self, loop, interval_seconds=60, stop_event=None, poll_seconds=1.0):
        self.loop = loop
        self.interval = interval_seconds
        self.stop_event = stop_event or threading.Event()
        self.poll_seconds = poll_seconds
        self._scheduler = schedule.Scheduler()
        self._thread = None
        self._consecutive_failures = 0

    def run(self):
        """Block, ticking on schedule, until stopped."""
        self._scheduler.every(self.interval).seconds.do(self._tick_job)
        logger.info(f"Scheduler started (every {self.interval}s)")
        # Do an initial tick immediately
        self._tick_job()
        while not self.stop_event.is_set():
            self._scheduler.run_pending()
            idle = self._scheduler.idle_seconds
            wait = self.poll_seconds if idle is None else min(self.poll_seconds, max(idle, 0))
            self.stop_event.wait(wait)
        self._scheduler.clear()
        logger.info("Scheduler stopped")

    def start(self):
        """Run in a background thread."""
        if self._thread is not None:
            return
        self._thread = threading.Thread(target=self.run, daemon=True, name="monitor-scheduler")
        self._thread.start()

    def stop(self, timeout=30):
        self.stop_event.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def _tick_job(self):
        if self.stop_event.is_set():
            return schedule.CancelJob
        result = self.loop.tick()
        if result is None and self.loop.is_running:
            self._consecutive_failures += 1
            if self._consecutive_failures >= 5:
                logger.critical(f"{self._consecutive_failures} consecutive monitoring ticks failed!")
        else:
            self._consecutive_failures = 0
        return None
