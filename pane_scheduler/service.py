"""
Scheduler daemon.

Runs pending jobs immediately on start and then once per interval until
a stop event is set. The stop event is only checked between batches, so
an in-flight batch always runs to completion.
"""

import logging
import signal
import threading
import time
from typing import List, Optional

from pane_scheduler.jobs import BatchRunner, BatchSaveError, ExecutionResult
from pane_scheduler.store import StoreError

logger = logging.getLogger(__name__)


class SchedulerService:
    """Drives a BatchRunner on a fixed interval."""

    def __init__(self, interval: float, runner: Optional[BatchRunner] = None):
        """
        Initialize scheduler service.

        Args:
            interval: Seconds between batches
            runner: Batch runner (default: BatchRunner over the configured store)
        """
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.interval = interval
        self.runner = runner or BatchRunner()
        self.stop_event = threading.Event()

    def _log_failures(self, results: List[ExecutionResult]):
        for result in results:
            if result.error is not None:
                logger.error(f"Job {result.job_id} failed: {result.error}")

    def run_once(self):
        """Run one batch, logging failures instead of raising them."""
        try:
            results = self.runner.execute_pending()
        except BatchSaveError as e:
            logger.error(f"Error executing pending jobs: {e}")
            self._log_failures(e.results)
            return
        except StoreError as e:
            logger.error(f"Error executing pending jobs: {e}")
            return
        except Exception as e:
            logger.error(f"Unexpected error executing pending jobs: {e}", exc_info=True)
            return
        self._log_failures(results)

    def run(self, stop: Optional[threading.Event] = None):
        """
        Run until the stop event is set.

        Ticks missed while a batch is running collapse into a single
        immediate run once it finishes.
        """
        stop = stop or self.stop_event
        logger.info(f"Scheduler daemon started (interval: {self.interval}s)")

        next_tick = time.monotonic() + self.interval
        self.run_once()

        while True:
            if stop.wait(max(0.0, next_tick - time.monotonic())):
                logger.info("Scheduler daemon stopped")
                return

            now = time.monotonic()
            while next_tick <= now:
                next_tick += self.interval

            self.run_once()

    def stop(self):
        """Ask the daemon loop to exit after the current batch."""
        self.stop_event.set()

    def install_signal_handlers(self):
        """Stop the daemon on SIGINT and SIGTERM."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down...")
            self.stop()

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)


def run_daemon(interval: float, stop: threading.Event, runner: Optional[BatchRunner] = None):
    """Run the scheduler daemon until stop is set."""
    SchedulerService(interval, runner).run(stop)
