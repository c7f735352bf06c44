"""
Execution of scheduled jobs.

JobExecutor sends a single job's command (and optional priming action) to
its target pane. BatchRunner runs every due job once, records the outcome
on each job, and persists the store.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Union

from pane_scheduler import cron
from pane_scheduler.cron import ScheduleError
from pane_scheduler.store import ScheduledJob, ScheduleStore, StoreError
from pane_scheduler.transport import TmuxTransport

logger = logging.getLogger(__name__)

# Settle time after a priming action before the main command is sent
PRE_ACTION_DELAY = 2.0

TARGET_SEPARATOR = ":"


class JobExecutionError(Exception):
    """Raised when job execution fails."""
    pass


class TargetValidationError(JobExecutionError):
    """Raised when a job's target does not exist."""
    pass


class PreActionError(JobExecutionError):
    """Raised when the priming action cannot be sent."""
    pass


class CommandError(JobExecutionError):
    """Raised when the main command cannot be sent."""
    pass


class BatchSaveError(StoreError):
    """Raised when a batch ran but the store could not be saved."""

    def __init__(self, message: str, results: List['ExecutionResult']):
        super().__init__(message)
        self.results = results


@dataclass
class ExecutionResult:
    """Result of executing one job."""
    job_id: str
    success: bool = True
    error: Optional[Exception] = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""


class JobExecutor:
    """
    Executes jobs against tmux targets.

    The transport must provide send(target, text), session_exists(name),
    target_exists(target) and list_targets().
    """

    def __init__(self, transport=None, sleep: Callable[[float], None] = time.sleep):
        """
        Initialize job executor.

        Args:
            transport: Target transport (default: TmuxTransport)
            sleep: Used for the priming settle delay
        """
        self.transport = transport or TmuxTransport()
        self._sleep = sleep

    def validate_target(self, target: str):
        """
        Check that a target (session[:window.pane]) exists.

        Raises:
            TargetValidationError: If the session or pane does not exist,
                or the transport cannot check it
        """
        session, separator, _ = target.partition(TARGET_SEPARATOR)
        if not session:
            raise TargetValidationError(f"invalid target format: {target!r}")

        try:
            if not self.transport.session_exists(session):
                raise TargetValidationError(f"session does not exist: {session}")

            if separator and not self.transport.target_exists(target):
                raise TargetValidationError(f"target pane does not exist: {target}")

        except TargetValidationError:
            raise

        except Exception as e:
            raise TargetValidationError(f"failed to check target {target!r}: {e}") from e

    def target_exists(self, target: str) -> bool:
        """Return True if the target exists."""
        try:
            self.validate_target(target)
        except TargetValidationError:
            return False
        return True

    def list_available_targets(self) -> List[str]:
        """Return all available pane targets."""
        return self.transport.list_targets()

    def execute_job(self, job: ScheduledJob):
        """
        Execute a single scheduled job.

        Raises:
            TargetValidationError: Target missing, nothing was sent
            PreActionError: Priming action failed, main command not sent
            CommandError: Main command failed
        """
        log_prefix = f"[{job.id}]"

        try:
            self.validate_target(job.target)
        except TargetValidationError as e:
            raise TargetValidationError(f"target validation failed: {e}") from e

        priming_command = job.pre_action.priming_command
        if priming_command is not None:
            logger.info(f"{log_prefix} Sending pre-action {priming_command} to {job.target}")
            try:
                self.transport.send(job.target, priming_command)
            except Exception as e:
                raise PreActionError(f"pre-action failed: {e}") from e
            self._sleep(PRE_ACTION_DELAY)

        logger.info(f"{log_prefix} Sending command to {job.target}")
        try:
            self.transport.send(job.target, job.command)
        except Exception as e:
            raise CommandError(f"command failed: {e}") from e


class BatchRunner:
    """Runs all pending jobs from the schedules file."""

    def __init__(
        self,
        schedules_path: Optional[Union[str, Path]] = None,
        executor: Optional[JobExecutor] = None,
        next_run_after: Callable[[str, datetime], datetime] = cron.next_run_after,
        clock: Callable[[], datetime] = lambda: datetime.now().astimezone()
    ):
        """
        Initialize batch runner.

        Args:
            schedules_path: Schedules file (default: configured path)
            executor: Job executor (default: JobExecutor over tmux)
            next_run_after: Computes the next run after a given time
            clock: Current time
        """
        self.schedules_path = schedules_path
        self.executor = executor or JobExecutor()
        self._next_run_after = next_run_after
        self._clock = clock

    def _load(self) -> ScheduleStore:
        try:
            return ScheduleStore.load(self.schedules_path)
        except StoreError as e:
            raise StoreError(f"failed to load schedules: {e}") from e

    def execute_pending(self) -> List[ExecutionResult]:
        """
        Execute every pending job once, in store order.

        A failing job never stops the batch; its error is recorded on the
        job and in its result.

        Returns:
            One ExecutionResult per pending job

        Raises:
            StoreError: If the schedules file cannot be loaded
            BatchSaveError: If the store cannot be saved; carries the results
        """
        store = self._load()
        pending = store.pending_jobs(self._clock())
        results = []

        if pending:
            logger.info(f"Running {len(pending)} pending job(s)")

        for job in pending:
            result = ExecutionResult(job_id=job.id)

            try:
                self.executor.execute_job(job)
            except JobExecutionError as e:
                logger.warning(f"[{job.id}] {e}")
                result.success = False
                result.error = e
                job.last_error = str(e)
            else:
                job.last_error = ""

            job.last_run = self._clock()
            try:
                job.next_run = self._next_run_after(job.schedule, job.last_run)
            except ScheduleError as e:
                logger.error(f"[{job.id}] Disabling job: {e}")
                job.enabled = False
                job.last_error = f"failed to calculate next run: {e}"

            try:
                store.update(job)
            except LookupError as e:
                logger.error(f"[{job.id}] Failed to update job state: {e}")
                result.error = StoreError(f"failed to update job state: {e}")
                result.error.__cause__ = e

            results.append(result)

        try:
            store.save()
        except StoreError as e:
            raise BatchSaveError(f"failed to save schedules: {e}", results) from e

        return results
