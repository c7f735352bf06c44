"""
Persistent store for scheduled jobs.

The whole job collection lives in a single JSON document that is loaded
and saved wholesale. The in-memory store is guarded by a reader/writer lock
so daemon threads and interactive callers can share it; callers only ever
receive copies of the stored jobs and commit changes through update().
"""

import json
import logging
import re
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

from pane_scheduler import cron
from pane_scheduler.config import schedules_path
from pane_scheduler.ids import generate_id

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when the schedules file cannot be read, parsed or written."""
    pass


class JobNotFoundError(LookupError):
    """Raised when no job has the requested ID."""

    def __init__(self, job_id: str):
        super().__init__(f"job not found: {job_id}")
        self.job_id = job_id


class PreAction(str, Enum):
    """Action sent to the target before the main command."""
    NONE = "none"
    NEW_SESSION = "new"  # Send /new, wait, then command
    COMPACT = "compact"  # Send /compact, wait, then command

    @property
    def priming_command(self) -> Optional[str]:
        """Literal command sent for this action, or None."""
        return PRIMING_COMMANDS[self]


PRIMING_COMMANDS = {
    PreAction.NONE: None,
    PreAction.NEW_SESSION: "/new",
    PreAction.COMPACT: "/compact",
}


_FRACTION_RE = re.compile(r'\.(\d+)')


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an RFC 3339 timestamp.

    Accepts a 'Z' suffix and fractions of any precision. The zero time
    (year 1) means "unset". Naive values are taken as local time.
    """
    if not value:
        return None

    text = value.strip()
    if text.endswith(('Z', 'z')):
        text = text[:-1] + '+00:00'
    text = _FRACTION_RE.sub(lambda m: '.' + m.group(1)[:6].ljust(6, '0'), text, count=1)

    parsed = datetime.fromisoformat(text)
    if parsed.year <= 1:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.astimezone()
    return parsed


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _local(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as local time."""
    if value is not None and value.tzinfo is None:
        return value.astimezone()
    return value


def _with_local_times(job: 'ScheduledJob') -> 'ScheduledJob':
    return replace(
        job,
        created_at=_local(job.created_at),
        last_run=_local(job.last_run),
        next_run=_local(job.next_run)
    )


@dataclass
class ScheduledJob:
    """A scheduled command to send to a target pane."""
    id: str = ""
    schedule: str = ""  # Cron expression
    target: str = ""  # session:window.pane
    command: str = ""
    pre_action: PreAction = PreAction.NONE
    enabled: bool = True
    created_at: Optional[datetime] = None
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    last_error: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the on-disk representation."""
        data = {
            'id': self.id,
            'schedule': self.schedule,
            'target': self.target,
            'command': self.command,
            'pre_action': self.pre_action.value,
            'enabled': self.enabled,
            'created_at': _format_time(self.created_at),
        }
        if self.last_run:
            data['last_run'] = _format_time(self.last_run)
        data['next_run'] = _format_time(self.next_run)
        if self.last_error:
            data['last_error'] = self.last_error
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ScheduledJob':
        """Build a job from its on-disk representation."""
        return cls(
            id=data['id'],
            schedule=data['schedule'],
            target=data['target'],
            command=data['command'],
            pre_action=PreAction(data.get('pre_action') or PreAction.NONE.value),
            enabled=bool(data.get('enabled', False)),
            created_at=_parse_time(data.get('created_at')),
            last_run=_parse_time(data.get('last_run')),
            next_run=_parse_time(data.get('next_run')),
            last_error=data.get('last_error') or "",
        )


class _ReadWriteLock:
    """Shared/exclusive lock. Waiting writers block new readers."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ScheduleStore:
    """
    Collection of scheduled jobs backed by a JSON file.

    Writes (add, remove, update) take the exclusive lock; reads and save()
    take the shared lock. Every job handed out is a copy.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]] = None,
        jobs: Optional[List[ScheduledJob]] = None,
        next_run: Callable[[str], datetime] = cron.next_run,
        id_factory: Callable[[], str] = generate_id
    ):
        """
        Initialize an in-memory store.

        Args:
            path: Schedules file. If None, uses the configured default.
            jobs: Initial jobs
            next_run: Computes the next run time of a schedule expression
            id_factory: Generates IDs for jobs added without one
        """
        self.path = Path(path) if path else schedules_path()
        self._jobs: List[ScheduledJob] = [_with_local_times(job) for job in jobs or []]
        self._lock = _ReadWriteLock()
        self._next_run = next_run
        self._id_factory = id_factory

    @classmethod
    def load(cls, path: Optional[Union[str, Path]] = None, **kwargs) -> 'ScheduleStore':
        """
        Load the store from disk. A missing file gives an empty store.

        Raises:
            StoreError: If the file cannot be read or is malformed
        """
        store = cls(path, **kwargs)

        try:
            text = store.path.read_text(encoding='utf-8')
        except FileNotFoundError:
            logger.debug(f"No schedules file at {store.path}, starting empty")
            return store
        except OSError as e:
            raise StoreError(f"failed to read {store.path}: {e}") from e

        try:
            data = json.loads(text)
            store._jobs = [ScheduledJob.from_dict(item) for item in data.get('jobs') or []]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StoreError(f"malformed schedules file {store.path}: {e}") from e

        logger.debug(f"Loaded {len(store._jobs)} job(s) from {store.path}")
        return store

    def save(self):
        """
        Write the whole store to disk, creating the directory if needed.

        Raises:
            StoreError: If the file cannot be written
        """
        with self._lock.read():
            text = json.dumps({'jobs': [job.to_dict() for job in self._jobs]}, indent=2)
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(text + "\n", encoding='utf-8')
            except OSError as e:
                raise StoreError(f"failed to write {self.path}: {e}") from e
            logger.debug(f"Saved {len(self._jobs)} job(s) to {self.path}")

    def add(self, job: ScheduledJob) -> ScheduledJob:
        """
        Add a new job, filling in next_run, created_at and id.

        Returns:
            A copy of the stored job

        Raises:
            ScheduleError: If the job's schedule cannot be parsed
        """
        job = _with_local_times(replace(job, next_run=self._next_run(job.schedule)))
        if job.created_at is None:
            job.created_at = datetime.now().astimezone()
        if not job.id:
            job.id = self._id_factory()

        with self._lock.write():
            self._jobs.append(job)

        logger.info(f"Added job {job.id} ({job.schedule} -> {job.target})")
        return replace(job)

    def remove(self, job_id: str):
        """Remove a job by ID."""
        with self._lock.write():
            for i, job in enumerate(self._jobs):
                if job.id == job_id:
                    del self._jobs[i]
                    logger.info(f"Removed job {job_id}")
                    return
        raise JobNotFoundError(job_id)

    def get_by_id(self, job_id: str) -> ScheduledJob:
        """Return a copy of the job with the given ID."""
        with self._lock.read():
            for job in self._jobs:
                if job.id == job_id:
                    return replace(job)
        raise JobNotFoundError(job_id)

    def update(self, job: ScheduledJob):
        """Replace the stored job that has the same ID."""
        with self._lock.write():
            for i, existing in enumerate(self._jobs):
                if existing.id == job.id:
                    self._jobs[i] = _with_local_times(job)
                    return
        raise JobNotFoundError(job.id)

    def pending_jobs(self, now: Optional[datetime] = None) -> List[ScheduledJob]:
        """
        Return enabled jobs whose next run is strictly before now.

        Jobs come back in store order.
        """
        if now is None:
            now = datetime.now().astimezone()
        elif now.tzinfo is None:
            now = now.astimezone()

        with self._lock.read():
            return [
                replace(job) for job in self._jobs
                if job.enabled and job.next_run is not None and job.next_run < now
            ]

    def enabled_jobs(self) -> List[ScheduledJob]:
        """Return all enabled jobs."""
        with self._lock.read():
            return [replace(job) for job in self._jobs if job.enabled]

    @property
    def jobs(self) -> List[ScheduledJob]:
        """Snapshot of every job in store order."""
        with self._lock.read():
            return [replace(job) for job in self._jobs]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._jobs)

    def __repr__(self):
        return f"ScheduleStore(jobs={len(self)}, path={self.path})"
