"""
Pane Command Scheduler

Sends commands to tmux panes on cron-style schedules.

Features:
- Persistent job storage in a single JSON file
- Cron expressions and @descriptors
- Optional priming action (/new or /compact) before each command
- Run-once mode for system cron and a polling daemon
"""

from pane_scheduler.store import ScheduleStore, ScheduledJob, PreAction
from pane_scheduler.jobs import JobExecutor, BatchRunner, ExecutionResult
from pane_scheduler.service import SchedulerService, run_daemon
from pane_scheduler.config import SchedulerSettings

__version__ = "0.1.0"
__all__ = [
    "ScheduleStore",
    "ScheduledJob",
    "PreAction",
    "JobExecutor",
    "BatchRunner",
    "ExecutionResult",
    "SchedulerService",
    "run_daemon",
    "SchedulerSettings",
]
