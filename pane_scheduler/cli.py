"""
Command-line interface for scheduled pane commands.

Provides commands for:
- Adding/removing/enabling/disabling scheduled commands
- Listing schedules
- Running pending jobs once (for cron integration)
- Running the scheduler daemon
"""

import argparse
import json
import logging
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from pane_scheduler.config import SchedulerSettings
from pane_scheduler.cron import ScheduleError, cron_to_english, next_run, parse_duration, parse_schedule
from pane_scheduler.jobs import BatchRunner, BatchSaveError, JobExecutor
from pane_scheduler.service import SchedulerService
from pane_scheduler.store import PreAction, ScheduledJob, ScheduleStore, StoreError

logger = logging.getLogger(__name__)

def setup_logging(log_file: Optional[str] = None, verbose: bool = False, level: str = "INFO",
                  max_bytes: int = 0, backup_count: int = 0):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else level.upper()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        '%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)

    # Root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(console_handler)

    # File handler
    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setLevel(level)
        file_formatter = logging.Formatter(
            '%(asctime)s [%(levelname)s] %(name)s: %(message)s'
        )
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)


def _format_time(value: datetime) -> str:
    return value.strftime("%a %b ") + str(value.day) + value.strftime(" %H:%M")


def _load_store(args) -> ScheduleStore:
    try:
        return ScheduleStore.load(args.schedules)
    except StoreError as e:
        logger.error(f"Failed to load schedules: {e}")
        sys.exit(1)


def _save_store(store: ScheduleStore):
    try:
        store.save()
    except StoreError as e:
        logger.error(f"Failed to save schedules: {e}")
        sys.exit(1)


def _get_job(store: ScheduleStore, job_id: str) -> ScheduledJob:
    try:
        return store.get_by_id(job_id)
    except LookupError:
        logger.error(f"Schedule not found: {job_id}")
        sys.exit(1)


def cmd_add(args):
    """Add a new scheduled command."""
    setup_logging(verbose=args.verbose)

    try:
        parse_schedule(args.cron)
    except ScheduleError as e:
        logger.error(f"Failed to add schedule: {e}")
        sys.exit(1)

    try:
        pre_action = PreAction(args.pre or PreAction.NONE.value)
    except ValueError:
        logger.error(f"Invalid pre-action: {args.pre} (must be none, new, or compact)")
        sys.exit(1)

    store = _load_store(args)
    job = store.add(ScheduledJob(
        schedule=args.cron,
        target=args.target,
        command=args.command,
        pre_action=pre_action,
        enabled=True,
    ))
    _save_store(store)

    print(f"Added schedule {job.id}: {cron_to_english(job.schedule)}")


def cmd_list(args):
    """List all scheduled commands."""
    setup_logging(verbose=args.verbose)
    store = _load_store(args)
    jobs = store.jobs

    if args.json:
        print(json.dumps([job.to_dict() for job in jobs], indent=2))
        return

    if not jobs:
        print("No scheduled commands.")
        print("Run 'pane-scheduler add' to create one.")
        return

    print("Scheduled Commands")
    print()

    for job in jobs:
        status = "●" if job.enabled else "○"
        print(f"{status} {job.id}  {cron_to_english(job.schedule)}")
        print(f"  → {job.target}")

        if job.pre_action is not PreAction.NONE:
            print(f"  /{job.pre_action.value} then {job.command}")
        else:
            print(f"  {job.command}")

        if job.enabled and job.next_run:
            print(f"  Next: {_format_time(job.next_run)}")
        if job.last_error:
            print(f"  Error: {job.last_error}")
        print()


def cmd_remove(args):
    """Remove a scheduled command."""
    setup_logging(verbose=args.verbose)
    store = _load_store(args)
    try:
        store.remove(args.id)
    except LookupError as e:
        logger.error(f"Failed to remove schedule: {e}")
        sys.exit(1)
    _save_store(store)

    print(f"Removed schedule {args.id}")


def cmd_enable(args):
    """Enable a scheduled command."""
    setup_logging(verbose=args.verbose)
    store = _load_store(args)
    job = _get_job(store, args.id)

    try:
        job.next_run = next_run(job.schedule)
    except ScheduleError as e:
        logger.error(f"Failed to calculate next run: {e}")
        sys.exit(1)
    job.enabled = True
    job.last_error = ""

    store.update(job)
    _save_store(store)

    print(f"Enabled schedule {args.id}")
    print(f"Next run: {_format_time(job.next_run)}")


def cmd_disable(args):
    """Disable a scheduled command."""
    setup_logging(verbose=args.verbose)
    store = _load_store(args)
    job = _get_job(store, args.id)

    job.enabled = False
    store.update(job)
    _save_store(store)

    print(f"Disabled schedule {args.id}")


def _print_results(results):
    success_count = 0
    for result in results:
        if result.success:
            success_count += 1
            print(f"✓ {result.job_id} executed successfully")
        else:
            print(f"✗ {result.job_id} failed: {result.message}")

    print(f"\nExecuted {success_count}/{len(results)} jobs successfully.")


def cmd_run_pending(args):
    """Run all pending scheduled commands once."""
    setup_logging(verbose=args.verbose)

    runner = BatchRunner(schedules_path=args.schedules)
    try:
        results = runner.execute_pending()
    except BatchSaveError as e:
        if e.results:
            _print_results(e.results)
        logger.error(f"Failed to execute pending jobs: {e}")
        sys.exit(1)
    except StoreError as e:
        logger.error(f"Failed to execute pending jobs: {e}")
        sys.exit(1)

    if not results:
        print("No pending jobs to run.")
        return

    _print_results(results)


def cmd_daemon(args):
    """Run the scheduler daemon."""
    try:
        settings = SchedulerSettings(args.settings)
        errors = settings.validate()
    except ValueError as e:
        errors = [str(e)]

    if errors:
        # Console-only logging; the configured level may itself be invalid
        setup_logging(verbose=args.verbose)
        logger.error("Settings validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        sys.exit(1)

    setup_logging(
        log_file=args.log_file or settings.logging.file,
        verbose=args.verbose,
        level=settings.logging.level,
        max_bytes=settings.logging.max_bytes,
        backup_count=settings.logging.backup_count
    )

    interval = settings.daemon_interval
    if args.interval:
        try:
            interval = parse_duration(args.interval).total_seconds()
        except ScheduleError as e:
            logger.error(f"Invalid interval: {e}")
            sys.exit(1)
        if interval <= 0:
            logger.error("--interval must be positive")
            sys.exit(1)

    service = SchedulerService(interval, BatchRunner(schedules_path=args.schedules))
    service.install_signal_handlers()

    print(f"Starting scheduler daemon (interval: {interval:g}s)")
    print("Press Ctrl+C to stop.")
    service.run()


def cmd_targets(args):
    """List available pane targets."""
    setup_logging(verbose=args.verbose)
    targets = JobExecutor().list_available_targets()
    if not targets:
        print("No tmux panes found.")
        return
    for target in targets:
        print(target)


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="pane-scheduler",
        description="Manage scheduled commands sent to tmux panes",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pane-scheduler add --cron "0 9 * * 1-5" --target work:0.1 --command "status report"
  pane-scheduler add --cron "@hourly" --target agent:1 --command "continue" --pre compact
  pane-scheduler list
  pane-scheduler disable Ab3dE9xZ
  pane-scheduler run-pending
  pane-scheduler daemon --interval 30s
"""
    )
    parser.add_argument('--schedules', help='Path to schedules file')
    parser.add_argument('-v', '--verbose', action='store_true', help='Verbose output')

    subparsers = parser.add_subparsers(dest='command_name', help='Command to execute')

    # Add
    add_parser = subparsers.add_parser('add', help='Add a new scheduled command')
    add_parser.add_argument('--cron', required=True, help="Cron expression (e.g., '0 9 * * *')")
    add_parser.add_argument('--target', required=True, help="Target pane (e.g., 'session:window.pane')")
    add_parser.add_argument('--command', required=True, help='Command to send')
    add_parser.add_argument('--pre', default='none', help='Pre-action: none, new, or compact')
    add_parser.set_defaults(func=cmd_add)

    # List
    list_parser = subparsers.add_parser('list', help='List all scheduled commands')
    list_parser.add_argument('--json', action='store_true', help='Output as JSON')
    list_parser.set_defaults(func=cmd_list)

    # Remove
    remove_parser = subparsers.add_parser(
        'rm', aliases=['remove', 'delete'], help='Remove a scheduled command'
    )
    remove_parser.add_argument('id', help='Schedule ID')
    remove_parser.set_defaults(func=cmd_remove)

    # Enable
    enable_parser = subparsers.add_parser('enable', help='Enable a scheduled command')
    enable_parser.add_argument('id', help='Schedule ID')
    enable_parser.set_defaults(func=cmd_enable)

    # Disable
    disable_parser = subparsers.add_parser('disable', help='Disable a scheduled command')
    disable_parser.add_argument('id', help='Schedule ID')
    disable_parser.set_defaults(func=cmd_disable)

    # Run pending
    run_parser = subparsers.add_parser(
        'run-pending', help='Run all pending scheduled commands (for cron integration)'
    )
    run_parser.set_defaults(func=cmd_run_pending)

    # Daemon
    daemon_parser = subparsers.add_parser('daemon', help='Run the scheduler daemon')
    daemon_parser.add_argument('--interval', help='Check interval (e.g., 60, 30s, 1m)')
    daemon_parser.add_argument('--settings', help='Path to settings file')
    daemon_parser.add_argument('--log-file', help='Log file path')
    daemon_parser.set_defaults(func=cmd_daemon)

    # Targets
    targets_parser = subparsers.add_parser('targets', help='List available pane targets')
    targets_parser.set_defaults(func=cmd_targets)

    args = parser.parse_args()

    if not args.command_name:
        parser.print_help()
        sys.exit(1)

    args.func(args)


if __name__ == '__main__':
    main()
