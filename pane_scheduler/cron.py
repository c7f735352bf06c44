"""
Cron schedule handling.

Parses standard 5-field cron expressions (minute hour day-of-month month
day-of-week) and the usual @descriptors, computes next run times with
APScheduler's CronTrigger, and renders expressions as readable English.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)


class ScheduleError(ValueError):
    """Raised when a schedule expression is invalid or never fires."""
    pass


DESCRIPTORS = {
    '@yearly': '0 0 1 1 *',
    '@annually': '0 0 1 1 *',
    '@monthly': '0 0 1 * *',
    '@weekly': '0 0 * * 0',
    '@daily': '0 0 * * *',
    '@midnight': '0 0 * * *',
    '@hourly': '0 * * * *',
}

EVERY_PREFIX = '@every '

# Cron numbering: 0 (and 7) is Sunday
DOW_NAMES = ['sun', 'mon', 'tue', 'wed', 'thu', 'fri', 'sat']

DAY_NAMES = {
    '0': 'Sunday', '7': 'Sunday',
    '1': 'Monday',
    '2': 'Tuesday',
    '3': 'Wednesday',
    '4': 'Thursday',
    '5': 'Friday',
    '6': 'Saturday',
    'SUN': 'Sunday',
    'MON': 'Monday',
    'TUE': 'Tuesday',
    'WED': 'Wednesday',
    'THU': 'Thursday',
    'FRI': 'Friday',
    'SAT': 'Saturday',
}

_DURATION_UNITS = {
    'ns': timedelta(microseconds=0.001),
    'us': timedelta(microseconds=1),
    'µs': timedelta(microseconds=1),
    'ms': timedelta(milliseconds=1),
    's': timedelta(seconds=1),
    'm': timedelta(minutes=1),
    'h': timedelta(hours=1),
}
_DURATION_RE = re.compile(r'(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)')


def parse_duration(text: str) -> timedelta:
    """
    Parse a Go-style duration such as '90s', '5m' or '1h30m'.

    A bare number is taken as seconds.

    Raises:
        ScheduleError: If the text is not a valid duration
    """
    text = text.strip()
    if not text:
        raise ScheduleError("empty duration")

    try:
        return timedelta(seconds=float(text))
    except (ValueError, OverflowError):
        pass

    total = timedelta()
    pos = 0
    for match in _DURATION_RE.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ScheduleError(f"invalid duration: {text!r}")
    return total


def _dow_value(token: str) -> int:
    token = token.strip().lower()
    if token in DOW_NAMES:
        return DOW_NAMES.index(token)
    if token.isdigit() and 0 <= int(token) <= 7:
        return int(token)
    raise ScheduleError(f"invalid day of week: {token!r}")


def _translate_dow(field: str) -> str:
    """
    Convert a cron day-of-week field to APScheduler day names.

    APScheduler numbers weekdays from Monday, cron from Sunday, so the field
    is expanded to an explicit list of names.
    """
    if field in ('*', '?'):
        return '*'

    days = set()
    for part in field.split(','):
        span, _, step_text = part.partition('/')
        try:
            step = int(step_text) if step_text else 1
        except ValueError:
            raise ScheduleError(f"invalid step in day of week: {part!r}")
        if step < 1:
            raise ScheduleError(f"invalid step in day of week: {part!r}")

        if span == '*':
            first, last = 0, 6
        elif '-' in span:
            start, _, end = span.partition('-')
            first, last = _dow_value(start), _dow_value(end)
        else:
            first = _dow_value(span)
            last = 6 if step_text else first

        if first > last:
            raise ScheduleError(f"invalid day of week range: {part!r}")
        days.update(day % 7 for day in range(first, last + 1, step))

    return ','.join(DOW_NAMES[day] for day in sorted(days))


def _compile(expr: str) -> List[CronTrigger]:
    """Build the trigger(s) for a 5-field expression or descriptor."""
    expr = DESCRIPTORS.get(expr, expr)
    fields = expr.split()
    if len(fields) != 5:
        raise ScheduleError(
            f"invalid cron expression: expected 5 fields, got {len(fields)} in {expr!r}"
        )

    minute, hour, dom, month, dow = fields
    dom = '*' if dom == '?' else dom
    dow = _translate_dow(dow)

    try:
        # Classic cron: restricting both day fields means either may match
        if dom != '*' and dow != '*':
            return [
                CronTrigger(month=month, day=dom, hour=hour, minute=minute, second=0),
                CronTrigger(month=month, day_of_week=dow, hour=hour, minute=minute, second=0),
            ]
        return [
            CronTrigger(month=month, day=dom, day_of_week=dow, hour=hour, minute=minute, second=0)
        ]
    except (ValueError, TypeError) as e:
        raise ScheduleError(f"invalid cron expression: {e}") from e


def next_run_after(schedule: str, after: datetime) -> datetime:
    """
    Return the first run time strictly after the given time.

    Args:
        schedule: Cron expression or descriptor
        after: Reference time (naive values are taken as local time)

    Raises:
        ScheduleError: If the expression is invalid or never fires again
    """
    schedule = schedule.strip()
    if after.tzinfo is None:
        after = after.astimezone()

    if schedule.startswith(EVERY_PREFIX):
        delay = parse_duration(schedule[len(EVERY_PREFIX):])
        delay = timedelta(seconds=int(delay.total_seconds()))
        if delay < timedelta(seconds=1):
            delay = timedelta(seconds=1)
        return after.replace(microsecond=0) + delay

    start = after.replace(microsecond=0) + timedelta(seconds=1)
    fire_times = [
        trigger.get_next_fire_time(None, start)
        for trigger in _compile(schedule)
    ]
    fire_times = [t for t in fire_times if t is not None]
    if not fire_times:
        raise ScheduleError(f"invalid cron expression: {schedule!r} never fires")
    return min(fire_times)


def next_run(schedule: str) -> datetime:
    """Return the next run time for a schedule, counted from now."""
    return next_run_after(schedule, datetime.now().astimezone())


def parse_schedule(schedule: str) -> datetime:
    """Validate a cron expression and return its next run time."""
    return next_run(schedule)


@dataclass
class CronPreset:
    """A common cron schedule."""
    label: str
    expression: str


def common_presets() -> List[CronPreset]:
    """Return a list of common cron presets."""
    return [
        CronPreset("Every morning at 9:00 AM", "0 9 * * *"),
        CronPreset("Every hour", "0 * * * *"),
        CronPreset("Every 30 minutes", "*/30 * * * *"),
        CronPreset("Every day at midnight", "0 0 * * *"),
        CronPreset("Every Monday at 6:00 AM", "0 6 * * 1"),
        CronPreset("Weekdays at 9:00 AM", "0 9 * * 1-5"),
    ]


def _to_int(value: str) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        return None


def _format_time(hour: str, minute: str) -> str:
    """Format hour and minute fields as a 12-hour clock time."""
    h, m = _to_int(hour), _to_int(minute)
    if h is None or m is None:
        if hour == '*' and minute == '0':
            return "the start of every hour"
        return f"{hour}:{minute}"

    ampm = "PM" if h >= 12 else "AM"
    if h > 12:
        h -= 12
    if h == 0:
        h = 12
    return f"{h}:{m:02d} {ampm}"


def _day_name(dow: str) -> str:
    return DAY_NAMES.get(dow.upper(), '')


def _describe_fields(minute: str, hour: str, dom: str, month: str, dow: str) -> str:
    parts = []
    if minute not in ('*', '0'):
        parts.append(f"minute {minute}")
    if hour != '*':
        parts.append(_format_time(hour, minute))
    if dom != '*':
        parts.append(f"on day {dom}")
    if month != '*':
        parts.append(f"in month {month}")
    if dow != '*':
        name = _day_name(dow)
        parts.append(f"on {name}" if name else f"on weekday {dow}")

    if not parts:
        return "Every minute"
    return ", ".join(parts)


def cron_to_english(expr: str) -> str:
    """
    Convert a cron expression to human-readable English.

    Expressions that are not 5 fields or a known descriptor are returned
    unchanged.
    """
    expr = expr.strip()

    if expr.startswith('@'):
        descriptions = {
            '@yearly': "Once a year (Jan 1 at midnight)",
            '@annually': "Once a year (Jan 1 at midnight)",
            '@monthly': "Once a month (1st at midnight)",
            '@weekly': "Once a week (Sunday at midnight)",
            '@daily': "Every day at midnight",
            '@midnight': "Every day at midnight",
            '@hourly': "Every hour",
        }
        if expr in descriptions:
            return descriptions[expr]
        if expr.startswith(EVERY_PREFIX):
            return "Every " + expr[len(EVERY_PREFIX):]
        return expr

    fields = expr.split()
    if len(fields) != 5:
        return expr
    minute, hour, dom, month, dow = fields
    everything_else = dom == '*' and month == '*' and dow == '*'

    if minute.startswith('*/') and hour == '*' and everything_else:
        interval = minute[2:]
        if interval == '1':
            return "Every minute"
        return f"Every {interval} minutes"

    if hour == '*' and everything_else:
        if minute == '0':
            return "Every hour"
        m = _to_int(minute)
        if m is not None and m > 0:
            return f"Every hour at minute {m}"

    if everything_else:
        return f"Every day at {_format_time(hour, minute)}"

    if dom == '*' and month == '*':
        if dow in ('1-5', 'MON-FRI'):
            return f"Weekdays at {_format_time(hour, minute)}"
        name = _day_name(dow)
        if name:
            return f"Every {name} at {_format_time(hour, minute)}"

    if month == '*' and dow == '*' and dom != '*':
        return f"Day {dom} of every month at {_format_time(hour, minute)}"

    return _describe_fields(minute, hour, dom, month, dow)


_RANGE_RE = re.compile(r'^(\d+)-(\d+)$')


def validate_cron_field(field: str, min_value: int, max_value: int):
    """
    Validate a single numeric cron field.

    Accepts '*', '*/N', 'N-M', 'N,M,...' and single values.

    Raises:
        ScheduleError: If the field is malformed or out of range
    """
    if field == '*':
        return

    if field.startswith('*/'):
        step = _to_int(field[2:])
        if step is None:
            raise ScheduleError(f"invalid step value: {field[2:]}")
        if step < 1 or step > max_value:
            raise ScheduleError(f"step value {step} out of range (1-{max_value})")
        return

    if '-' in field:
        match = _RANGE_RE.match(field)
        if not match:
            raise ScheduleError(f"invalid range: {field}")
        start, end = int(match.group(1)), int(match.group(2))
        if start < min_value or end > max_value or start > end:
            raise ScheduleError(f"range {field} out of bounds ({min_value}-{max_value})")
        return

    if ',' in field:
        for part in field.split(','):
            n = _to_int(part.strip())
            if n is None:
                raise ScheduleError(f"invalid list value: {part}")
            if n < min_value or n > max_value:
                raise ScheduleError(f"value {n} out of range ({min_value}-{max_value})")
        return

    n = _to_int(field)
    if n is None:
        raise ScheduleError(f"invalid value: {field}")
    if n < min_value or n > max_value:
        raise ScheduleError(f"value {n} out of range ({min_value}-{max_value})")


def build_cron_expression(minute: str, hour: str, dom: str, month: str, dow: str) -> str:
    """Build a cron expression from individual fields."""
    return f"{minute} {hour} {dom} {month} {dow}"
