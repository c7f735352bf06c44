"""
Tests for cron parsing, next-run computation and English rendering.
"""

from datetime import datetime, timedelta

import pytest

from pane_scheduler.cron import (
    ScheduleError,
    build_cron_expression,
    common_presets,
    cron_to_english,
    next_run,
    next_run_after,
    parse_duration,
    parse_schedule,
    validate_cron_field,
)


def local(*args) -> datetime:
    return datetime(*args).astimezone()


@pytest.mark.parametrize(
    "schedule, after, expected",
    [
        ("0 9 * * *", local(2026, 1, 5, 8, 30), local(2026, 1, 5, 9, 0)),
        ("*/15 * * * *", local(2026, 1, 5, 8, 31), local(2026, 1, 5, 8, 45)),
        ("0 9 * * 1-5", local(2026, 1, 9, 10, 0), local(2026, 1, 12, 9, 0)),
        ("30 14 1 * *", local(2026, 1, 5, 0, 0), local(2026, 2, 1, 14, 30)),
        ("@hourly", local(2026, 1, 5, 8, 30), local(2026, 1, 5, 9, 0)),
        ("@daily", local(2026, 1, 5, 8, 30), local(2026, 1, 6, 0, 0)),
    ],
)
def test_next_run_after(schedule, after, expected):
    assert next_run_after(schedule, after) == expected


def test_next_run_after_is_strictly_after():
    at_fire_time = local(2026, 1, 5, 9, 0)
    assert next_run_after("0 9 * * *", at_fire_time) == local(2026, 1, 6, 9, 0)


def test_day_of_week_uses_cron_numbering():
    sunday_noon = local(2026, 1, 4, 12, 0)

    # 1 is Monday in cron, not Tuesday
    assert next_run_after("0 6 * * 1", sunday_noon) == local(2026, 1, 5, 6, 0)
    # 0 and 7 are both Sunday
    assert next_run_after("0 0 * * 0", sunday_noon) == local(2026, 1, 11, 0, 0)
    assert next_run_after("0 0 * * 7", sunday_noon) == local(2026, 1, 11, 0, 0)
    assert next_run_after("0 6 * * MON", sunday_noon) == local(2026, 1, 5, 6, 0)


def test_restricted_day_fields_match_either():
    # Every 13th OR every Friday; 2026-01-02 is a Friday
    assert next_run_after("0 0 13 * 5", local(2026, 1, 1, 0, 0)) == local(2026, 1, 2, 0, 0)


def test_every_descriptor_adds_duration():
    after = local(2026, 1, 5, 8, 30, 15, 500000)
    assert next_run_after("@every 90m", after) == local(2026, 1, 5, 10, 0, 15)


def test_naive_reference_time_is_local():
    assert next_run_after("0 9 * * *", datetime(2026, 1, 5, 8, 30)) == local(2026, 1, 5, 9, 0)


@pytest.mark.parametrize(
    "schedule",
    ["not a cron", "* * * *", "61 * * * *", "0 25 * * *", "0 9 * * 8", "@every soon", "@sometimes"],
)
def test_invalid_expressions_raise(schedule):
    with pytest.raises(ScheduleError):
        next_run_after(schedule, local(2026, 1, 5, 8, 30))


def test_invalid_expression_message():
    with pytest.raises(ScheduleError, match="invalid cron expression"):
        parse_schedule("* * *")


def test_next_run_is_in_the_future():
    before = datetime.now().astimezone()
    assert next_run("* * * * *") > before
    assert next_run("* * * * *") - before <= timedelta(minutes=1, seconds=1)


def test_common_presets_are_valid():
    for preset in common_presets():
        parse_schedule(preset.expression)
        assert preset.label


@pytest.mark.parametrize(
    "expr, english",
    [
        ("*/1 * * * *", "Every minute"),
        ("*/15 * * * *", "Every 15 minutes"),
        ("0 * * * *", "Every hour"),
        ("5 * * * *", "Every hour at minute 5"),
        ("0 9 * * *", "Every day at 9:00 AM"),
        ("30 14 * * 1-5", "Weekdays at 2:30 PM"),
        ("0 6 * * 1", "Every Monday at 6:00 AM"),
        ("0 6 * * sat", "Every Saturday at 6:00 AM"),
        ("0 0 15 * *", "Day 15 of every month at 12:00 AM"),
        ("0 12 1 6 *", "12:00 PM, on day 1, in month 6"),
        ("@daily", "Every day at midnight"),
        ("@weekly", "Once a week (Sunday at midnight)"),
        ("@every 2h", "Every 2h"),
        ("bogus", "bogus"),
    ],
)
def test_cron_to_english(expr, english):
    assert cron_to_english(expr) == english


def test_validate_cron_field():
    validate_cron_field("*", 0, 59)
    validate_cron_field("*/5", 0, 59)
    validate_cron_field("1-5", 0, 6)
    validate_cron_field("1,15,30", 0, 59)
    validate_cron_field("23", 0, 23)

    with pytest.raises(ScheduleError, match="out of range"):
        validate_cron_field("24", 0, 23)
    with pytest.raises(ScheduleError, match="out of bounds"):
        validate_cron_field("5-1", 0, 6)
    with pytest.raises(ScheduleError, match="invalid step"):
        validate_cron_field("*/x", 0, 59)
    with pytest.raises(ScheduleError, match="invalid list value"):
        validate_cron_field("1,a", 0, 59)


def test_build_cron_expression():
    expr = build_cron_expression("0", "9", "*", "*", "1-5")
    assert expr == "0 9 * * 1-5"
    assert cron_to_english(expr) == "Weekdays at 9:00 AM"


@pytest.mark.parametrize(
    "text, expected",
    [
        ("60", timedelta(minutes=1)),
        ("30s", timedelta(seconds=30)),
        ("5m", timedelta(minutes=5)),
        ("1h30m", timedelta(hours=1, minutes=30)),
        ("1.5h", timedelta(minutes=90)),
        ("250ms", timedelta(milliseconds=250)),
    ],
)
def test_parse_duration(text, expected):
    assert parse_duration(text) == expected


@pytest.mark.parametrize("text", ["", "soon", "5 minutes", "m5", "1h and 5m"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ScheduleError):
        parse_duration(text)
