"""Cron expression parsing for APScheduler triggers."""

import logging
from typing import Optional

from apscheduler.triggers.cron import CronTrigger

from price_tracker.errors import InvalidCronError

logger = logging.getLogger(__name__)

# Cron numbering: 0 and 7 are Sunday
CRON_DAY_NAMES = ("sun", "mon", "tue", "wed", "thu", "fri", "sat")


def _translate_day_of_week(field: str) -> str:
    """
    Rewrite a numeric cron day-of-week field using day names.

    APScheduler counts Monday as 0, cron counts Sunday as 0. Fields that
    already use names are returned unchanged.
    """
    if field in ("*", "?"):
        return "*"

    days: set[int] = set()
    for part in field.split(","):
        base, _, step_text = part.partition("/")
        step = int(step_text) if step_text else 1
        if base == "*":
            start, end = 0, 6
        elif "-" in base:
            first, _, last = base.partition("-")
            if not (first.isdigit() and last.isdigit()):
                return field
            start, end = int(first), int(last)
        elif base.isdigit():
            start = int(base)
            end = 6 if step_text else start
        else:
            return field

        if not (0 <= start <= 7 and 0 <= end <= 7) or start > end or step < 1:
            raise ValueError(f"Invalid day of week '{part}'")
        days.update(day % 7 for day in range(start, end + 1, step))

    return ",".join(CRON_DAY_NAMES[day] for day in sorted(days))


def parse_cron(
    expression: str, jitter: Optional[int] = None, timezone: str = "UTC"
) -> CronTrigger:
    """
    Build a trigger from a 6-field cron expression.

    Fields: second minute hour day-of-month month day-of-week.

    Raises:
        InvalidCronError: Wrong field count or a field APScheduler rejects
    """
    fields = (expression or "").split()
    if len(fields) != 6:
        raise InvalidCronError(expression, f"expected 6 fields, got {len(fields)}")

    second, minute, hour, day, month, day_of_week = fields
    try:
        return CronTrigger(
            second=second,
            minute=minute,
            hour=hour,
            day="*" if day == "?" else day,
            month=month,
            day_of_week=_translate_day_of_week(day_of_week),
            jitter=jitter,
            timezone=timezone,
        )
    except ValueError as e:
        raise InvalidCronError(expression, str(e)) from e


def is_valid_cron(expression: str) -> bool:
    try:
        parse_cron(expression)
    except InvalidCronError:
        return False
    return True


def interval_to_cron(minutes: int) -> str:
    """
    Derive a 6-field cron expression from a check interval.

    Intervals up to 59 minutes run every N minutes. Longer intervals run
    every floor(N / 60) hours, so 90 minutes becomes hourly. A day or more
    runs once a day at midnight.
    """
    minutes = max(1, int(minutes))
    if minutes <= 59:
        return f"0 */{minutes} * * * *"
    hours = minutes // 60
    if hours >= 24:
        return "0 0 0 * * *"
    return f"0 0 */{hours} * * *"
