"""Tests for cron parsing and interval derivation."""

import pytest
from apscheduler.triggers.cron import CronTrigger

from price_tracker.errors import InvalidCronError
from price_tracker.worker.cron import (
    _translate_day_of_week,
    interval_to_cron,
    is_valid_cron,
    parse_cron,
)


@pytest.mark.parametrize(
    "minutes, expected",
    [
        (0, "0 */1 * * * *"),
        (1, "0 */1 * * * *"),
        (15, "0 */15 * * * *"),
        (59, "0 */59 * * * *"),
        (60, "0 0 */1 * * *"),
        (90, "0 0 */1 * * *"),
        (120, "0 0 */2 * * *"),
        (1380, "0 0 */23 * * *"),
        (1440, "0 0 0 * * *"),
    ],
)
def test_interval_to_cron(minutes, expected):
    assert interval_to_cron(minutes) == expected


def test_parse_cron_returns_trigger():
    assert isinstance(parse_cron("0 */5 * * * *"), CronTrigger)
    assert isinstance(parse_cron("30 0 9 * * 1-5"), CronTrigger)


@pytest.mark.parametrize(
    "expression",
    ["", "bad", "* * * * *", "0 99 * * * *", "0 0 25 * * *", "0 0 0 * * 9"],
)
def test_parse_cron_rejects_invalid(expression):
    with pytest.raises(InvalidCronError):
        parse_cron(expression)
    assert not is_valid_cron(expression)


def test_day_of_week_uses_cron_numbering():
    assert _translate_day_of_week("0") == "sun"
    assert _translate_day_of_week("7") == "sun"
    assert _translate_day_of_week("1-5") == "mon,tue,wed,thu,fri"
    assert _translate_day_of_week("*/2") == "sun,tue,thu,sat"
    assert _translate_day_of_week("mon-fri") == "mon-fri"
    assert _translate_day_of_week("?") == "*"


def test_day_of_week_out_of_range():
    with pytest.raises(ValueError):
        _translate_day_of_week("8")
