"""Tests for day/time intervals and overlap arithmetic."""

from datetime import time

import pytest

from timetable.errors import ScheduleValidationError
from timetable.services.intervals import (
    TimeInterval,
    format_slot,
    overlap_minutes,
    overlaps,
    parse_day,
    to_minutes,
)


def _iv(day: int, start: str, end: str) -> TimeInterval:
    return TimeInterval.from_times(day, time.fromisoformat(start), time.fromisoformat(end))


def test_to_minutes_ignores_seconds():
    assert to_minutes(time(9, 30, 59)) == 570


def test_partial_overlap():
    assert overlaps(_iv(1, "09:00", "11:00"), _iv(1, "10:00", "12:00"))
    assert overlap_minutes(_iv(1, "09:00", "11:00"), _iv(1, "10:00", "12:00")) == 60


def test_containment_overlap():
    assert overlap_minutes(_iv(2, "08:00", "12:00"), _iv(2, "09:00", "10:00")) == 60


def test_touching_boundary_does_not_overlap():
    """One session ends at 10:00 and the next starts at 10:00: no overlap."""
    a = _iv(1, "09:00", "10:00")
    b = _iv(1, "10:00", "11:00")
    assert not overlaps(a, b)
    assert not overlaps(b, a)
    assert overlap_minutes(a, b) == 0


def test_different_day_never_overlaps():
    assert not overlaps(_iv(1, "09:00", "11:00"), _iv(2, "09:00", "11:00"))


def test_zero_duration_is_rejected():
    with pytest.raises(ScheduleValidationError):
        _iv(1, "10:00", "10:00")


def test_end_before_start_is_rejected():
    with pytest.raises(ScheduleValidationError):
        _iv(1, "11:00", "10:00")


@pytest.mark.parametrize("day", [0, 6, 7])
def test_day_out_of_range_is_rejected(day):
    with pytest.raises(ScheduleValidationError):
        TimeInterval(day=day, start=540, end=600)


def test_parse_day_accepts_names_and_numbers():
    assert parse_day("Monday") == 1
    assert parse_day("friday") == 5
    assert parse_day("3") == 3
    assert parse_day(4) == 4
    with pytest.raises(ScheduleValidationError):
        parse_day("Saturday")


def test_format_slot():
    assert format_slot(2, time(14, 0)) == "Tuesday 14:00"
