"""Day-of-week time intervals and overlap arithmetic.

Times are campus-local wall-clock times compared at minute granularity.
Intervals are half-open: ``[start, end)``. Two sessions that merely touch
(one ends at 10:00, the next starts at 10:00) do not overlap.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import time

from timetable.errors import ScheduleValidationError

DAY_NAMES = {
    1: "Monday",
    2: "Tuesday",
    3: "Wednesday",
    4: "Thursday",
    5: "Friday",
}

MINUTES_PER_DAY = 24 * 60


def to_minutes(value: time) -> int:
    """Return minutes since midnight, ignoring seconds."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ScheduleValidationError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def parse_day(value: int | str) -> int:
    """Accept 1-5 or an English weekday name ('Monday'..'Friday')."""
    if isinstance(value, str):
        text = value.strip()
        if text.isdigit():
            return parse_day(int(text))
        for number, name in DAY_NAMES.items():
            if name.lower() == text.lower():
                return number
        raise ScheduleValidationError(f"Unknown day of week: {value!r}")
    if value not in DAY_NAMES:
        raise ScheduleValidationError(f"day_of_week must be in 1-5, got {value}")
    return value


def format_slot(day: int, start: time) -> str:
    return f"{DAY_NAMES[day]} {start.strftime('%H:%M')}"


@dataclass(frozen=True)
class TimeInterval:
    day: int
    start: int
    end: int

    def __post_init__(self) -> None:
        if self.day not in DAY_NAMES:
            raise ScheduleValidationError(f"day_of_week must be in 1-5, got {self.day}")
        if self.end <= self.start:
            raise ScheduleValidationError("end time must be after start time")

    @classmethod
    def from_times(cls, day: int, start: time, end: time) -> TimeInterval:
        return cls(day=day, start=to_minutes(start), end=to_minutes(end))

    @property
    def duration(self) -> int:
        return self.end - self.start


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    return a.day == b.day and a.start < b.end and b.start < a.end


def overlap_minutes(a: TimeInterval, b: TimeInterval) -> int:
    """Length of the shared part of two intervals, 0 if they do not overlap."""
    if not overlaps(a, b):
        return 0
    return min(a.end, b.end) - max(a.start, b.start)
