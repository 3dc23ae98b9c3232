"""Rules deciding whether sessions conflict, and how badly.

Pairwise rules only apply to two distinct sessions whose intervals overlap.
At most one pairwise conflict is reported per pair, in priority order:

1. exact duplicate  -> room, critical
2. same lecturer    -> lecturer (beats room)
3. same room        -> room
4. same department  -> overlap, low

Capacity is a single-session rule and ignores every other session.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from timetable.domain.models import (
    ConflictCandidate,
    ConflictType,
    Session,
    Severity,
)
from timetable.services.intervals import DAY_NAMES, overlap_minutes

DUPLICATE_FIELDS = (
    "title",
    "session_type",
    "department_id",
    "lecturer_id",
    "room",
    "day_of_week",
    "start_time",
    "end_time",
)


class SeverityPolicy(BaseModel):
    """Tunable severity thresholds."""

    model_config = ConfigDict(frozen=True)

    high_overlap_ratio: float = Field(default=0.5, gt=0, le=1)
    capacity_low_ratio: float = Field(default=0.10, ge=0)
    capacity_medium_ratio: float = Field(default=0.25, ge=0)
    flag_department_overlap: bool = True


DEFAULT_POLICY = SeverityPolicy()


def is_exact_duplicate(a: Session, b: Session) -> bool:
    return a.id != b.id and all(getattr(a, f) == getattr(b, f) for f in DUPLICATE_FIELDS)


def _overlap_severity(a: Session, b: Session, minutes: int, policy: SeverityPolicy) -> Severity:
    shorter = min(a.duration_minutes, b.duration_minutes)
    if minutes >= policy.high_overlap_ratio * shorter:
        return Severity.HIGH
    return Severity.MEDIUM


def _window(a: Session, b: Session) -> str:
    start = max(a.start_time, b.start_time).strftime("%H:%M")
    end = min(a.end_time, b.end_time).strftime("%H:%M")
    return f"{DAY_NAMES[a.day_of_week]} {start}-{end}"


def classify_pair(
    a: Session, b: Session, policy: SeverityPolicy | None = None
) -> ConflictCandidate | None:
    """Classify the conflict between two sessions, or return None.

    The result is independent of argument order: ids are stored in ascending
    order so the pair always maps to the same key.
    """
    policy = policy or DEFAULT_POLICY
    if a.id == b.id:
        return None
    minutes = overlap_minutes(a.interval, b.interval)
    if minutes == 0:
        return None

    first, second = (a, b) if a.id < b.id else (b, a)
    titles = f"'{first.title}' and '{second.title}'"
    window = _window(first, second)

    if is_exact_duplicate(first, second):
        conflict_type = ConflictType.ROOM
        severity = Severity.CRITICAL
        description = f"Duplicate booking of room {first.room}: {titles} on {window}"
    elif first.lecturer_id == second.lecturer_id:
        conflict_type = ConflictType.LECTURER
        severity = _overlap_severity(first, second, minutes, policy)
        description = f"Lecturer {first.lecturer_id} is double-booked: {titles} on {window}"
    elif first.room == second.room:
        conflict_type = ConflictType.ROOM
        severity = _overlap_severity(first, second, minutes, policy)
        description = f"Room {first.room} is double-booked: {titles} on {window}"
    elif policy.flag_department_overlap and first.department_id == second.department_id:
        conflict_type = ConflictType.OVERLAP
        severity = Severity.LOW
        description = f"Department {first.department_id} sessions overlap: {titles} on {window}"
    else:
        return None

    return ConflictCandidate(
        session_id_1=first.id,
        session_id_2=second.id,
        conflict_type=conflict_type,
        severity=severity,
        description=description,
    )


def capacity_severity(session: Session, policy: SeverityPolicy | None = None) -> Severity:
    policy = policy or DEFAULT_POLICY
    if session.capacity == 0:
        return Severity.HIGH
    overrun = (session.student_count - session.capacity) / session.capacity
    if overrun <= policy.capacity_low_ratio:
        return Severity.LOW
    if overrun <= policy.capacity_medium_ratio:
        return Severity.MEDIUM
    return Severity.HIGH


def capacity_conflict(
    session: Session, policy: SeverityPolicy | None = None
) -> ConflictCandidate | None:
    if session.student_count <= session.capacity:
        return None
    return ConflictCandidate(
        session_id_1=session.id,
        conflict_type=ConflictType.CAPACITY,
        severity=capacity_severity(session, policy),
        description=(
            f"'{session.title}' expects {session.student_count} students "
            f"but room {session.room} holds {session.capacity}"
        ),
    )
