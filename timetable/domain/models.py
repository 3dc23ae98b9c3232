"""Domain models for the timetable conflict engine."""

from __future__ import annotations

import uuid
from datetime import datetime, time, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, BeforeValidator, Field, model_validator

from timetable.errors import ScheduleValidationError
from timetable.services.intervals import (
    MINUTES_PER_DAY,
    TimeInterval,
    from_minutes,
    parse_day,
    to_minutes,
)


class SessionType(StrEnum):
    LECTURE = "lecture"
    LAB = "lab"
    TUTORIAL = "tutorial"
    EXAM = "exam"


class ConflictType(StrEnum):
    LECTURER = "lecturer"
    ROOM = "room"
    CAPACITY = "capacity"
    OVERLAP = "overlap"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ActivityKind(StrEnum):
    SESSION_CREATED = "session_created"
    SESSION_UPDATED = "session_updated"
    SESSION_MOVED = "session_moved"
    SESSION_DELETED = "session_deleted"
    CONFLICT_DETECTED = "conflict_detected"
    CONFLICT_CLEARED = "conflict_cleared"
    CONFLICT_RESOLVED = "conflict_resolved"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _coerce_day(value):
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return parse_day(value)
    return value


DayOfWeek = Annotated[int, BeforeValidator(_coerce_day)]


def _end_from_duration(start: time, duration_hours: float) -> time:
    end = to_minutes(start) + round(duration_hours * 60)
    if end >= MINUTES_PER_DAY:
        raise ScheduleValidationError("session must end on the day it starts")
    return from_minutes(end)


def _check_duration(start: time, end: time, duration_hours: float) -> None:
    if to_minutes(end) - to_minutes(start) != round(duration_hours * 60):
        raise ScheduleValidationError("end_time and duration_hours disagree")


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class Session(BaseModel):
    """One scheduled class occurrence (a row of the timetable)."""

    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1)
    session_type: SessionType = SessionType.LECTURE
    department_id: str = Field(min_length=1)
    lecturer_id: str = Field(min_length=1)
    room: str = Field(min_length=1)
    day_of_week: DayOfWeek
    start_time: time
    end_time: time
    capacity: int = Field(ge=0)
    student_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=_utcnow)
    version: int = Field(default=1, ge=1)

    @model_validator(mode="after")
    def _end_after_start(self) -> Session:
        if to_minutes(self.end_time) <= to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval.from_times(self.day_of_week, self.start_time, self.end_time)

    @property
    def duration_minutes(self) -> int:
        return self.interval.duration


class SessionDraft(BaseModel):
    """Input for creating a session. Give ``end_time``, ``duration_hours`` or both if they agree."""

    title: str = Field(min_length=1)
    session_type: SessionType = SessionType.LECTURE
    department_id: str = Field(min_length=1)
    lecturer_id: str = Field(min_length=1)
    room: str = Field(min_length=1)
    day_of_week: DayOfWeek
    start_time: time
    end_time: time | None = None
    duration_hours: float | None = Field(default=None, gt=0)
    capacity: int = Field(ge=0)
    student_count: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _resolve_end_time(self) -> SessionDraft:
        if self.end_time is None:
            if self.duration_hours is None:
                raise ValueError("either end_time or duration_hours is required")
            self.end_time = _end_from_duration(self.start_time, self.duration_hours)
        elif self.duration_hours is not None:
            _check_duration(self.start_time, self.end_time, self.duration_hours)
        if to_minutes(self.end_time) <= to_minutes(self.start_time):
            raise ValueError("end_time must be after start_time")
        return self

    def to_session(self) -> Session:
        return Session(**self.model_dump(exclude={"duration_hours"}))


class SessionPatch(BaseModel):
    """Partial update of a session; unset fields are left untouched."""

    title: str | None = None
    session_type: SessionType | None = None
    department_id: str | None = None
    lecturer_id: str | None = None
    room: str | None = None
    day_of_week: DayOfWeek | None = None
    start_time: time | None = None
    end_time: time | None = None
    duration_hours: float | None = Field(default=None, gt=0)
    capacity: int | None = None
    student_count: int | None = None
    expected_version: int | None = None

    def apply_to(self, session: Session) -> dict:
        """Return the merged field dict for *session* with this patch applied."""
        changes = self.model_dump(
            exclude_unset=True, exclude={"expected_version", "duration_hours"}
        )
        data = session.model_dump()
        data.update({k: v for k, v in changes.items() if v is not None})
        if self.duration_hours is not None and "end_time" in changes:
            _check_duration(data["start_time"], data["end_time"], self.duration_hours)
        elif self.duration_hours is not None:
            data["end_time"] = _end_from_duration(data["start_time"], self.duration_hours)
        elif "start_time" in changes and "end_time" not in changes:
            # Moving the start keeps the duration
            start = to_minutes(data["start_time"])
            data["end_time"] = from_minutes(start + session.duration_minutes)
        return data


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


ConflictKey = tuple[str, str | None, ConflictType]


class ConflictCandidate(BaseModel):
    """A conflict as computed by the detector, before it is stored."""

    session_id_1: str
    session_id_2: str | None = None
    conflict_type: ConflictType
    severity: Severity
    description: str = ""

    @property
    def key(self) -> ConflictKey:
        return (self.session_id_1, self.session_id_2, self.conflict_type)

    @property
    def session_ids(self) -> tuple[str, ...]:
        if self.session_id_2 is None:
            return (self.session_id_1,)
        return (self.session_id_1, self.session_id_2)

    def involves(self, session_id: str) -> bool:
        return session_id in self.session_ids


class Conflict(ConflictCandidate):
    """A stored conflict record."""

    id: str = Field(default_factory=_new_id)
    resolved: bool = False
    resolution_notes: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)
    resolved_at: datetime | None = None

    @classmethod
    def from_candidate(cls, candidate: ConflictCandidate) -> Conflict:
        return cls(**candidate.model_dump(include=set(ConflictCandidate.model_fields)))


class ReconcilePlan(BaseModel):
    to_insert: list[Conflict] = Field(default_factory=list)
    to_delete: list[Conflict] = Field(default_factory=list)
    # Persisting conflicts whose severity or description changed
    to_update: list[Conflict] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.to_insert and not self.to_delete and not self.to_update


class ActivityEntry(BaseModel):
    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    kind: ActivityKind
    session_id: str | None = None
    payload: dict = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class MoveRequest(BaseModel):
    day_of_week: DayOfWeek
    start_time: time
    end_time: time | None = None
    room: str | None = None
    expected_version: int | None = None


class ResolveRequest(BaseModel):
    notes: str | None = None


class ConflictSummary(BaseModel):
    total: int
    by_type: dict[str, int] = Field(default_factory=dict)
    by_severity: dict[str, int] = Field(default_factory=dict)


class RescanResult(BaseModel):
    inserted: int
    deleted: int
    updated: int = 0
    orphans_pruned: int
    unresolved: int
