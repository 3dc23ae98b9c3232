"""Resolution suggestions for stored conflicts.

Suggestions are plain strings meant for an administrator, e.g.
"Move 'Software Engineering' to Tuesday 10:00". A proposed slot or room never
clashes with another session's lecturer or room.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import time
from itertools import islice

from timetable.config import Settings, get_settings
from timetable.domain.models import Conflict, ConflictType, Session
from timetable.services.intervals import (
    DAY_NAMES,
    format_slot,
    from_minutes,
    overlaps,
    to_minutes,
)


def known_rooms(sessions: Iterable[Session]) -> dict[str, int]:
    """Map each room seen in *sessions* to the largest capacity declared for it."""
    rooms: dict[str, int] = {}
    for session in sessions:
        rooms[session.room] = max(rooms.get(session.room, 0), session.capacity)
    return rooms


def clashes(probe: Session, sessions: Iterable[Session]) -> bool:
    """True if *probe* shares a lecturer or room with an overlapping session."""
    for other in sessions:
        if other.id == probe.id:
            continue
        if not overlaps(probe.interval, other.interval):
            continue
        if other.lecturer_id == probe.lecturer_id or other.room == probe.room:
            return True
    return False


def free_slots(
    session: Session, sessions: list[Session], settings: Settings
) -> Iterator[tuple[int, time]]:
    duration = session.duration_minutes
    first = to_minutes(settings.day_start)
    last = to_minutes(settings.day_end)
    step = max(1, settings.slot_step_minutes)
    for day in DAY_NAMES:
        for start in range(first, last - duration + 1, step):
            if day == session.day_of_week and start == to_minutes(session.start_time):
                continue
            probe = session.model_copy(
                update={
                    "day_of_week": day,
                    "start_time": from_minutes(start),
                    "end_time": from_minutes(start + duration),
                }
            )
            if not clashes(probe, sessions):
                yield day, probe.start_time


def free_rooms(
    session: Session, sessions: list[Session], min_capacity: int
) -> list[tuple[str, int]]:
    """Rooms other than the session's own that are free during it and big enough."""
    out = []
    for room, capacity in known_rooms(sessions).items():
        if room == session.room or capacity < min_capacity:
            continue
        busy = any(
            other.room == room and other.id != session.id and overlaps(other.interval, session.interval)
            for other in sessions
        )
        if not busy:
            out.append((room, capacity))
    return sorted(out, key=lambda rc: (rc[1], rc[0]))


def suggest_resolutions(
    conflict: Conflict,
    sessions: list[Session],
    settings: Settings | None = None,
) -> list[str]:
    settings = settings or get_settings()
    by_id = {s.id: s for s in sessions}
    participants = [by_id[sid] for sid in conflict.session_ids if sid in by_id]
    if not participants:
        return []

    limit = settings.max_suggestions
    suggestions: list[str] = []

    if conflict.conflict_type == ConflictType.CAPACITY:
        session = participants[0]
        for room, capacity in free_rooms(session, sessions, session.student_count)[:limit]:
            suggestions.append(f"Use room {room} (capacity {capacity})")
        suggestions.append(f"Split '{session.title}' into two sessions")
        suggestions.append(f"Limit enrolment to room capacity ({session.capacity})")
        return suggestions

    # Move the session that starts later; on a tie, the second of the pair
    target = max(participants, key=lambda s: (to_minutes(s.start_time), s.id))
    for day, start in islice(free_slots(target, sessions, settings), limit):
        suggestions.append(f"Move '{target.title}' to {format_slot(day, start)}")

    if conflict.conflict_type == ConflictType.ROOM:
        for room, capacity in free_rooms(target, sessions, target.student_count)[:limit]:
            suggestions.append(f"Use room {room} (capacity {capacity}) for '{target.title}'")
    elif conflict.conflict_type == ConflictType.LECTURER:
        suggestions.append(f"Assign a different lecturer to '{target.title}'")

    return suggestions
