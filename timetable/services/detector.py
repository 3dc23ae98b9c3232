"""Conflict detection over a set of sessions.

Both entry points are pure: they read sessions and return candidates. Storing
the result is the job of :mod:`timetable.services.reconcile`.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from timetable.domain.models import ConflictCandidate, Session
from timetable.services.rules import SeverityPolicy, capacity_conflict, classify_pair


def _sort_key(candidate: ConflictCandidate) -> tuple[str, str, str]:
    return (candidate.session_id_1, candidate.session_id_2 or "", candidate.conflict_type)


def detect_full(
    sessions: Iterable[Session], policy: SeverityPolicy | None = None
) -> list[ConflictCandidate]:
    """Evaluate every pair (and every capacity check) in *sessions*.

    Sessions are bucketed by day first; pairs on different days can never
    overlap. Output is sorted, so the same input always gives the same list.
    """
    by_day: dict[int, list[Session]] = defaultdict(list)
    candidates: list[ConflictCandidate] = []

    for session in sessions:
        by_day[session.day_of_week].append(session)
        capacity = capacity_conflict(session, policy)
        if capacity is not None:
            candidates.append(capacity)

    for day_sessions in by_day.values():
        for i in range(len(day_sessions)):
            for j in range(i + 1, len(day_sessions)):
                candidate = classify_pair(day_sessions[i], day_sessions[j], policy)
                if candidate is not None:
                    candidates.append(candidate)

    return sorted(candidates, key=_sort_key)


def detect_incremental(
    changed: Session,
    sessions: Iterable[Session],
    policy: SeverityPolicy | None = None,
) -> list[ConflictCandidate]:
    """Evaluate only the pairs involving *changed*.

    Any copy of *changed* inside *sessions* (same id) is skipped, so callers
    can pass the full set whether or not it already holds the new image.
    """
    candidates: list[ConflictCandidate] = []

    capacity = capacity_conflict(changed, policy)
    if capacity is not None:
        candidates.append(capacity)

    for other in sessions:
        if other.id == changed.id or other.day_of_week != changed.day_of_week:
            continue
        candidate = classify_pair(changed, other, policy)
        if candidate is not None:
            candidates.append(candidate)

    return sorted(candidates, key=_sort_key)
