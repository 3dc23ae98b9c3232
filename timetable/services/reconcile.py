"""Diff freshly detected conflicts against the stored ones."""

from __future__ import annotations

from collections.abc import Iterable

from timetable.domain.models import Conflict, ConflictCandidate, ConflictKey, ReconcilePlan


def reconcile(
    candidates: Iterable[ConflictCandidate],
    existing: Iterable[Conflict],
) -> ReconcilePlan:
    """Compute which conflicts to insert and which to delete.

    * a candidate with no unresolved match (same pair + type) is inserted;
    * an unresolved conflict with no matching candidate is deleted, not
      resolved: its cause simply no longer holds;
    * unresolved conflicts still matched keep id, timestamp and notes; only
      a changed severity or description is refreshed (``to_update``);
    * resolved conflicts are history and never match, so a reappearing
      condition creates a fresh record.
    """
    unresolved: dict[ConflictKey, Conflict] = {}
    to_delete: list[Conflict] = []
    for conflict in existing:
        if conflict.resolved:
            continue
        if conflict.key in unresolved:
            # Duplicate record for the same pair + type; keep the oldest
            to_delete.append(conflict)
        else:
            unresolved[conflict.key] = conflict

    wanted: dict[ConflictKey, ConflictCandidate] = {}
    for candidate in candidates:
        wanted.setdefault(candidate.key, candidate)

    to_insert = [
        Conflict.from_candidate(candidate)
        for key, candidate in wanted.items()
        if key not in unresolved
    ]
    to_delete.extend(conflict for key, conflict in unresolved.items() if key not in wanted)

    to_update = []
    for key, conflict in unresolved.items():
        candidate = wanted.get(key)
        if candidate is None:
            continue
        if (conflict.severity, conflict.description) != (candidate.severity, candidate.description):
            to_update.append(
                conflict.model_copy(
                    update={"severity": candidate.severity, "description": candidate.description}
                )
            )
    return ReconcilePlan(to_insert=to_insert, to_delete=to_delete, to_update=to_update)


def find_orphans(conflicts: Iterable[Conflict], session_ids: set[str]) -> list[tuple[Conflict, list[str]]]:
    """Return unresolved conflicts pointing at sessions outside *session_ids*."""
    orphans = []
    for conflict in conflicts:
        if conflict.resolved:
            continue
        missing = [sid for sid in conflict.session_ids if sid not in session_ids]
        if missing:
            orphans.append((conflict, missing))
    return orphans
