"""Tests for reconciling detected conflicts against the stored ones."""

from __future__ import annotations

from timetable.domain.models import Conflict, ConflictCandidate, ConflictType, Severity
from timetable.services.reconcile import find_orphans, reconcile


def _candidate(a: str, b: str | None, kind: ConflictType = ConflictType.LECTURER) -> ConflictCandidate:
    return ConflictCandidate(
        session_id_1=a, session_id_2=b, conflict_type=kind, severity=Severity.HIGH
    )


def _stored(a: str, b: str | None, kind: ConflictType = ConflictType.LECTURER, **overrides) -> Conflict:
    return Conflict.from_candidate(_candidate(a, b, kind)).model_copy(update=overrides)


def _apply(stored: list[Conflict], plan) -> list[Conflict]:
    deleted = {c.id for c in plan.to_delete}
    return [c for c in stored if c.id not in deleted] + plan.to_insert


def test_new_candidate_is_inserted():
    plan = reconcile([_candidate("a", "b")], [])
    assert len(plan.to_insert) == 1
    assert plan.to_insert[0].key == ("a", "b", ConflictType.LECTURER)
    assert plan.to_insert[0].resolved is False
    assert plan.to_delete == []


def test_vanished_conflict_is_deleted_not_resolved():
    existing = [_stored("a", "b")]
    plan = reconcile([], existing)
    assert plan.to_insert == []
    assert plan.to_delete == existing
    assert existing[0].resolved is False


def test_persisting_conflict_keeps_identity_and_notes():
    existing = [_stored("a", "b", resolution_notes="talking to dept head")]
    plan = reconcile([_candidate("a", "b")], existing)
    assert plan.is_empty


def test_type_change_replaces_record():
    existing = [_stored("a", "b", ConflictType.ROOM)]
    plan = reconcile([_candidate("a", "b", ConflictType.LECTURER)], existing)
    assert [c.conflict_type for c in plan.to_insert] == [ConflictType.LECTURER]
    assert plan.to_delete == existing


def test_reconcile_is_idempotent():
    candidates = [_candidate("a", "b"), _candidate("c", None, ConflictType.CAPACITY)]
    existing = [_stored("x", "y")]
    first = reconcile(candidates, existing)
    assert not first.is_empty

    after = _apply(existing, first)
    second = reconcile(candidates, after)
    assert second.is_empty


def test_resolved_conflict_is_never_revived():
    resolved = _stored("a", "b", resolved=True, resolution_notes="moved lab")
    plan = reconcile([_candidate("a", "b")], [resolved])
    assert len(plan.to_insert) == 1
    assert plan.to_insert[0].id != resolved.id
    assert plan.to_delete == []


def test_duplicate_candidates_collapse_to_one_insert():
    plan = reconcile([_candidate("a", "b"), _candidate("a", "b")], [])
    assert len(plan.to_insert) == 1


def test_duplicate_stored_records_are_collapsed():
    first = _stored("a", "b")
    second = _stored("a", "b")
    plan = reconcile([_candidate("a", "b")], [first, second])
    assert plan.to_insert == []
    assert plan.to_delete == [second]


def test_find_orphans_reports_missing_sessions():
    healthy = _stored("a", "b")
    orphan = _stored("a", "gone")
    history = _stored("gone", "b", resolved=True)
    found = find_orphans([healthy, orphan, history], {"a", "b"})
    assert found == [(orphan, ["gone"])]


def test_changed_severity_is_refreshed_in_place():
    existing = [_stored("a", "b", severity=Severity.MEDIUM, resolution_notes="pending")]
    plan = reconcile([_candidate("a", "b")], existing)
    assert plan.to_insert == [] and plan.to_delete == []
    assert len(plan.to_update) == 1
    updated = plan.to_update[0]
    assert updated.id == existing[0].id
    assert updated.severity == Severity.HIGH
    assert updated.resolution_notes == "pending"
