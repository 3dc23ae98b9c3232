"""Tests for the pairwise and capacity conflict rules."""

from __future__ import annotations

from datetime import time

import pytest
from pydantic import ValidationError

from timetable.domain.models import ConflictType, Session, SessionType, Severity
from timetable.services.rules import (
    SeverityPolicy,
    capacity_conflict,
    classify_pair,
    is_exact_duplicate,
)


def _make_session(**overrides) -> Session:
    defaults = dict(
        id="A",
        title="Data Structures",
        session_type=SessionType.LECTURE,
        department_id="CS",
        lecturer_id="L1",
        room="R1",
        day_of_week=1,
        start_time=time(9, 0),
        end_time=time(11, 0),
        capacity=100,
        student_count=85,
    )
    defaults.update(overrides)
    return Session(**defaults)


# ---------------------------------------------------------------------------
# Pairwise rules
# ---------------------------------------------------------------------------


def test_lecturer_double_booking_half_overlap_is_high():
    a = _make_session()
    b = _make_session(
        id="B", title="Software Engineering", room="R2",
        start_time=time(10, 0), end_time=time(12, 0), capacity=80, student_count=72,
    )
    conflict = classify_pair(a, b)
    assert conflict is not None
    assert conflict.conflict_type == ConflictType.LECTURER
    assert conflict.severity == Severity.HIGH
    assert (conflict.session_id_1, conflict.session_id_2) == ("A", "B")


def test_lecturer_small_overlap_is_medium():
    a = _make_session()
    b = _make_session(id="B", room="R2", start_time=time(10, 30), end_time=time(12, 30))
    conflict = classify_pair(a, b)
    assert conflict.conflict_type == ConflictType.LECTURER
    assert conflict.severity == Severity.MEDIUM


def test_classification_is_symmetric():
    a = _make_session()
    b = _make_session(id="B", room="R2", start_time=time(10, 0), end_time=time(12, 0))
    assert classify_pair(a, b) == classify_pair(b, a)


def test_same_room_different_lecturer_is_room_conflict():
    a = _make_session()
    b = _make_session(id="B", lecturer_id="L2", department_id="EE",
                      start_time=time(10, 0), end_time=time(12, 0))
    conflict = classify_pair(a, b)
    assert conflict.conflict_type == ConflictType.ROOM
    assert conflict.severity == Severity.HIGH


def test_lecturer_wins_over_room():
    """Same lecturer and same room yields a single lecturer conflict."""
    a = _make_session()
    b = _make_session(id="B", title="Other", start_time=time(10, 0), end_time=time(12, 0))
    conflict = classify_pair(a, b)
    assert conflict.conflict_type == ConflictType.LECTURER


def test_exact_duplicate_is_critical_room_conflict():
    a = _make_session()
    b = _make_session(id="B")
    assert is_exact_duplicate(a, b)
    conflict = classify_pair(a, b)
    assert conflict.conflict_type == ConflictType.ROOM
    assert conflict.severity == Severity.CRITICAL


def test_same_department_overlap_is_low():
    a = _make_session()
    b = _make_session(id="B", lecturer_id="L2", room="R2", start_time=time(10, 0), end_time=time(12, 0))
    conflict = classify_pair(a, b)
    assert conflict.conflict_type == ConflictType.OVERLAP
    assert conflict.severity == Severity.LOW


def test_department_overlap_can_be_switched_off():
    a = _make_session()
    b = _make_session(id="B", lecturer_id="L2", room="R2", start_time=time(10, 0), end_time=time(12, 0))
    policy = SeverityPolicy(flag_department_overlap=False)
    assert classify_pair(a, b, policy) is None


def test_unrelated_overlap_is_not_a_conflict():
    a = _make_session()
    b = _make_session(id="B", lecturer_id="L2", room="R2", department_id="EE")
    assert classify_pair(a, b) is None


def test_boundary_touch_same_room_is_not_a_conflict():
    a = _make_session(end_time=time(10, 0))
    b = _make_session(id="B", lecturer_id="L2", start_time=time(10, 0), end_time=time(11, 0))
    assert classify_pair(a, b) is None


def test_session_never_conflicts_with_itself():
    a = _make_session()
    assert classify_pair(a, a) is None


def test_high_overlap_ratio_is_configurable():
    a = _make_session()
    b = _make_session(id="B", room="R2", start_time=time(10, 0), end_time=time(12, 0))
    policy = SeverityPolicy(high_overlap_ratio=0.75)
    assert classify_pair(a, b, policy).severity == Severity.MEDIUM


# ---------------------------------------------------------------------------
# Capacity
# ---------------------------------------------------------------------------


def test_capacity_overrun_flagged_without_other_sessions():
    session = _make_session(capacity=30, student_count=40)
    conflict = capacity_conflict(session)
    assert conflict is not None
    assert conflict.conflict_type == ConflictType.CAPACITY
    assert conflict.session_ids == ("A",)
    assert conflict.severity == Severity.HIGH


@pytest.mark.parametrize(
    "count, expected",
    [(32, Severity.LOW), (36, Severity.MEDIUM), (38, Severity.HIGH)],
)
def test_capacity_severity_scales_with_overrun(count, expected):
    session = _make_session(capacity=30, student_count=count)
    assert capacity_conflict(session).severity == expected


def test_capacity_exactly_full_is_fine():
    assert capacity_conflict(_make_session(capacity=30, student_count=30)) is None


def test_zero_capacity_with_students_is_high():
    assert capacity_conflict(_make_session(capacity=0, student_count=1)).severity == Severity.HIGH


def test_student_count_above_capacity_is_not_a_validation_error():
    session = _make_session(capacity=10, student_count=500)
    assert session.student_count == 500


def test_session_with_end_before_start_is_invalid():
    with pytest.raises(ValidationError):
        _make_session(start_time=time(11, 0), end_time=time(9, 0))
