"""Error types raised by the timetable engine and its repositories."""

from __future__ import annotations


class TimetableError(Exception):
    """Base class for all timetable errors."""


class ScheduleValidationError(TimetableError, ValueError):
    """Raised when a session is malformed (end <= start, day out of range, ...)."""


class SessionNotFound(TimetableError):
    """Raised when a mutation targets a session id that does not exist."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class ConflictNotFound(TimetableError):
    """Raised when a conflict id is unknown to the conflict repository."""

    def __init__(self, conflict_id: str) -> None:
        self.conflict_id = conflict_id
        super().__init__(f"Conflict {conflict_id} not found")


class StaleVersionError(TimetableError):
    """Raised when an update was computed against an outdated session version."""

    def __init__(self, session_id: str, expected: int, actual: int) -> None:
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Session {session_id} is at version {actual}, expected {expected}"
        )


class StoreInconsistency(TimetableError):
    """A stored conflict references sessions that no longer exist."""

    def __init__(self, conflict_id: str, missing_session_ids: list[str]) -> None:
        self.conflict_id = conflict_id
        self.missing_session_ids = missing_session_ids
        super().__init__(
            f"Conflict {conflict_id} references missing sessions: "
            f"{', '.join(missing_session_ids)}"
        )


class TransientStoreError(TimetableError):
    """A repository call failed for a reason worth retrying."""
