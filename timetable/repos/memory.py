"""In-memory repositories for sessions, conflicts and the activity log."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import ValidationError

from timetable.domain.models import (
    ActivityEntry,
    Conflict,
    Session,
    SessionDraft,
    SessionPatch,
)
from timetable.errors import (
    ConflictNotFound,
    ScheduleValidationError,
    SessionNotFound,
    StaleVersionError,
)


def _validation_message(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err['loc']) or 'session'}: {err['msg']}"
        for err in exc.errors()
    )


class SessionRepository:
    """Dict-backed store for Session instances, keyed by id.

    When any of *departments*, *lecturers* or *rooms* is given, sessions
    referencing an id outside that set are rejected.
    """

    def __init__(
        self,
        departments: set[str] | None = None,
        lecturers: set[str] | None = None,
        rooms: set[str] | None = None,
    ) -> None:
        self._store: dict[str, Session] = {}
        self._known = {
            "department_id": departments,
            "lecturer_id": lecturers,
            "room": rooms,
        }

    def _check_references(self, session: Session) -> None:
        for field, known in self._known.items():
            value = getattr(session, field)
            if known is not None and value not in known:
                raise ScheduleValidationError(f"Unknown {field} reference: {value!r}")

    def list(self) -> list[Session]:
        return list(self._store.values())

    def get(self, session_id: str) -> Session | None:
        return self._store.get(session_id)

    def require(self, session_id: str) -> Session:
        session = self._store.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session

    def create(self, draft: SessionDraft | dict) -> Session:
        try:
            if isinstance(draft, dict):
                draft = SessionDraft(**draft)
            session = draft.to_session()
        except ValidationError as exc:
            raise ScheduleValidationError(_validation_message(exc)) from exc
        self._check_references(session)
        self._store[session.id] = session
        return session

    def update(
        self,
        session_id: str,
        fields: SessionPatch | dict,
        expected_version: int | None = None,
    ) -> Session:
        """Apply a partial update and bump the version.

        Nothing is written unless the merged session validates and the
        version check passes.
        """
        current = self.require(session_id)
        try:
            patch = fields if isinstance(fields, SessionPatch) else SessionPatch(**fields)
            if expected_version is None:
                expected_version = patch.expected_version
            if expected_version is not None and expected_version != current.version:
                raise StaleVersionError(session_id, expected_version, current.version)
            data = patch.apply_to(current)
            data.update(id=current.id, created_at=current.created_at, version=current.version + 1)
            updated = Session(**data)
        except ValidationError as exc:
            raise ScheduleValidationError(_validation_message(exc)) from exc
        self._check_references(updated)
        self._store[session_id] = updated
        return updated

    def delete(self, session_id: str) -> None:
        if self._store.pop(session_id, None) is None:
            raise SessionNotFound(session_id)

    def clear(self) -> None:
        self._store.clear()


class ConflictRepository:
    """Dict-backed store for Conflict records, keyed by id.

    Listing order is insertion order, so conflicts that persist across
    unrelated edits keep their position.
    """

    def __init__(self) -> None:
        self._store: dict[str, Conflict] = {}

    def list(self, unresolved_only: bool = False) -> list[Conflict]:
        conflicts = list(self._store.values())
        if unresolved_only:
            return [c for c in conflicts if not c.resolved]
        return conflicts

    def list_for_session(self, session_id: str, unresolved_only: bool = True) -> list[Conflict]:
        return [c for c in self.list(unresolved_only) if c.involves(session_id)]

    def get(self, conflict_id: str) -> Conflict | None:
        return self._store.get(conflict_id)

    def upsert(self, conflict: Conflict) -> None:
        self._store[conflict.id] = conflict

    def delete(self, conflict_id: str) -> None:
        self._store.pop(conflict_id, None)

    def mark_resolved(self, conflict_id: str, notes: str | None = None) -> Conflict:
        conflict = self._store.get(conflict_id)
        if conflict is None:
            raise ConflictNotFound(conflict_id)
        resolved = conflict.model_copy(
            update={
                "resolved": True,
                "resolution_notes": notes,
                "resolved_at": datetime.now(timezone.utc),
            }
        )
        self._store[conflict_id] = resolved
        return resolved

    def clear(self) -> None:
        self._store.clear()


class ActivityRepository:
    """List-backed store for ActivityEntry instances."""

    def __init__(self) -> None:
        self._entries: list[ActivityEntry] = []

    def add(self, entry: ActivityEntry) -> None:
        self._entries.append(entry)

    def list_recent(self, limit: int | None = None) -> list[ActivityEntry]:
        entries = list(reversed(self._entries))
        return entries[:limit] if limit is not None else entries

    def list_for_session(self, session_id: str) -> list[ActivityEntry]:
        return sorted(
            [e for e in self._entries if e.session_id == session_id],
            key=lambda e: e.timestamp,
        )

    def clear(self) -> None:
        self._entries.clear()
