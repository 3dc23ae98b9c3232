"""Session mutations and the conflict bookkeeping that follows them.

Every mutation runs under one re-entrant lock, so detection always sees a
consistent snapshot. The session write commits first; conflict detection
and reconciliation follow. If they fail, the write stands, the error is
logged and ``needs_rescan`` is set so the next :meth:`SchedulePipeline.rescan`
repairs the conflict store.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import Counter
from typing import Any, Callable

from timetable.config import Settings, get_settings
from timetable.domain.bus import EventBus
from timetable.domain.events import (
    ConflictResolved,
    ConflictsCleared,
    ConflictsDetected,
    SessionCreated,
    SessionDeleted,
    SessionUpdated,
)
from timetable.domain.models import (
    Conflict,
    ConflictSummary,
    ReconcilePlan,
    RescanResult,
    Session,
    SessionDraft,
    SessionPatch,
)
from timetable.errors import ConflictNotFound, StoreInconsistency, TransientStoreError
from timetable.repos.memory import ConflictRepository, SessionRepository
from timetable.services.detector import detect_full, detect_incremental
from timetable.services.reconcile import find_orphans, reconcile
from timetable.services.suggestions import suggest_resolutions

logger = logging.getLogger(__name__)

MOVE_FIELDS = {"day_of_week", "start_time", "end_time", "room"}


class SchedulePipeline:
    """Create, update, move and delete sessions while keeping conflicts current."""

    def __init__(
        self,
        sessions: SessionRepository,
        conflicts: ConflictRepository,
        bus: EventBus,
        settings: Settings | None = None,
    ) -> None:
        self.sessions = sessions
        self.conflicts = conflicts
        self.bus = bus
        self.settings = settings or get_settings()
        self.policy = self.settings.severity_policy()
        self.needs_rescan = False
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Store access
    # ------------------------------------------------------------------

    def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Call a repository method, retrying on TransientStoreError only."""
        attempts = max(1, self.settings.store_retry_attempts)
        backoff = max(0.0, self.settings.store_retry_backoff_seconds)
        for attempt in range(1, attempts + 1):
            try:
                return fn(*args, **kwargs)
            except TransientStoreError:
                if attempt >= attempts:
                    raise
                logger.warning(
                    "Transient store failure in %s (attempt %d/%d), retrying",
                    getattr(fn, "__name__", fn),
                    attempt,
                    attempts,
                )
                if backoff > 0:
                    time.sleep(backoff * attempt)

    def _apply(self, plan: ReconcilePlan, session_id: str | None) -> None:
        for conflict in plan.to_delete:
            self._call(self.conflicts.delete, conflict.id)
        for conflict in plan.to_update:
            self._call(self.conflicts.upsert, conflict)
        for conflict in plan.to_insert:
            self._call(self.conflicts.upsert, conflict)

        if plan.to_delete:
            self.bus.publish(
                ConflictsCleared(
                    session_id=session_id,
                    conflict_ids=[c.id for c in plan.to_delete],
                )
            )
        if plan.to_insert:
            self.bus.publish(
                ConflictsDetected(
                    session_id=session_id,
                    conflict_ids=[c.id for c in plan.to_insert],
                    conflict_types=[c.conflict_type.value for c in plan.to_insert],
                )
            )

    def _prune_orphans(self, stored: list[Conflict], session_ids: set[str]) -> list[Conflict]:
        """Delete stored conflicts naming unknown sessions; return the rest."""
        orphans = find_orphans(stored, session_ids)
        for conflict, missing in orphans:
            logger.warning(
                "Pruning orphaned conflict: %s", StoreInconsistency(conflict.id, missing)
            )
            self._call(self.conflicts.delete, conflict.id)
        orphan_ids = {conflict.id for conflict, _ in orphans}
        return [c for c in stored if c.id not in orphan_ids]

    def _refresh(self, session: Session, before: Session | None = None) -> None:
        """Incremental detection + reconciliation for one changed session."""
        try:
            snapshot = self._call(self.sessions.list)
            candidates = detect_incremental(session, snapshot, self.policy)
            existing = self._prune_orphans(
                self._call(self.conflicts.list_for_session, session.id),
                {s.id for s in snapshot},
            )
            plan = reconcile(candidates, existing)
            self._apply(plan, session.id)
            if before is not None:
                previous = {c.key for c in detect_incremental(before, snapshot, self.policy)}
                current = {c.key for c in candidates}
                logger.info(
                    "Session %s updated: %d conflict(s) cleared, %d introduced",
                    session.id,
                    len(previous - current),
                    len(current - previous),
                )
            else:
                logger.info(
                    "Session %s reconciled: +%d/-%d conflict(s)",
                    session.id,
                    len(plan.to_insert),
                    len(plan.to_delete),
                )
        except Exception:
            logger.exception(
                "Conflict detection failed for session %s; full rescan required", session.id
            )
            self.needs_rescan = True

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create(self, draft: SessionDraft | dict) -> Session:
        with self._lock:
            session = self._call(self.sessions.create, draft)
            logger.info("Created session %s (%s)", session.id, session.title)
            self.bus.publish(SessionCreated(session_id=session.id, title=session.title))
            self._refresh(session)
            return session

    def update(
        self,
        session_id: str,
        patch: SessionPatch | dict,
        expected_version: int | None = None,
    ) -> Session:
        """Edit a session. Both pre- and post-image are checked for conflicts."""
        with self._lock:
            before = self._call(self.sessions.require, session_id)
            after = self._call(self.sessions.update, session_id, patch, expected_version)
            changed = [
                field
                for field in Session.model_fields
                if field != "version" and getattr(before, field) != getattr(after, field)
            ]
            self.bus.publish(
                SessionUpdated(
                    session_id=session_id,
                    changed_fields=changed,
                    moved=bool(MOVE_FIELDS.intersection(changed)),
                    version=after.version,
                )
            )
            self._refresh(after, before=before)
            return after

    def move(
        self,
        session_id: str,
        day_of_week: int | str,
        start_time,
        end_time=None,
        room: str | None = None,
        expected_version: int | None = None,
    ) -> Session:
        """Move a session in time (and optionally room) as a single update.

        Without *end_time* the session keeps its duration.
        """
        fields: dict[str, Any] = {"day_of_week": day_of_week, "start_time": start_time}
        if end_time is not None:
            fields["end_time"] = end_time
        if room is not None:
            fields["room"] = room
        return self.update(session_id, fields, expected_version)

    def duplicate(self, session_id: str) -> Session:
        with self._lock:
            source = self._call(self.sessions.require, session_id)
            data = source.model_dump(exclude={"id", "created_at", "version"})
            data["title"] = f"{source.title} (Copy)"
            return self.create(SessionDraft(**data))

    def delete(self, session_id: str) -> None:
        """Delete a session and drop every unresolved conflict naming it."""
        with self._lock:
            session = self._call(self.sessions.require, session_id)
            self._call(self.sessions.delete, session_id)
            logger.info("Deleted session %s (%s)", session_id, session.title)
            self.bus.publish(SessionDeleted(session_id=session_id, title=session.title))
            try:
                stale = self._call(self.conflicts.list_for_session, session_id)
                self._apply(ReconcilePlan(to_delete=stale), session_id)
            except Exception:
                logger.exception(
                    "Dropping conflicts for deleted session %s failed; full rescan required",
                    session_id,
                )
                self.needs_rescan = True

    def resolve(self, conflict_id: str, notes: str | None = None) -> Conflict:
        """Mark a conflict resolved. It stays stored as history."""
        with self._lock:
            conflict = self._call(self.conflicts.mark_resolved, conflict_id, notes)
            logger.info("Conflict %s resolved", conflict_id)
            self.bus.publish(
                ConflictResolved(
                    conflict_id=conflict_id,
                    session_ids=list(conflict.session_ids),
                    notes=notes,
                )
            )
            return conflict

    # ------------------------------------------------------------------
    # Full rescan and read helpers
    # ------------------------------------------------------------------

    def rescan(self) -> RescanResult:
        """Recompute every conflict from a consistent snapshot of all sessions."""
        with self._lock:
            snapshot = self._call(self.sessions.list)
            stored = self._call(self.conflicts.list, True)

            remaining = self._prune_orphans(stored, {s.id for s in snapshot})
            plan = reconcile(detect_full(snapshot, self.policy), remaining)
            self._apply(plan, None)
            self.needs_rescan = False

            result = RescanResult(
                inserted=len(plan.to_insert),
                deleted=len(plan.to_delete),
                updated=len(plan.to_update),
                orphans_pruned=len(stored) - len(remaining),
                unresolved=len(self._call(self.conflicts.list, True)),
            )
            logger.info(
                "Full rescan over %d session(s): +%d/-%d conflict(s), %d orphan(s) pruned",
                len(snapshot),
                result.inserted,
                result.deleted,
                result.orphans_pruned,
            )
            return result

    def summary(self) -> ConflictSummary:
        unresolved = self._call(self.conflicts.list, True)
        return ConflictSummary(
            total=len(unresolved),
            by_type=dict(Counter(c.conflict_type.value for c in unresolved)),
            by_severity=dict(Counter(c.severity.value for c in unresolved)),
        )

    def suggestions(self, conflict_id: str) -> list[str]:
        conflict = self._call(self.conflicts.get, conflict_id)
        if conflict is None:
            raise ConflictNotFound(conflict_id)
        return suggest_resolutions(conflict, self._call(self.sessions.list), self.settings)
