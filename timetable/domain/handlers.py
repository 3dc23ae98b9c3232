"""Domain event handlers that keep the activity log, wired up at startup."""

from __future__ import annotations

from timetable.domain.bus import EventBus
from timetable.domain.events import (
    ConflictResolved,
    ConflictsCleared,
    ConflictsDetected,
    SessionCreated,
    SessionDeleted,
    SessionUpdated,
)
from timetable.domain.models import ActivityEntry, ActivityKind
from timetable.repos.memory import ActivityRepository


class HandlerRegistry:
    """Wires domain-event handlers to the bus with access to the activity log."""

    def __init__(self, bus: EventBus, activity_repo: ActivityRepository) -> None:
        self.bus = bus
        self.activity_repo = activity_repo
        self._register()

    def _register(self) -> None:
        self.bus.subscribe(SessionCreated, self.on_session_created)
        self.bus.subscribe(SessionUpdated, self.on_session_updated)
        self.bus.subscribe(SessionDeleted, self.on_session_deleted)
        self.bus.subscribe(ConflictsDetected, self.on_conflicts_detected)
        self.bus.subscribe(ConflictsCleared, self.on_conflicts_cleared)
        self.bus.subscribe(ConflictResolved, self.on_conflict_resolved)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def on_session_created(self, event: SessionCreated) -> None:
        self.activity_repo.add(
            ActivityEntry(
                kind=ActivityKind.SESSION_CREATED,
                session_id=event.session_id,
                payload={"title": event.title},
            )
        )

    def on_session_updated(self, event: SessionUpdated) -> None:
        kind = ActivityKind.SESSION_MOVED if event.moved else ActivityKind.SESSION_UPDATED
        self.activity_repo.add(
            ActivityEntry(
                kind=kind,
                session_id=event.session_id,
                payload={"changed_fields": event.changed_fields, "version": event.version},
            )
        )

    def on_session_deleted(self, event: SessionDeleted) -> None:
        self.activity_repo.add(
            ActivityEntry(
                kind=ActivityKind.SESSION_DELETED,
                session_id=event.session_id,
                payload={"title": event.title},
            )
        )

    def on_conflicts_detected(self, event: ConflictsDetected) -> None:
        self.activity_repo.add(
            ActivityEntry(
                kind=ActivityKind.CONFLICT_DETECTED,
                session_id=event.session_id,
                payload={
                    "conflict_ids": event.conflict_ids,
                    "conflict_types": event.conflict_types,
                },
            )
        )

    def on_conflicts_cleared(self, event: ConflictsCleared) -> None:
        self.activity_repo.add(
            ActivityEntry(
                kind=ActivityKind.CONFLICT_CLEARED,
                session_id=event.session_id,
                payload={"conflict_ids": event.conflict_ids},
            )
        )

    def on_conflict_resolved(self, event: ConflictResolved) -> None:
        # One entry per participant so each session's history shows it
        for session_id in event.session_ids:
            self.activity_repo.add(
                ActivityEntry(
                    kind=ActivityKind.CONFLICT_RESOLVED,
                    session_id=session_id,
                    payload={"conflict_id": event.conflict_id, "notes": event.notes},
                )
            )
