"""FastAPI application — HTTP entry point for the timetable conflict engine."""

from __future__ import annotations

from fastapi import FastAPI, Query, Request, Response
from fastapi.responses import JSONResponse

from timetable.config import configure_logging, get_settings
from timetable.domain.bus import EventBus
from timetable.domain.handlers import HandlerRegistry
from timetable.domain.models import (
    ActivityEntry,
    Conflict,
    ConflictSummary,
    MoveRequest,
    RescanResult,
    ResolveRequest,
    Session,
    SessionDraft,
    SessionPatch,
)
from timetable.errors import (
    ConflictNotFound,
    ScheduleValidationError,
    SessionNotFound,
    StaleVersionError,
    TimetableError,
)
from timetable.repos.memory import ActivityRepository, ConflictRepository, SessionRepository
from timetable.services.pipeline import SchedulePipeline

configure_logging()

app = FastAPI(title="Timetable Conflict Service")

# ── Singletons (created at import time for simplicity) ────────────────
event_bus = EventBus()
session_repo = SessionRepository()
conflict_repo = ConflictRepository()
activity_repo = ActivityRepository()

handler_registry = HandlerRegistry(bus=event_bus, activity_repo=activity_repo)
pipeline = SchedulePipeline(
    sessions=session_repo,
    conflicts=conflict_repo,
    bus=event_bus,
    settings=get_settings(),
)

_STATUS_CODES: dict[type[TimetableError], int] = {
    ScheduleValidationError: 422,
    SessionNotFound: 404,
    ConflictNotFound: 404,
    StaleVersionError: 409,
}


@app.exception_handler(TimetableError)
def _timetable_error(request: Request, exc: TimetableError) -> JSONResponse:
    status_code = next(
        (code for kind, code in _STATUS_CODES.items() if isinstance(exc, kind)), 500
    )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# ── Sessions ──────────────────────────────────────────────────────────


@app.get("/sessions", response_model=list[Session])
def list_sessions() -> list[Session]:
    """Return all sessions."""
    return session_repo.list()


@app.post("/sessions", response_model=Session, status_code=201)
def create_session(draft: SessionDraft) -> Session:
    """Create a session and record any conflicts it introduces."""
    return pipeline.create(draft)


@app.get("/sessions/{session_id}", response_model=Session)
def get_session(session_id: str) -> Session:
    return session_repo.require(session_id)


@app.patch("/sessions/{session_id}", response_model=Session)
def update_session(session_id: str, patch: SessionPatch) -> Session:
    return pipeline.update(session_id, patch)


@app.post("/sessions/{session_id}/move", response_model=Session)
def move_session(session_id: str, body: MoveRequest) -> Session:
    """Move a session to another day/time (and optionally room)."""
    return pipeline.move(
        session_id,
        day_of_week=body.day_of_week,
        start_time=body.start_time,
        end_time=body.end_time,
        room=body.room,
        expected_version=body.expected_version,
    )


@app.post("/sessions/{session_id}/duplicate", response_model=Session, status_code=201)
def duplicate_session(session_id: str) -> Session:
    return pipeline.duplicate(session_id)


@app.delete("/sessions/{session_id}", status_code=204)
def delete_session(session_id: str) -> Response:
    pipeline.delete(session_id)
    return Response(status_code=204)


# ── Conflicts ─────────────────────────────────────────────────────────


@app.get("/conflicts", response_model=list[Conflict])
def list_conflicts(unresolved_only: bool = False) -> list[Conflict]:
    return conflict_repo.list(unresolved_only=unresolved_only)


@app.get("/conflicts/summary", response_model=ConflictSummary)
def conflict_summary() -> ConflictSummary:
    """Counts of unresolved conflicts by type and severity."""
    return pipeline.summary()


@app.post("/conflicts/rescan", response_model=RescanResult)
def rescan_conflicts() -> RescanResult:
    """Recompute every conflict from scratch."""
    return pipeline.rescan()


@app.post("/conflicts/{conflict_id}/resolve", response_model=Conflict)
def resolve_conflict(conflict_id: str, body: ResolveRequest | None = None) -> Conflict:
    notes = body.notes if body is not None else None
    return pipeline.resolve(conflict_id, notes)


@app.get("/conflicts/{conflict_id}/suggestions", response_model=list[str])
def conflict_suggestions(conflict_id: str) -> list[str]:
    return pipeline.suggestions(conflict_id)


# ── Activity ──────────────────────────────────────────────────────────


@app.get("/activity", response_model=list[ActivityEntry])
def list_activity(
    session_id: str | None = None,
    limit: int | None = Query(default=None, ge=1),
) -> list[ActivityEntry]:
    """Recent activity, newest first, or one session's history in order."""
    if session_id is not None:
        return activity_repo.list_for_session(session_id)
    return activity_repo.list_recent(limit)
