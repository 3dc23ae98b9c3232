"""Domain events emitted by the mutation pipeline."""

from __future__ import annotations

from pydantic import BaseModel, Field


class SessionCreated(BaseModel):
    """Fired when a new Session is persisted."""

    session_id: str
    title: str


class SessionUpdated(BaseModel):
    """Fired after an edit or a move has been persisted."""

    session_id: str
    changed_fields: list[str] = Field(default_factory=list)
    moved: bool = False
    version: int


class SessionDeleted(BaseModel):
    session_id: str
    title: str


class ConflictsDetected(BaseModel):
    """Fired when reconciliation inserts new conflict records."""

    session_id: str | None = None
    conflict_ids: list[str]
    conflict_types: list[str] = Field(default_factory=list)


class ConflictsCleared(BaseModel):
    """Fired when stored conflicts are removed because their cause is gone."""

    session_id: str | None = None
    conflict_ids: list[str]


class ConflictResolved(BaseModel):
    """Fired when an administrator marks a conflict as resolved."""

    conflict_id: str
    session_ids: list[str]
    notes: str | None = None
