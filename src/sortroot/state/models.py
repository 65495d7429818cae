"""Journal and undo data models.

Journal records are decoded permissively: several historical key names are
accepted per field, unknown keys are ignored, and missing or unparsable optional fields are
backfilled. Records are always written with the canonical snake_case names.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

MOVED_STATUS = "moved"

UndoStatus = Literal["restored", "conflict", "missing", "skipped", "error"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


_DATETIME = TypeAdapter(datetime)


def _lenient_datetime(value: Any) -> datetime:
    """Parse a journal timestamp, substituting the current time when it is blank or garbled."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return _now()
    try:
        return _DATETIME.validate_python(value)
    except ValidationError:
        return _now()


class JournalMove(BaseModel):
    """One file move recorded in the journal."""

    model_config = ConfigDict(extra="ignore")

    run_id: str = Field(default="", validation_alias=AliasChoices("run_id", "runId"))
    original_path: str = Field(
        default="",
        validation_alias=AliasChoices("original_path", "originalPath", "source_path", "sourcePath"),
    )
    new_path: str = Field(
        default="",
        validation_alias=AliasChoices("new_path", "newPath", "destination_path", "destinationPath"),
    )
    timestamp: datetime = Field(default_factory=_now)
    status: str = MOVED_STATUS

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> datetime:
        return _lenient_datetime(value)


class JournalRun(BaseModel):
    """All moves performed by one pipeline run."""

    model_config = ConfigDict(extra="ignore")

    session_id: str = Field(
        validation_alias=AliasChoices("session_id", "sessionId", "run_id", "runId"),
    )
    created_at: datetime = Field(
        default_factory=_now,
        validation_alias=AliasChoices("created_at", "createdAt"),
    )
    moves: List[JournalMove] = Field(default_factory=list)

    @field_validator("created_at", mode="before")
    @classmethod
    def _parse_created_at(cls, value: Any) -> datetime:
        return _lenient_datetime(value)

    @model_validator(mode="after")
    def _backfill_moves(self) -> "JournalRun":
        for movement in self.moves:
            if not movement.run_id:
                movement.run_id = self.session_id
            if not movement.status.strip():
                movement.status = MOVED_STATUS
        return self


class UndoDetail(BaseModel):
    """Outcome of restoring a single journal move."""

    source_path: str
    destination_path: str
    status: UndoStatus
    message: str


class UndoResult(BaseModel):
    """Aggregate outcome of undoing the last run.

    Attributes:
        session_id: Session that was undone, or None when the journal is empty.
        restored: Moves restored, including those restored under a conflict name.
        skipped: Entries that were not undoable or were malformed.
        conflicts: Restores that needed a disambiguated target name.
        missing: Entries whose moved file no longer exists.
        errors: Restores that failed.
        details: Per-entry outcomes in processing order.
    """

    session_id: Optional[str] = None
    restored: int = 0
    skipped: int = 0
    conflicts: int = 0
    missing: int = 0
    errors: int = 0
    details: List[UndoDetail] = Field(default_factory=list)


__all__ = ["MOVED_STATUS", "JournalMove", "JournalRun", "UndoDetail", "UndoResult", "UndoStatus"]
