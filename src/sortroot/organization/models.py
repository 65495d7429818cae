"""Organization plan and run result data models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List

from pydantic import BaseModel, Field


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


class PlanEntry(BaseModel):
    """Represents one planned move into a category folder.

    Attributes:
        source_path: Absolute path of the file before the move.
        destination_path: Absolute path the file will be moved to.
        category: Target subfolder the file was classified into.
        collision_renamed: Whether a numeric suffix was applied to avoid a collision.
    """

    source_path: str
    destination_path: str
    category: str
    collision_renamed: bool = False


class PlanSkip(BaseModel):
    """A path excluded from the plan, or a failure, with its reason."""

    path: str
    reason: str


class PlanGroup(BaseModel):
    """Plan entries sharing one category."""

    category: str
    count: int
    entries: List[PlanEntry] = Field(default_factory=list)


class PlanPreview(BaseModel):
    """Dry-run plan produced by a single planning pass.

    Attributes:
        session_id: Fresh random identifier for the plan.
        generated_at: Time the plan was produced.
        total_candidates: Files considered after protected-folder filtering.
        move_count: Number of planned moves.
        skip_count: Number of skipped paths (including walk errors).
        error_count: Number of directory-walk errors.
        potential_conflicts: Number of moves that received a collision suffix.
        moves: Planned moves in discovery order.
        skips: Skipped paths with reasons.
        grouped: Planned moves grouped by category, sorted by category name.
    """

    session_id: str
    generated_at: datetime = Field(default_factory=utc_now)
    total_candidates: int = 0
    move_count: int = 0
    skip_count: int = 0
    error_count: int = 0
    potential_conflicts: int = 0
    moves: List[PlanEntry] = Field(default_factory=list)
    skips: List[PlanSkip] = Field(default_factory=list)
    grouped: List[PlanGroup] = Field(default_factory=list)


class MovedFile(BaseModel):
    """A plan entry that was successfully applied."""

    source_path: str
    destination_path: str
    category: str
    collision_renamed: bool = False


class RunProgress(BaseModel):
    """Incremental counters emitted after each executed move."""

    moved: int
    skipped: int
    errors: int
    current_path: str | None = None
    dest_path: str | None = None


class CleanupResult(BaseModel):
    """Outcome of an empty-folder cleanup pass.

    Attributes:
        trashed: Directories sent to the trash.
        skipped: Protected or too-young directories left alone.
        errors: Directories that could not be inspected or trashed.
        skipped_paths: Diagnostic messages for each error.
    """

    trashed: int = 0
    skipped: int = 0
    errors: int = 0
    skipped_paths: List[str] = Field(default_factory=list)


class RunResult(BaseModel):
    """Aggregate outcome of executing a plan (and optional cleanup).

    Attributes:
        session_id: Identifier inherited from the executed plan.
        started_at: Time execution started.
        finished_at: Time execution finished.
        moved: Files moved successfully.
        skipped: Files skipped during planning.
        errors: Moves that failed.
        moved_files: Successfully applied moves.
        skips: Planning skips carried over from the plan.
        error_details: Failed moves with their error messages.
        cleanup_trashed: Directories trashed by cleanup.
        cleanup_errors: Directories cleanup failed on.
    """

    session_id: str
    started_at: datetime = Field(default_factory=utc_now)
    finished_at: datetime = Field(default_factory=utc_now)
    moved: int = 0
    skipped: int = 0
    errors: int = 0
    moved_files: List[MovedFile] = Field(default_factory=list)
    skips: List[PlanSkip] = Field(default_factory=list)
    error_details: List[PlanSkip] = Field(default_factory=list)
    cleanup_trashed: int = 0
    cleanup_errors: int = 0

    def apply_cleanup(self, cleanup: CleanupResult) -> None:
        """Copy cleanup counters onto the run result."""
        self.cleanup_trashed = cleanup.trashed
        self.cleanup_errors = cleanup.errors

    @property
    def has_activity(self) -> bool:
        """Return True when the run moved, skipped, or failed on anything."""
        return (self.moved + self.skipped + self.errors) > 0


__all__ = [
    "PlanEntry",
    "PlanSkip",
    "PlanGroup",
    "PlanPreview",
    "MovedFile",
    "RunProgress",
    "CleanupResult",
    "RunResult",
    "utc_now",
]
