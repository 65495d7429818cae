"""Executor for organization plans."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from sortroot.notifications import Notifier, emit

from .models import MovedFile, PlanEntry, PlanPreview, PlanSkip, RunProgress, RunResult, utc_now

LOGGER = logging.getLogger(__name__)


def move_file(source: Path, destination: Path) -> None:
    """Move a file, falling back to copy-then-delete when rename fails.

    If the source cannot be deleted after a successful copy, both copies are
    left in place and the error propagates.

    Raises:
        FileExistsError: If the destination is already occupied.
        OSError: If neither rename nor copy-then-delete succeeds.
    """
    if destination.exists():
        raise FileExistsError(f"Destination already exists: {destination}")
    try:
        source.rename(destination)
    except OSError:
        shutil.copy2(source, destination)
        source.unlink()


class OperationExecutor:
    """Apply a plan's moves, tolerating per-item failures."""

    def __init__(self, notifier: Notifier | None = None) -> None:
        self._notifier = notifier

    def apply(self, plan: PlanPreview) -> RunResult:
        """Execute every planned move and report aggregate outcomes.

        Args:
            plan: Plan computed by the planner.

        Returns:
            RunResult: Counters plus moved files and per-item error details.
        """

        result = RunResult(
            session_id=plan.session_id,
            started_at=utc_now(),
            skipped=plan.skip_count,
            skips=list(plan.skips),
        )
        emit(self._notifier, "log", "info", f"run started: {plan.move_count} planned moves")

        for entry in plan.moves:
            try:
                self._move_entry(entry)
            except OSError as exc:
                result.errors += 1
                result.error_details.append(PlanSkip(path=entry.source_path, reason=str(exc)))
                LOGGER.warning("Failed moving %s: %s", entry.source_path, exc)
                emit(
                    self._notifier,
                    "log",
                    "error",
                    f"failed moving '{entry.source_path}' => {exc}",
                )
            else:
                result.moved += 1
                result.moved_files.append(MovedFile(**entry.model_dump()))

            emit(
                self._notifier,
                "progress",
                RunProgress(
                    moved=result.moved,
                    skipped=result.skipped,
                    errors=result.errors,
                    current_path=entry.source_path,
                    dest_path=entry.destination_path,
                ),
            )

        result.finished_at = utc_now()
        emit(
            self._notifier,
            "log",
            "info",
            f"run complete: moved={result.moved}, skipped={result.skipped}, errors={result.errors}",
        )
        return result

    def _move_entry(self, entry: PlanEntry) -> None:
        source = Path(entry.source_path)
        destination = Path(entry.destination_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        move_file(source, destination)


__all__ = ["OperationExecutor", "move_file"]
