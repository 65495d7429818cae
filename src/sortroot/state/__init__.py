"""Append-only move journal backing undo."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, Iterator, Mapping

from pydantic import ValidationError

from sortroot.organization.models import MovedFile, utc_now

from .errors import JournalError, StateError
from .models import MOVED_STATUS, JournalMove, JournalRun, UndoDetail, UndoResult

LOGGER = logging.getLogger(__name__)


class JournalRepository:
    """Persist one JSON line per completed run and read them back."""

    def __init__(self, path: Path) -> None:
        """Initialize the repository for a journal file.

        Args:
            path: Location of the newline-delimited JSON journal.
        """
        self._path = path

    @property
    def path(self) -> Path:
        """Return the journal file path.

        Returns:
            Path: Location of the journal file.
        """
        return self._path

    def append_run(
        self,
        session_id: str,
        moved_files: Iterable[MovedFile],
        original_overrides: Mapping[str, str] | None = None,
    ) -> JournalRun | None:
        """Append a run record; existing lines are never rewritten.

        Args:
            session_id: Identifier of the completed run.
            moved_files: Files the run moved successfully.
            original_overrides: Optional mapping of move source to true origin.

        Returns:
            JournalRun | None: The written record, or None when nothing moved.

        Raises:
            JournalError: If the journal cannot be written.
        """
        files = list(moved_files)
        if not files:
            return None

        overrides = original_overrides or {}
        created_at = utc_now()
        run = JournalRun(
            session_id=session_id,
            created_at=created_at,
            moves=[
                JournalMove(
                    run_id=session_id,
                    original_path=(overrides.get(item.source_path) or "").strip() or item.source_path,
                    new_path=item.destination_path,
                    timestamp=created_at,
                    status=MOVED_STATUS,
                )
                for item in files
            ],
        )

        line = json.dumps(run.model_dump(mode="json"), ensure_ascii=False)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with self._path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")
        except OSError as exc:
            raise JournalError(f"Cannot append to journal {self._path}: {exc}") from exc
        return run

    def iter_runs(self) -> Iterator[JournalRun]:
        """Yield every parseable run in file order, skipping bad lines.

        Raises:
            JournalError: If the journal exists but cannot be opened.
        """
        if not self._path.exists():
            return

        try:
            handle = self._path.open("r", encoding="utf-8", errors="replace")
        except OSError as exc:
            raise JournalError(f"Cannot read journal {self._path}: {exc}") from exc

        with handle:
            for number, raw in enumerate(handle, start=1):
                line = raw.strip()
                if not line:
                    continue
                try:
                    yield JournalRun.model_validate_json(line)
                except ValidationError as exc:
                    LOGGER.debug("Skipping unparsable journal line %d: %s", number, exc)

    def load_last_run(self) -> JournalRun | None:
        """Return the last successfully parsed run, if any."""
        last: JournalRun | None = None
        for run in self.iter_runs():
            last = run
        return last


__all__ = [
    "JournalRepository",
    "JournalRun",
    "JournalMove",
    "UndoDetail",
    "UndoResult",
    "MOVED_STATUS",
    "StateError",
    "JournalError",
]
