"""Best-effort undo of the most recent journaled run."""

from __future__ import annotations

import logging
import ntpath
import re
from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Literal

from sortroot.config.policy import RESTORED_DIRNAME
from sortroot.organization.executor import move_file
from sortroot.organization.planner import collision_name

from . import JournalRepository
from .errors import StateError
from .models import MOVED_STATUS, JournalMove, UndoDetail, UndoResult, UndoStatus

LOGGER = logging.getLogger(__name__)

RestoreMode = Literal["quarantine", "in_place"]

_DRIVE_PATTERN = re.compile(r"^([A-Za-z]):$")
_SEPARATORS = re.compile(r"[\\/:]")


def is_absolute_path(value: str) -> bool:
    """Return True for POSIX or Windows absolute paths."""
    return PurePosixPath(value).is_absolute() or PureWindowsPath(value).is_absolute()


def absolute_to_safe_relative(original: str) -> Path | None:
    """Re-root an absolute path as a relative path preserving its structure.

    ``C:\\Users\\me\\a.txt`` becomes ``C/Users/me/a.txt``, ``\\\\srv\\share\\a.txt``
    becomes ``UNC/srv/share/a.txt`` and ``/home/me/a.txt`` becomes ``home/me/a.txt``.
    Returns None for relative input or paths containing parent-directory segments.
    """
    if not is_absolute_path(original):
        return None

    drive, rest = ntpath.splitdrive(original)
    prefix: list[str] = []
    if drive:
        letter = _DRIVE_PATTERN.match(drive)
        if letter:
            prefix = [letter.group(1)]
        else:
            prefix = ["UNC", *[part for part in re.split(r"[\\/]+", drive) if part]]

    parts = [part for part in re.split(r"[\\/]+", rest) if part and part != "."]
    if ".." in parts or ".." in prefix:
        return None
    segments = prefix + parts
    if not segments:
        return None
    return Path(*segments)


def is_safe_session_id(session_id: str) -> bool:
    """Return True when ``session_id`` is usable as a single folder name."""
    value = session_id.strip()
    return bool(value) and value not in {".", ".."} and not _SEPARATORS.search(value)


def restored_conflict_path(target: Path) -> Path:
    """Return the first free ``"<stem> (restored <n>)<suffix>"`` sibling of ``target``."""
    counter = 1
    while True:
        candidate = collision_name(target, f"restored {counter}")
        if not candidate.exists():
            return candidate
        counter += 1


class UndoManager:
    """Restore the moves of the last journaled run without overwriting files."""

    def __init__(
        self,
        journal: JournalRepository,
        root: Path,
        *,
        mode: RestoreMode = "quarantine",
    ) -> None:
        self._journal = journal
        self._root = root
        self._mode = mode

    def undo_last_run(self) -> UndoResult:
        """Restore every move of the last run, newest first.

        Returns:
            UndoResult: Per-entry details and aggregate counters.

        Raises:
            StateError: If the session id is not a safe folder name or the quarantine
                directory cannot be created.
        """

        last = self._journal.load_last_run()
        if last is None:
            return UndoResult()

        result = UndoResult(session_id=last.session_id)
        restored_base = self._root / RESTORED_DIRNAME / last.session_id
        if self._mode == "quarantine":
            if not is_safe_session_id(last.session_id):
                raise StateError(
                    f"Journal session id {last.session_id!r} cannot name a restore directory"
                )
            try:
                restored_base.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StateError(f"Cannot create restore directory {restored_base}: {exc}") from exc

        for movement in reversed(last.moves):
            self._restore(movement, restored_base, result)

        LOGGER.info(
            "Undo of %s: restored=%d skipped=%d conflicts=%d missing=%d errors=%d",
            last.session_id,
            result.restored,
            result.skipped,
            result.conflicts,
            result.missing,
            result.errors,
        )
        return result

    def _restore(self, movement: JournalMove, restored_base: Path, result: UndoResult) -> None:
        if movement.status != MOVED_STATUS:
            self._record(result, movement, "skipped", f"journal status '{movement.status}' is not undoable")
            return

        if not movement.original_path.strip() or not movement.new_path.strip():
            self._record(result, movement, "skipped", "journal entry missing original_path or new_path")
            return

        if not is_absolute_path(movement.original_path) or not is_absolute_path(movement.new_path):
            self._record(result, movement, "skipped", "journal paths must be absolute")
            return

        current = Path(movement.new_path)
        if not current.exists():
            self._record(result, movement, "missing", "destination no longer exists")
            return

        if self._mode == "quarantine":
            relative = absolute_to_safe_relative(movement.original_path)
            if relative is None:
                self._record(result, movement, "skipped", "could not derive safe relative restore path")
                return
            target = restored_base / relative
        else:
            target = Path(movement.original_path)

        conflict = target.exists()
        if conflict:
            target = restored_conflict_path(target)

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            move_file(current, target)
        except OSError as exc:
            self._record(result, movement, "error", str(exc))
            return

        result.restored += 1
        if conflict:
            result.conflicts += 1
            self._record(result, movement, "conflict", f"restored to conflict path {target}")
        else:
            self._record(result, movement, "restored", f"restored to {target}")

    def _record(
        self,
        result: UndoResult,
        movement: JournalMove,
        status: UndoStatus,
        message: str,
    ) -> None:
        if status == "skipped":
            result.skipped += 1
        elif status == "missing":
            result.missing += 1
        elif status == "error":
            result.errors += 1
        result.details.append(
            UndoDetail(
                source_path=movement.original_path,
                destination_path=movement.new_path,
                status=status,
                message=message,
            )
        )


__all__ = [
    "RestoreMode",
    "UndoManager",
    "absolute_to_safe_relative",
    "is_absolute_path",
    "is_safe_session_id",
    "restored_conflict_path",
]
