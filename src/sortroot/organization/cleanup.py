"""Reclaim empty, unprotected directories left behind after a run."""

from __future__ import annotations

import logging
import os
from pathlib import Path

import send2trash

from sortroot.config.models import Policy
from sortroot.config.policy import reserved_folders

from .models import CleanupResult

LOGGER = logging.getLogger(__name__)


def is_protected(path: Path, root: Path, protected: set[str]) -> bool:
    """Return True for the root, paths outside it, and protected subtrees."""
    if path == root:
        return True
    try:
        relative = path.relative_to(root)
    except ValueError:
        return True
    if not relative.parts:
        return True
    return relative.parts[0] in protected


class CleanupEngine:
    """Send empty, unprotected directories under the root to the trash."""

    def clean(self, policy: Policy) -> CleanupResult:
        """Trash every empty directory under the root, children before parents.

        Directories emptied earlier in the same pass are considered too.
        Failures are counted and described; the walk continues.

        Args:
            policy: Policy snapshot providing the root and protected folders.

        Returns:
            CleanupResult: Counters and diagnostic messages.
        """

        result = CleanupResult()
        if not policy.cleanup.enabled:
            return result

        root = policy.root_path
        protected = reserved_folders(policy)

        for directory in reversed(self._collect(root, protected, result)):
            if is_protected(directory, root, protected):
                result.skipped += 1
                continue

            try:
                with os.scandir(directory) as entries:
                    empty = next(entries, None) is None
                if not empty:
                    continue
                send2trash.send2trash(str(directory))
            except OSError as exc:
                result.errors += 1
                result.skipped_paths.append(f"{directory}: {exc}")
                LOGGER.warning("Cleanup failed for %s: %s", directory, exc)
                continue

            result.trashed += 1
            LOGGER.debug("Trashed empty directory %s", directory)

        return result

    def _collect(self, root: Path, protected: set[str], result: CleanupResult) -> list[Path]:
        """Return directories in pre-order, including protected top-level ones but not their contents."""

        def _on_error(exc: OSError) -> None:
            result.errors += 1
            result.skipped_paths.append(f"{exc.filename or root}: {exc}")

        directories: list[Path] = []
        for dirpath, dirnames, _ in os.walk(root, onerror=_on_error):
            current = Path(dirpath)
            dirnames.sort()
            if current == root:
                directories.extend(current / name for name in dirnames if name in protected)
                dirnames[:] = [name for name in dirnames if name not in protected]
            else:
                directories.append(current)
        return directories


__all__ = ["CleanupEngine", "is_protected"]
