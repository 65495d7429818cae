"""Correlate raw rename events so the journal records true file origins.

When a file is renamed into the root from outside (a drag-and-drop, for
example) and the pipeline later files it into a category folder, the move's
source is only an intermediate location. The tracker remembers where such
files came from so undo can send them back there.

The mapping is best-effort: notifications may arrive reordered or coalesced
by the operating system, and the resulting hints can be imperfect.
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from sortroot.organization.models import MovedFile

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class OriginHint:
    """Current in-root path of a file and the absolute path it came from."""

    observed_path: Path
    original_path: Path


def _key(path: Path) -> str:
    return os.path.normcase(str(path))


def _relative_under(path: Path, base: Path) -> Path | None:
    """Return ``path`` relative to ``base`` when it equals or is nested under it."""
    try:
        Path(os.path.normcase(str(path))).relative_to(os.path.normcase(str(base)))
    except ValueError:
        return None
    return Path(*path.parts[len(base.parts) :]) if len(path.parts) > len(base.parts) else Path(".")


def _rebase(base: Path, relative: Path) -> Path:
    return base if relative == Path(".") else base / relative


class OriginHintTracker:
    """Thread-safe map from observed in-root paths to their true origins."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hints: list[OriginHint] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._hints)

    def snapshot(self) -> list[OriginHint]:
        """Return a copy of the current hints."""
        with self._lock:
            return [OriginHint(hint.observed_path, hint.original_path) for hint in self._hints]

    def record_rename(self, source: Path, destination: Path, root: Path) -> None:
        """Update the mapping from one raw rename event.

        Args:
            source: Path the entry was renamed from.
            destination: Path the entry was renamed to.
            root: Root being watched when the event was observed.
        """

        from_inside = _relative_under(source, root) is not None
        to_inside = _relative_under(destination, root) is not None

        with self._lock:
            if to_inside and not from_inside:
                if not source.is_absolute() or not destination.is_absolute():
                    return
                observed = _key(destination)
                for hint in self._hints:
                    if _key(hint.observed_path) == observed:
                        hint.original_path = source
                        break
                else:
                    self._hints.append(OriginHint(observed_path=destination, original_path=source))
                LOGGER.debug("Origin hint %s <- %s", destination, source)
            elif from_inside and not to_inside:
                self._hints = [
                    hint for hint in self._hints if _relative_under(hint.observed_path, source) is None
                ]
            elif from_inside and to_inside:
                for hint in self._hints:
                    relative = _relative_under(hint.observed_path, source)
                    if relative is not None:
                        hint.observed_path = _rebase(destination, relative)

    def prune_missing(self) -> int:
        """Drop hints whose observed path no longer exists; return how many were dropped."""
        with self._lock:
            before = len(self._hints)
            self._hints = [hint for hint in self._hints if hint.observed_path.exists()]
            return before - len(self._hints)

    def resolve(self, moved_files: Iterable[MovedFile]) -> dict[str, str]:
        """Map each move source to its best-known true origin.

        Hints are matched by longest prefix, most path segments first. A
        source with no matching hint maps to itself.
        """

        hints = self.snapshot()
        hints.sort(key=lambda hint: len(hint.observed_path.parts), reverse=True)

        overrides: dict[str, str] = {}
        for moved in moved_files:
            source = Path(moved.source_path)
            resolved = source
            if source.is_absolute():
                for hint in hints:
                    relative = _relative_under(source, hint.observed_path)
                    if relative is None:
                        continue
                    candidate = _rebase(hint.original_path, relative)
                    if candidate.is_absolute():
                        resolved = candidate
                    break
            overrides[moved.source_path] = str(resolved)
        return overrides

    def clear(self) -> None:
        """Forget every hint."""
        with self._lock:
            self._hints.clear()


__all__ = ["OriginHint", "OriginHintTracker"]
