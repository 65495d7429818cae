"""Planner that classifies files under the root into category folders."""

from __future__ import annotations

import logging
import os
import time
import uuid
from collections import defaultdict
from dataclasses import dataclass
from pathlib import Path

from sortroot.config.models import Policy
from sortroot.config.policy import extension_lookup, normalize_extension, reserved_folders

from .models import PlanEntry, PlanGroup, PlanPreview, PlanSkip, utc_now

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class _Classification:
    target: str | None = None
    reason: str | None = None


def collision_name(candidate: Path, label: str) -> Path:
    """Return ``candidate`` with ``" (<label>)"`` inserted before its suffix."""
    return candidate.with_name(f"{candidate.stem} ({label}){candidate.suffix}")


class OrganizerPlanner:
    """Derive a dry-run plan from the current contents of the root."""

    def build_plan(self, policy: Policy) -> PlanPreview:
        """Walk the root and plan a move for every classifiable file.

        Files under protected top-level folders are never candidates. Walk
        errors are recorded as skips and the walk continues.

        Args:
            policy: Policy snapshot for this planning pass.

        Returns:
            PlanPreview: Plan with moves, skips, and per-category groups.
        """

        root = policy.root_path
        lookup = extension_lookup(policy)
        protected = reserved_folders(policy)

        plan = PlanPreview(session_id=str(uuid.uuid4()))
        reserved: set[str] = set()

        for path, walk_error in self._walk(root, protected):
            if walk_error is not None:
                plan.error_count += 1
                plan.skips.append(PlanSkip(path=walk_error[0], reason=walk_error[1]))
                continue

            plan.total_candidates += 1

            if not self._is_old_enough(path, policy.min_file_age_seconds):
                plan.skips.append(
                    PlanSkip(
                        path=str(path),
                        reason=(
                            "file is younger than min_file_age_seconds "
                            f"({policy.min_file_age_seconds})"
                        ),
                    )
                )
                continue

            classification = self._classify(path, policy, lookup)
            if classification.target is None:
                plan.skips.append(PlanSkip(path=str(path), reason=classification.reason or "unclassified"))
                continue

            candidate = root / classification.target / path.name
            destination, renamed = self._resolve_destination(candidate, reserved)
            if renamed:
                plan.potential_conflicts += 1

            plan.moves.append(
                PlanEntry(
                    source_path=str(path),
                    destination_path=str(destination),
                    category=classification.target,
                    collision_renamed=renamed,
                )
            )

        plan.move_count = len(plan.moves)
        plan.skip_count = len(plan.skips)
        plan.grouped = self._group(plan.moves)
        plan.generated_at = utc_now()
        LOGGER.debug(
            "Planned %d move(s), %d skip(s), %d conflict(s) under %s",
            plan.move_count,
            plan.skip_count,
            plan.potential_conflicts,
            root,
        )
        return plan

    # ------------------------------------------------------------------ #
    # Helpers                                                            #
    # ------------------------------------------------------------------ #

    def _walk(self, root: Path, protected: set[str]):
        errors: list[OSError] = []

        for dirpath, dirnames, filenames in os.walk(root, onerror=errors.append):
            while errors:
                exc = errors.pop(0)
                yield None, (exc.filename or str(root), str(exc))

            current = Path(dirpath)
            if current == root:
                dirnames[:] = [name for name in dirnames if name not in protected]
            dirnames.sort()

            for name in sorted(filenames):
                path = current / name
                if path.is_symlink() or not path.is_file():
                    continue
                yield path, None

        while errors:
            exc = errors.pop(0)
            yield None, (exc.filename or str(root), str(exc))

    def _is_old_enough(self, path: Path, min_age_seconds: int) -> bool:
        try:
            modified = path.stat().st_mtime
        except OSError:
            return False
        return (time.time() - modified) >= min_age_seconds

    def _classify(self, path: Path, policy: Policy, lookup: dict[str, str]) -> _Classification:
        ext = path.suffix[1:] if path.suffix else ""

        if not ext:
            if policy.no_extension_goes_to_misc:
                return _Classification(target=policy.misc.target_subfolder)
            return _Classification(reason="no extension and no_extension_goes_to_misc is disabled")

        key = normalize_extension(ext, policy.case_insensitive_ext)
        target = lookup.get(key)
        if target is not None:
            return _Classification(target=target)

        if policy.unknown_goes_to_misc:
            return _Classification(target=policy.misc.target_subfolder)
        return _Classification(
            reason=f"unknown extension '.{key}' and unknown_goes_to_misc is disabled"
        )

    def _resolve_destination(self, candidate: Path, reserved: set[str]) -> tuple[Path, bool]:
        if self._is_free(candidate, reserved):
            reserved.add(_key(candidate))
            return candidate, False

        counter = 1
        while True:
            final_candidate = collision_name(candidate, str(counter))
            if self._is_free(final_candidate, reserved):
                reserved.add(_key(final_candidate))
                return final_candidate, True
            counter += 1

    def _is_free(self, candidate: Path, reserved: set[str]) -> bool:
        return not candidate.exists() and _key(candidate) not in reserved

    def _group(self, moves: list[PlanEntry]) -> list[PlanGroup]:
        grouped: dict[str, list[PlanEntry]] = defaultdict(list)
        for entry in moves:
            grouped[entry.category].append(entry)
        return [
            PlanGroup(category=category, count=len(entries), entries=entries)
            for category, entries in sorted(grouped.items())
        ]


def _key(path: Path) -> str:
    return os.path.normcase(str(path))


__all__ = ["OrganizerPlanner", "collision_name"]
