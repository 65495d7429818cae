"""Planner tests covering classification, collisions, and skips."""

from __future__ import annotations

import os
import time
from pathlib import Path

from sortroot.config.models import CategoryRule, CleanupSettings, Policy
from sortroot.organization.planner import OrganizerPlanner, collision_name


def _policy(root: Path, **overrides) -> Policy:
    values = {
        "root": str(root),
        "min_file_age_seconds": 0,
        "cleanup": CleanupSettings(min_age_seconds=0),
        "categories": [
            CategoryRule(id="docs", name="Documents", target_subfolder="Documents", extensions=["txt"]),
            CategoryRule(id="audio", name="Audio", target_subfolder="Audio", extensions=["mp3"]),
        ],
    }
    values.update(overrides)
    return Policy(**values)


def _touch(path: Path, content: str = "data") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_collision_name_inserts_label_before_suffix() -> None:
    assert collision_name(Path("/r/report.txt"), "2") == Path("/r/report (2).txt")
    assert collision_name(Path("/r/README"), "restored 1") == Path("/r/README (restored 1)")


def test_plan_classifies_drop_folder(tmp_path: Path) -> None:
    for name in ("a.txt", "b.mp3", "c.xyz"):
        _touch(tmp_path / "Drop" / name)

    plan = OrganizerPlanner().build_plan(_policy(tmp_path))

    assert plan.move_count == 3
    assert plan.skip_count == 0
    destinations = {Path(entry.destination_path) for entry in plan.moves}
    assert destinations == {
        tmp_path / "Documents" / "a.txt",
        tmp_path / "Audio" / "b.mp3",
        tmp_path / "Misc" / "c.xyz",
    }
    assert [group.category for group in plan.grouped] == ["Audio", "Documents", "Misc"]


def test_collisions_are_suffixed_in_walk_order(tmp_path: Path) -> None:
    _touch(tmp_path / "Documents" / "report.txt", "existing")
    _touch(tmp_path / "Drop" / "report.txt")
    _touch(tmp_path / "Other" / "report.txt")

    plan = OrganizerPlanner().build_plan(_policy(tmp_path))

    assert [Path(entry.destination_path).name for entry in plan.moves] == [
        "report (1).txt",
        "report (2).txt",
    ]
    assert plan.potential_conflicts == 2
    assert all(entry.collision_renamed for entry in plan.moves)


def test_unsuffixed_name_is_used_when_free(tmp_path: Path) -> None:
    _touch(tmp_path / "Drop" / "notes.txt")
    _touch(tmp_path / "Other" / "notes.txt")

    plan = OrganizerPlanner().build_plan(_policy(tmp_path))

    names = [Path(entry.destination_path).name for entry in plan.moves]
    assert names == ["notes.txt", "notes (1).txt"]
    assert plan.potential_conflicts == 1
    assert len({entry.destination_path for entry in plan.moves}) == len(plan.moves)


def test_young_files_are_skipped_with_threshold(tmp_path: Path) -> None:
    _touch(tmp_path / "fresh.txt")
    old = _touch(tmp_path / "old.txt")
    past = time.time() - 3600
    os.utime(old, (past, past))

    plan = OrganizerPlanner().build_plan(_policy(tmp_path, min_file_age_seconds=60))

    assert [Path(entry.source_path).name for entry in plan.moves] == ["old.txt"]
    assert len(plan.skips) == 1
    assert plan.skips[0].path == str(tmp_path / "fresh.txt")
    assert "min_file_age_seconds (60)" in plan.skips[0].reason


def test_protected_folders_are_never_candidates(tmp_path: Path) -> None:
    _touch(tmp_path / "Documents" / "deep" / "nested" / "song.mp3")
    _touch(tmp_path / "Misc" / "thing.txt")
    _touch(tmp_path / "Restored" / "session" / "home" / "a.txt")

    plan = OrganizerPlanner().build_plan(_policy(tmp_path))

    assert plan.total_candidates == 0
    assert plan.moves == []


def test_misc_disabled_produces_skips(tmp_path: Path) -> None:
    _touch(tmp_path / "Makefile")
    _touch(tmp_path / "blob.xyz")

    plan = OrganizerPlanner().build_plan(
        _policy(tmp_path, unknown_goes_to_misc=False, no_extension_goes_to_misc=False)
    )

    reasons = {Path(skip.path).name: skip.reason for skip in plan.skips}
    assert plan.move_count == 0
    assert "no_extension_goes_to_misc is disabled" in reasons["Makefile"]
    assert "unknown extension '.xyz'" in reasons["blob.xyz"]


def test_extension_matching_honors_case_setting(tmp_path: Path) -> None:
    _touch(tmp_path / "LOUD.TXT")

    insensitive = OrganizerPlanner().build_plan(_policy(tmp_path))
    sensitive = OrganizerPlanner().build_plan(_policy(tmp_path, case_insensitive_ext=False))

    assert insensitive.moves[0].category == "Documents"
    assert sensitive.moves[0].category == "Misc"


def test_missing_root_is_reported_as_walk_error(tmp_path: Path) -> None:
    plan = OrganizerPlanner().build_plan(_policy(tmp_path / "missing"))

    assert plan.move_count == 0
    assert plan.error_count == 1
    assert plan.skip_count == 1
