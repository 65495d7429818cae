"""Empty-folder cleanup tests.

``send2trash`` is replaced by a recorder that removes the directory so the
tests never touch the real trash.
"""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from sortroot.config.models import CategoryRule, CleanupSettings, Policy
from sortroot.organization.cleanup import CleanupEngine, is_protected
from sortroot.organization.executor import OperationExecutor
from sortroot.organization.planner import OrganizerPlanner


def _policy(root: Path, **cleanup) -> Policy:
    return Policy(
        root=str(root),
        min_file_age_seconds=0,
        cleanup=CleanupSettings(**{"min_age_seconds": 0, **cleanup}),
        categories=[
            CategoryRule(id="docs", name="Documents", target_subfolder="Documents", extensions=["txt"]),
            CategoryRule(id="audio", name="Audio", target_subfolder="Audio", extensions=["mp3"]),
        ],
    )


@pytest.fixture()
def trashed(monkeypatch: pytest.MonkeyPatch) -> list[Path]:
    calls: list[Path] = []

    def _fake_trash(path: str) -> None:
        calls.append(Path(path))
        os.rmdir(path)

    monkeypatch.setattr("send2trash.send2trash", _fake_trash)
    return calls


def test_drop_folder_is_trashed_after_run(tmp_path: Path, trashed: list[Path]) -> None:
    for name in ("a.txt", "b.mp3", "c.xyz"):
        path = tmp_path / "Drop" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name, encoding="utf-8")
    policy = _policy(tmp_path)

    OperationExecutor().apply(OrganizerPlanner().build_plan(policy))
    result = CleanupEngine().clean(policy)

    assert trashed == [tmp_path / "Drop"]
    assert result.trashed == 1
    assert result.errors == 0
    for name in ("Documents", "Audio", "Misc"):
        assert (tmp_path / name).is_dir()


def test_nested_empty_directories_go_children_first(tmp_path: Path, trashed: list[Path]) -> None:
    (tmp_path / "outer" / "inner" / "leaf").mkdir(parents=True)
    (tmp_path / "keep" / "empty").mkdir(parents=True)
    (tmp_path / "keep" / "file.txt").write_text("x", encoding="utf-8")

    result = CleanupEngine().clean(_policy(tmp_path))

    assert trashed == [
        tmp_path / "outer" / "inner" / "leaf",
        tmp_path / "outer" / "inner",
        tmp_path / "outer",
        tmp_path / "keep" / "empty",
    ]
    assert result.trashed == 4
    assert not (tmp_path / "outer").exists()
    assert (tmp_path / "keep" / "file.txt").exists()


def test_protected_and_root_survive(tmp_path: Path, trashed: list[Path]) -> None:
    (tmp_path / "Documents").mkdir()
    (tmp_path / "Audio" / "empty-sub").mkdir(parents=True)
    (tmp_path / "Restored").mkdir()

    result = CleanupEngine().clean(_policy(tmp_path))

    assert trashed == []
    assert (tmp_path / "Documents").is_dir()
    assert (tmp_path / "Audio" / "empty-sub").is_dir()
    assert (tmp_path / "Restored").is_dir()
    assert tmp_path.is_dir()
    assert result.skipped == 3


def test_freshly_emptied_directories_are_trashed(tmp_path: Path, trashed: list[Path]) -> None:
    (tmp_path / "just-made").mkdir()

    result = CleanupEngine().clean(_policy(tmp_path, min_age_seconds=3600))

    assert trashed == [tmp_path / "just-made"]
    assert result.trashed == 1
    assert result.skipped == 0


def test_disabled_cleanup_does_nothing(tmp_path: Path, trashed: list[Path]) -> None:
    (tmp_path / "empty").mkdir()

    result = CleanupEngine().clean(_policy(tmp_path, enabled=False))

    assert trashed == []
    assert result.trashed == 0
    assert (tmp_path / "empty").is_dir()


def test_trash_failures_are_counted(tmp_path: Path) -> None:
    (tmp_path / "a").mkdir()
    (tmp_path / "b").mkdir()

    with patch("send2trash.send2trash", side_effect=OSError("trash unavailable")):
        result = CleanupEngine().clean(_policy(tmp_path))

    assert result.trashed == 0
    assert result.errors == 2
    assert all("trash unavailable" in message for message in result.skipped_paths)


def test_is_protected() -> None:
    root = Path("/srv/root")
    protected = {"Documents"}

    assert is_protected(root, root, protected)
    assert is_protected(Path("/elsewhere"), root, protected)
    assert is_protected(root / "Documents" / "x", root, protected)
    assert not is_protected(root / "Drop", root, protected)
