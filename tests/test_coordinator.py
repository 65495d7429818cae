"""Pipeline coordinator tests."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import pytest

from sortroot.config import ConfigError, ConfigManager
from sortroot.config.models import CategoryRule, CleanupSettings, Policy, UndoSettings, WatchSettings
from sortroot.coordinator import PipelineCoordinator
from sortroot.errors import PipelineBusyError
from sortroot.notifications import Notifier
from sortroot.state import JournalRepository
from sortroot.watch.service import WatchEvent, WatcherState, WatcherStatus


class _RecordingNotifier(Notifier):
    def __init__(self) -> None:
        self.completed = []
        self.statuses: list[WatcherStatus] = []
        self.lines: list[tuple[str, str]] = []
        self.on_progress: Callable[[], None] | None = None

    def progress(self, progress) -> None:
        if self.on_progress is not None:
            self.on_progress()

    def log(self, level: str, message: str) -> None:
        self.lines.append((level, message))

    def run_complete(self, result) -> None:
        self.completed.append(result)

    def watcher_status(self, status: WatcherStatus) -> None:
        self.statuses.append(status)


class _FakeWatcher:
    """Stand-in for WatcherController that records lifecycle calls."""

    def __init__(self) -> None:
        self.calls: list[str] = []
        self.root: Path | None = None
        self.action: Callable[[], None] | None = None
        self.on_event: Callable[[WatchEvent], None] | None = None
        self.on_stop: Callable[[], None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self, root, action, on_event=None) -> None:
        self.calls.append(f"start:{root}")
        self.root, self.action, self.on_event = root, action, on_event
        self._running = True

    def stop(self) -> None:
        if not self._running:
            return
        self.calls.append("stop")
        if self.on_stop is not None:
            self.on_stop()
        self._running = False

    def status(self, root=None) -> WatcherStatus:
        state = WatcherState.RUNNING if self._running else WatcherState.STOPPED
        current = self.root if self._running else root
        return WatcherStatus(running=self._running, state=state, root=str(current or ""))


def _policy(root: Path) -> Policy:
    return Policy(
        root=str(root),
        min_file_age_seconds=0,
        cleanup=CleanupSettings(min_age_seconds=0),
        categories=[
            CategoryRule(id="docs", name="Documents", target_subfolder="Documents", extensions=["txt"]),
            CategoryRule(id="audio", name="Audio", target_subfolder="Audio", extensions=["mp3"]),
        ],
    )


@pytest.fixture(autouse=True)
def _fake_trash(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("send2trash.send2trash", os.rmdir)


def _coordinator(tmp_path: Path, **kwargs) -> tuple[PipelineCoordinator, Path]:
    root = tmp_path / "root"
    kwargs.setdefault("notifier", _RecordingNotifier())
    kwargs.setdefault("watcher", _FakeWatcher())
    kwargs.setdefault("undo_settings", UndoSettings(restore_mode="in_place"))
    coordinator = PipelineCoordinator(
        _policy(root),
        journal=JournalRepository(tmp_path / "journal.jsonl"),
        **kwargs,
    )
    return coordinator, root


def _drop(root: Path, *names: str) -> None:
    for name in names:
        path = root / "Drop" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(name, encoding="utf-8")


def test_run_now_sorts_cleans_and_journals(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)
    _drop(root, "a.txt", "b.mp3", "c.xyz")

    result = coordinator.run_now()

    assert result.moved == 3
    assert result.cleanup_trashed == 1
    assert (root / "Documents" / "a.txt").exists()
    assert (root / "Audio" / "b.mp3").exists()
    assert (root / "Misc" / "c.xyz").exists()
    assert not (root / "Drop").exists()
    last = coordinator.journal.load_last_run()
    assert last.session_id == result.session_id
    assert len(last.moves) == 3
    assert notifier.completed == [result]


def test_run_complete_not_emitted_for_idle_run(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)

    result = coordinator.run_now()

    assert not result.has_activity
    assert notifier.completed == []
    assert coordinator.journal.load_last_run() is None
    assert (root / "Documents").is_dir()


def test_dry_run_does_not_move(tmp_path: Path) -> None:
    coordinator, root = _coordinator(tmp_path)
    _drop(root, "a.txt")

    plan = coordinator.dry_run()

    assert plan.move_count == 1
    assert (root / "Drop" / "a.txt").exists()


def test_reentrant_run_fails_fast(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)
    _drop(root, "a.txt")
    errors: list[Exception] = []

    def _reenter() -> None:
        try:
            coordinator.run_now()
        except PipelineBusyError as exc:
            errors.append(exc)

    notifier.on_progress = _reenter

    result = coordinator.run_now()

    assert result.moved == 1
    assert len(errors) == 1
    assert not coordinator.pipeline_running


def test_undo_is_excluded_during_run(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)
    _drop(root, "a.txt")
    errors: list[Exception] = []

    def _undo() -> None:
        try:
            coordinator.undo_last_run()
        except PipelineBusyError as exc:
            errors.append(exc)

    notifier.on_progress = _undo
    coordinator.run_now()

    assert len(errors) == 1


def test_origin_hints_override_journal_original(tmp_path: Path) -> None:
    coordinator, root = _coordinator(tmp_path)
    root.mkdir(parents=True)
    outside = tmp_path / "Downloads" / "report.txt"
    (root / "report.txt").write_text("r", encoding="utf-8")
    coordinator.hints.record_rename(outside, root / "report.txt", root)

    coordinator.run_now()

    move = coordinator.journal.load_last_run().moves[0]
    assert move.original_path == str(outside)
    assert move.new_path == str(root / "Documents" / "report.txt")
    assert len(coordinator.hints) == 0


def test_undo_after_run_handles_conflict(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)
    _drop(root, "a.txt", "b.mp3", "c.xyz")
    coordinator.run_now()
    (root / "Drop").mkdir()
    (root / "Drop" / "a.txt").write_text("new", encoding="utf-8")

    result = coordinator.undo_last_run()

    assert result.conflicts == 1
    assert (root / "Drop" / "a (restored 1).txt").read_text(encoding="utf-8") == "a.txt"
    assert (root / "Drop" / "a.txt").read_text(encoding="utf-8") == "new"
    assert notifier.lines[-1] == (
        "info",
        "undo complete: restored=3, skipped=0, conflicts=1, missing=0, errors=0",
    )
    assert not coordinator.undo_in_progress


def test_undo_pauses_and_restarts_watcher(tmp_path: Path) -> None:
    watcher = _FakeWatcher()
    sleeps: list[float] = []
    coordinator, root = _coordinator(
        tmp_path,
        watcher=watcher,
        watch_settings=WatchSettings(undo_settle_seconds=1.5),
        sleep=sleeps.append,
    )
    _drop(root, "a.txt")
    coordinator.run_now()
    coordinator.start_watcher()

    # A debounced run firing while undo is in progress is dropped.
    def _late_fire() -> None:
        _drop(root, "late.txt")
        watcher.action()

    watcher.on_stop = _late_fire

    coordinator.undo_last_run()

    assert watcher.calls == [f"start:{root}", "stop", f"start:{root}"]
    assert sleeps == [1.5]
    assert (root / "Drop" / "late.txt").exists()
    assert watcher.running


def test_debounced_action_runs_pipeline(tmp_path: Path) -> None:
    watcher = _FakeWatcher()
    coordinator, root = _coordinator(tmp_path, watcher=watcher)
    coordinator.start_watcher()
    _drop(root, "a.txt")

    watcher.action()

    assert (root / "Documents" / "a.txt").exists()


def test_debounced_action_logs_failures(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    watcher = _FakeWatcher()
    blocker = tmp_path / "blocker"
    blocker.write_text("x", encoding="utf-8")
    root = tmp_path / "root"
    coordinator = PipelineCoordinator(
        _policy(root),
        journal=JournalRepository(blocker / "journal.jsonl"),
        notifier=notifier,
        watcher=watcher,
    )
    coordinator.start_watcher()
    _drop(root, "a.txt")

    watcher.action()

    assert notifier.lines[-1][0] == "error"
    assert notifier.lines[-1][1].startswith("watcher-triggered run failed:")


def test_watcher_observer_feeds_origin_hints(tmp_path: Path) -> None:
    watcher = _FakeWatcher()
    coordinator, root = _coordinator(tmp_path, watcher=watcher)
    coordinator.start_watcher()

    watcher.on_event(
        WatchEvent(kind="moved", src_path=tmp_path / "out.txt", dest_path=root / "out.txt")
    )
    watcher.on_event(WatchEvent(kind="created", src_path=root / "new.txt"))

    assert [hint.observed_path for hint in coordinator.hints.snapshot()] == [root / "out.txt"]


def test_watcher_status_notifications(tmp_path: Path) -> None:
    notifier = _RecordingNotifier()
    coordinator, root = _coordinator(tmp_path, notifier=notifier)

    assert coordinator.watcher_status().running is False
    coordinator.start_watcher()
    coordinator.stop_watcher()

    assert [status.running for status in notifier.statuses] == [True, False]
    assert all(status.root == str(root) for status in notifier.statuses)


def test_set_policy_rejects_invalid_and_keeps_previous(tmp_path: Path) -> None:
    coordinator, root = _coordinator(tmp_path)
    invalid = coordinator.get_policy()
    invalid.categories = []

    with pytest.raises(ConfigError):
        coordinator.set_policy(invalid)

    assert coordinator.get_policy().root == str(root)
    assert len(coordinator.get_policy().categories) == 2


def test_get_policy_returns_copies(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path)

    policy = coordinator.get_policy()
    policy.categories[0].extensions.append("md")

    assert coordinator.get_policy().categories[0].extensions == ["txt"]


def test_set_root_persists_and_restarts_watcher(tmp_path: Path) -> None:
    watcher = _FakeWatcher()
    manager = ConfigManager(config_path=tmp_path / "state" / "config.yaml")
    coordinator, root = _coordinator(tmp_path, watcher=watcher, config_manager=manager)
    coordinator.start_watcher()
    new_root = tmp_path / "elsewhere"

    coordinator.set_root(new_root)

    assert watcher.calls == [f"start:{root}", "stop", f"start:{new_root}"]
    assert manager.load(include_env=False).policy.root == str(new_root)
    assert coordinator.watcher_status().root == str(new_root)


def test_validate_policy_reports_warnings(tmp_path: Path) -> None:
    coordinator, _ = _coordinator(tmp_path)
    policy = coordinator.get_policy()
    policy.categories[1].extensions.append("TXT")

    result = coordinator.validate_policy(policy)

    assert result.valid
    assert result.warnings


def test_default_cleanup_reclaims_folders_emptied_by_the_run(tmp_path: Path) -> None:
    root = tmp_path / "root"
    policy = Policy(
        root=str(root),
        min_file_age_seconds=0,
        categories=[
            CategoryRule(id="docs", name="Documents", target_subfolder="Documents", extensions=["txt"]),
        ],
    )
    assert policy.cleanup == CleanupSettings()
    coordinator = PipelineCoordinator(
        policy,
        journal=JournalRepository(tmp_path / "journal.jsonl"),
        watcher=_FakeWatcher(),
    )
    _drop(root, "a.txt")
    (root / "Drop" / "nested").mkdir()

    result = coordinator.run_now()

    assert result.moved == 1
    assert result.cleanup_trashed == 2
    assert not (root / "Drop").exists()
    assert (root / "Documents" / "a.txt").exists()


def test_home_relative_root_journals_absolute_paths(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    workdir = tmp_path / "cwd"
    workdir.mkdir()
    monkeypatch.chdir(workdir)
    policy = Policy(
        root="~/Sort",
        min_file_age_seconds=0,
        categories=[
            CategoryRule(id="docs", name="Documents", target_subfolder="Documents", extensions=["txt"]),
        ],
    )
    coordinator = PipelineCoordinator(
        policy,
        journal=JournalRepository(tmp_path / "journal.jsonl"),
        watcher=_FakeWatcher(),
    )
    root = tmp_path / "Sort"
    _drop(root, "a.txt")

    coordinator.dry_run()
    coordinator.run_now()

    assert not (workdir / "~").exists()
    move = coordinator.journal.load_last_run().moves[0]
    assert os.path.isabs(move.original_path)
    assert os.path.isabs(move.new_path)
    assert move.new_path == str(root / "Documents" / "a.txt")


def test_run_now_prunes_stale_hints_first(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    coordinator, root = _coordinator(tmp_path)
    calls: list[str] = []
    original_prune = coordinator.hints.prune_missing

    def _prune() -> int:
        calls.append("prune")
        return original_prune()

    monkeypatch.setattr(coordinator.hints, "prune_missing", _prune)
    coordinator.hints.record_rename(tmp_path / "gone.txt", root / "gone.txt", root)

    coordinator.run_now()

    assert calls == ["prune"]
    assert len(coordinator.hints) == 0
