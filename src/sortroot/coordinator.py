"""Pipeline coordinator: the explicit context behind every SortRoot command."""

from __future__ import annotations

import logging
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from sortroot.config import ConfigManager
from sortroot.config.models import Policy, UndoSettings, WatchSettings
from sortroot.config.policy import ValidationResult, ensure_root_dirs, require_valid, validate_policy
from sortroot.errors import PipelineBusyError, SortRootError
from sortroot.notifications import Notifier, NullNotifier, emit
from sortroot.organization.cleanup import CleanupEngine
from sortroot.organization.executor import OperationExecutor
from sortroot.organization.models import PlanPreview, RunResult
from sortroot.organization.planner import OrganizerPlanner
from sortroot.state import JournalRepository
from sortroot.state.models import UndoResult
from sortroot.state.undo import UndoManager
from sortroot.watch.hints import OriginHintTracker
from sortroot.watch.service import WatchEvent, WatcherController, WatcherStatus

LOGGER = logging.getLogger(__name__)


class PipelineCoordinator:
    """Own the policy, journal, watcher, hints, and exclusion flags.

    Every command runs synchronously on the caller's thread, except the
    debounced action, which runs on the watcher thread.
    """

    def __init__(
        self,
        policy: Policy,
        *,
        journal: JournalRepository,
        notifier: Notifier | None = None,
        config_manager: ConfigManager | None = None,
        watch_settings: WatchSettings | None = None,
        undo_settings: UndoSettings | None = None,
        watcher: WatcherController | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the coordinator.

        Args:
            policy: Initial policy; a private copy is kept.
            journal: Repository the completed runs are appended to.
            notifier: Sink for progress, log lines, and status changes.
            config_manager: When given, policy changes are persisted through it.
            watch_settings: Debounce and timing settings for the watcher.
            undo_settings: Placement settings for restored files.
            watcher: Pre-built watcher controller, mainly for tests.
            sleep: Callable used for the post-undo settle delay.
        """

        self._policy_lock = threading.Lock()
        self._policy = policy.model_copy(deep=True)
        self._journal = journal
        self._notifier = notifier or NullNotifier()
        self._config_manager = config_manager
        self._watch_settings = watch_settings or WatchSettings()
        self._undo_settings = undo_settings or UndoSettings()
        self._watcher = watcher or WatcherController(
            debounce_seconds=self._watch_settings.debounce_seconds,
            poll_interval_seconds=self._watch_settings.poll_interval_seconds,
            startup_timeout_seconds=self._watch_settings.startup_timeout_seconds,
        )
        self._sleep = sleep
        self._hints = OriginHintTracker()
        self._pipeline_lock = threading.Lock()
        self._undo_in_progress = threading.Event()

    # ------------------------------------------------------------------ #
    # Accessors                                                          #
    # ------------------------------------------------------------------ #

    @property
    def journal(self) -> JournalRepository:
        return self._journal

    @property
    def hints(self) -> OriginHintTracker:
        return self._hints

    @property
    def pipeline_running(self) -> bool:
        return self._pipeline_lock.locked()

    @property
    def undo_in_progress(self) -> bool:
        return self._undo_in_progress.is_set()

    # ------------------------------------------------------------------ #
    # Policy commands                                                    #
    # ------------------------------------------------------------------ #

    def get_policy(self) -> Policy:
        """Return a deep copy of the current policy."""
        with self._policy_lock:
            return self._policy.model_copy(deep=True)

    def validate_policy(self, policy: Policy | None = None) -> ValidationResult:
        """Validate ``policy``, or the current policy when omitted."""
        return validate_policy(policy if policy is not None else self.get_policy())

    def set_policy(self, policy: Policy) -> ValidationResult:
        """Validate, persist, then replace the current policy.

        Raises:
            ConfigError: If the policy has blocking errors or cannot be saved.
        """
        result = require_valid(policy)
        if self._config_manager is not None:
            self._config_manager.save_policy(policy)
        with self._policy_lock:
            self._policy = policy.model_copy(deep=True)
        LOGGER.info("Policy updated (root=%s)", policy.root)
        return result

    def set_root(self, root: Path | str) -> ValidationResult:
        """Change the root directory, restarting the watcher if it is running."""
        policy = self.get_policy()
        policy.root = str(root)
        result = self.set_policy(policy)
        if self._watcher.running:
            self.stop_watcher()
            self.start_watcher()
        return result

    # ------------------------------------------------------------------ #
    # Pipeline commands                                                  #
    # ------------------------------------------------------------------ #

    def dry_run(self) -> PlanPreview:
        """Ensure the root layout exists and return the current plan."""
        policy = self.get_policy()
        ensure_root_dirs(policy)
        return OrganizerPlanner().build_plan(policy)

    def run_now(self) -> RunResult:
        """Plan, execute, clean up, and journal one pipeline run.

        Raises:
            PipelineBusyError: If a run or undo is already in progress.
            ConfigError: If the root directories cannot be created.
            JournalError: If the journal cannot be appended to.
        """
        with self._pipeline_guard():
            policy = self.get_policy()
            ensure_root_dirs(policy)

            pruned = self._hints.prune_missing()
            if pruned:
                LOGGER.debug("Pruned %d stale origin hints", pruned)

            plan = OrganizerPlanner().build_plan(policy)
            result = OperationExecutor(self._notifier).apply(plan)

            if policy.cleanup.enabled:
                result.apply_cleanup(CleanupEngine().clean(policy))

            overrides = self._hints.resolve(result.moved_files)
            self._journal.append_run(result.session_id, result.moved_files, overrides)
            self._hints.clear()

            if result.has_activity:
                emit(self._notifier, "run_complete", result)
            return result

    def undo_last_run(self) -> UndoResult:
        """Restore the last journaled run with the watcher paused.

        Raises:
            PipelineBusyError: If a run or undo is already in progress.
            StateError: If the restore directory cannot be created.
        """
        with self._pipeline_guard(), self._undo_guard():
            was_running = self._watcher.running
            if was_running:
                self.stop_watcher()

            policy = self.get_policy()
            try:
                result = UndoManager(
                    self._journal,
                    policy.root_path,
                    mode=self._undo_settings.restore_mode,
                ).undo_last_run()
            finally:
                if was_running:
                    self._sleep(self._watch_settings.undo_settle_seconds)
                    self.start_watcher()

        emit(
            self._notifier,
            "log",
            "info",
            f"undo complete: restored={result.restored}, skipped={result.skipped}, "
            f"conflicts={result.conflicts}, missing={result.missing}, errors={result.errors}",
        )
        return result

    # ------------------------------------------------------------------ #
    # Watcher commands                                                   #
    # ------------------------------------------------------------------ #

    def start_watcher(self) -> WatcherStatus:
        """Watch the current root and run the pipeline after each burst.

        Raises:
            ConfigError: If the root directories cannot be created.
            WatcherError: If the watch cannot be attached in time.
        """
        policy = self.get_policy()
        ensure_root_dirs(policy)
        root = policy.root_path

        def _observe(event: WatchEvent) -> None:
            if event.dest_path is not None:
                self._hints.record_rename(event.src_path, event.dest_path, root)

        self._watcher.start(root, self._debounced_run, _observe)
        return self._publish_status()

    def stop_watcher(self) -> WatcherStatus:
        """Stop the watcher; a no-op when it is not running."""
        self._watcher.stop()
        return self._publish_status()

    def watcher_status(self) -> WatcherStatus:
        """Return whether the watcher runs and which root it reports."""
        return self._watcher.status(self.get_policy().root)

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _debounced_run(self) -> None:
        if self._undo_in_progress.is_set() or self._pipeline_lock.locked():
            LOGGER.debug("Debounced run dropped; pipeline busy")
            return

        try:
            self.run_now()
        except PipelineBusyError:
            LOGGER.debug("Debounced run dropped; pipeline busy")
        except (SortRootError, OSError) as exc:
            LOGGER.error("Watcher-triggered run failed: %s", exc)
            emit(self._notifier, "log", "error", f"watcher-triggered run failed: {exc}")

    def _publish_status(self) -> WatcherStatus:
        status = self.watcher_status()
        emit(self._notifier, "watcher_status", status)
        return status

    @contextmanager
    def _pipeline_guard(self) -> Iterator[None]:
        if not self._pipeline_lock.acquire(blocking=False):
            raise PipelineBusyError("a pipeline run or undo is already in progress")
        try:
            yield
        finally:
            self._pipeline_lock.release()

    @contextmanager
    def _undo_guard(self) -> Iterator[None]:
        self._undo_in_progress.set()
        try:
            yield
        finally:
            self._undo_in_progress.clear()


__all__ = ["PipelineCoordinator"]
