"""Filesystem watcher that debounces event bursts into single pipeline runs."""

from __future__ import annotations

import logging
import os
import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional

from pydantic import BaseModel
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from sortroot.errors import WatcherError

LOGGER = logging.getLogger(__name__)

# Access notifications never change what the planner would see.
_ACCESS_KINDS = frozenset({"opened", "closed", "closed_no_write"})


class WatcherState(str, Enum):
    """Lifecycle states of the watcher controller."""

    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


@dataclass(slots=True, frozen=True)
class WatchEvent:
    """Raw filesystem event posted by the observer thread.

    Attributes:
        kind: watchdog event type (``created``, ``modified``, ``moved`` ...).
        src_path: Path the event refers to, or the rename source.
        dest_path: Rename destination for ``moved`` events.
        is_directory: Whether the event concerns a directory.
    """

    kind: str
    src_path: Path
    dest_path: Optional[Path] = None
    is_directory: bool = False

    @classmethod
    def from_watchdog(cls, event: FileSystemEvent) -> "WatchEvent":
        dest = getattr(event, "dest_path", "") or ""
        return cls(
            kind=str(event.event_type),
            src_path=Path(os.fsdecode(event.src_path)),
            dest_path=Path(os.fsdecode(dest)) if dest else None,
            is_directory=bool(event.is_directory),
        )


class WatcherStatus(BaseModel):
    """Snapshot of the watcher lifecycle."""

    running: bool
    state: WatcherState
    root: str


def is_sorting_relevant(event: WatchEvent) -> bool:
    """Return True for create/modify/delete/rename and unrecognized kinds."""
    return event.kind not in _ACCESS_KINDS


class _QueueingHandler(FileSystemEventHandler):
    """Post every observer event onto the controller's queue."""

    def __init__(self, events: queue.Queue[WatchEvent]) -> None:
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._events.put(WatchEvent.from_watchdog(event))


class WatcherController:
    """Own the background watch thread and its debounce loop."""

    def __init__(
        self,
        *,
        debounce_seconds: float = 2.0,
        poll_interval_seconds: float = 0.2,
        startup_timeout_seconds: float = 5.0,
        observer_factory: Callable[[], Any] = Observer,
    ) -> None:
        """Initialize a stopped controller.

        Args:
            debounce_seconds: Quiet interval after the last relevant event before firing.
            poll_interval_seconds: Event-queue poll timeout; bounds stop latency.
            startup_timeout_seconds: Maximum wait for the observer to attach.
            observer_factory: Callable returning a watchdog-compatible observer.
        """

        self._debounce_seconds = debounce_seconds
        self._poll_interval = poll_interval_seconds
        self._startup_timeout = startup_timeout_seconds
        self._observer_factory = observer_factory
        self._lock = threading.Lock()
        self._state = WatcherState.STOPPED
        self._root: Path | None = None
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    # ------------------------------------------------------------------ #
    # Public API                                                         #
    # ------------------------------------------------------------------ #

    @property
    def running(self) -> bool:
        with self._lock:
            return self._state is WatcherState.RUNNING

    def status(self, root: Path | str | None = None) -> WatcherStatus:
        """Return the lifecycle state and watched (or configured) root."""
        with self._lock:
            current = self._root if self._root is not None else root
            return WatcherStatus(
                running=self._state is WatcherState.RUNNING,
                state=self._state,
                root=str(current) if current is not None else "",
            )

    def start(
        self,
        root: Path,
        action: Callable[[], None],
        on_event: Callable[[WatchEvent], None] | None = None,
    ) -> None:
        """Start watching ``root`` recursively; a no-op when already running.

        Args:
            root: Directory to watch.
            action: Callable fired once per debounced burst of relevant events.
            on_event: Callable receiving every raw event, relevant or not.

        Raises:
            WatcherError: If the observer fails to attach or times out.
        """

        with self._lock:
            if self._state is WatcherState.RUNNING:
                return

            self._state = WatcherState.STARTING
            stop_event = threading.Event()
            startup: queue.Queue[BaseException | None] = queue.Queue(maxsize=1)
            thread = threading.Thread(
                target=self._worker,
                args=(root, action, on_event, stop_event, startup),
                name="sortroot-watcher",
                daemon=True,
            )
            thread.start()

            try:
                error = startup.get(timeout=self._startup_timeout)
            except queue.Empty:
                stop_event.set()
                thread.join(timeout=self._startup_timeout)
                self._state = WatcherState.STOPPED
                raise WatcherError(
                    f"watcher failed to start within {self._startup_timeout:g}s for {root}"
                ) from None

            if error is not None:
                thread.join(timeout=self._startup_timeout)
                self._state = WatcherState.STOPPED
                raise WatcherError(f"cannot watch {root}: {error}") from error

            self._root = root
            self._stop_event = stop_event
            self._thread = thread
            self._state = WatcherState.RUNNING
            LOGGER.info("Watching %s", root)

    def stop(self) -> None:
        """Signal the worker to stop and join it; a no-op when stopped."""
        with self._lock:
            if self._state is not WatcherState.RUNNING:
                return

            self._state = WatcherState.STOPPING
            if self._stop_event is not None:
                self._stop_event.set()
            if self._thread is not None:
                self._thread.join()

            LOGGER.info("Stopped watching %s", self._root)
            self._thread = None
            self._stop_event = None
            self._root = None
            self._state = WatcherState.STOPPED

    # ------------------------------------------------------------------ #
    # Internal helpers                                                   #
    # ------------------------------------------------------------------ #

    def _worker(
        self,
        root: Path,
        action: Callable[[], None],
        on_event: Callable[[WatchEvent], None] | None,
        stop_event: threading.Event,
        startup: queue.Queue[BaseException | None],
    ) -> None:
        events: queue.Queue[WatchEvent] = queue.Queue()
        observer = self._observer_factory()
        try:
            observer.schedule(_QueueingHandler(events), str(root), recursive=True)
            observer.start()
        except (OSError, RuntimeError) as exc:
            startup.put(exc)
            return

        startup.put(None)
        try:
            self._run_loop(events, stop_event, action, on_event)
        finally:
            observer.stop()
            observer.join()

    def _run_loop(
        self,
        events: queue.Queue[WatchEvent],
        stop_event: threading.Event,
        action: Callable[[], None],
        on_event: Callable[[WatchEvent], None] | None,
    ) -> None:
        """Coalesce relevant events and fire ``action`` after a quiet interval."""
        pending_at: float | None = None

        while not stop_event.is_set():
            try:
                event = events.get(timeout=self._poll_interval)
            except queue.Empty:
                event = None

            if event is not None:
                if on_event is not None:
                    on_event(event)
                if is_sorting_relevant(event):
                    pending_at = time.monotonic()

            if pending_at is not None and time.monotonic() - pending_at >= self._debounce_seconds:
                pending_at = None
                try:
                    action()
                except Exception:  # pragma: no cover - keep the watch thread alive
                    LOGGER.exception("Debounced action failed")


__all__ = [
    "WatchEvent",
    "WatcherController",
    "WatcherState",
    "WatcherStatus",
    "is_sorting_relevant",
]
