"""Notification sinks for progress, log lines, and status changes.

Every emission is fire-and-forget: :func:`emit` swallows and logs sink
failures so a broken sink can never fail or block the pipeline.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from sortroot.organization.models import RunProgress, RunResult
    from sortroot.watch.service import WatcherStatus

LOGGER = logging.getLogger(__name__)

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notifier:
    """Base notification sink; every hook is a no-op."""

    def progress(self, progress: RunProgress) -> None:
        """Receive per-item progress counters."""

    def log(self, level: str, message: str) -> None:
        """Receive a severity-tagged log line."""

    def run_complete(self, result: RunResult) -> None:
        """Receive the summary of a run that did something."""

    def watcher_status(self, status: WatcherStatus) -> None:
        """Receive the watcher status after a start/stop transition."""


class NullNotifier(Notifier):
    """Sink that discards everything."""


class LoggingNotifier(Notifier):
    """Sink that forwards log lines and summaries to the standard logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger("sortroot.events")

    def log(self, level: str, message: str) -> None:
        self._logger.log(_LEVELS.get(level.lower(), logging.INFO), message)

    def run_complete(self, result: RunResult) -> None:
        self._logger.info(
            "run %s complete: moved=%d skipped=%d errors=%d",
            result.session_id,
            result.moved,
            result.skipped,
            result.errors,
        )

    def watcher_status(self, status: WatcherStatus) -> None:
        self._logger.info("watcher %s for %s", status.state.value, status.root)


def emit(notifier: Notifier | None, hook: str, *args: Any) -> None:
    """Deliver one notification, ignoring sink failures."""
    if notifier is None:
        return
    handler: Callable[..., None] = getattr(notifier, hook)
    try:
        handler(*args)
    except Exception as exc:  # pragma: no cover - sink delivery is best effort
        LOGGER.debug("Notification %s failed: %s", hook, exc)


__all__ = ["Notifier", "NullNotifier", "LoggingNotifier", "emit"]
