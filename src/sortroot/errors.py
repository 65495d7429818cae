"""Exception hierarchy shared across SortRoot components."""


class SortRootError(Exception):
    """Base exception for failures surfaced to SortRoot callers."""


class PipelineBusyError(SortRootError):
    """Raised when a pipeline run or undo is already in progress."""


class WatcherError(SortRootError):
    """Raised when the filesystem watcher cannot be attached or started."""


__all__ = ["SortRootError", "PipelineBusyError", "WatcherError"]
