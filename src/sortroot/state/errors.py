"""Journal and undo errors."""

from sortroot.errors import SortRootError


class StateError(SortRootError):
    """Base exception for journal and undo operations."""


class JournalError(StateError):
    """Raised when the journal file cannot be read or appended to."""
