"""Custom exceptions for configuration and policy management."""

from sortroot.errors import SortRootError


class ConfigError(SortRootError):
    """Raised when configuration or policy data cannot be processed."""
