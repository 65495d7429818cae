"""Filesystem watching and origin-hint tracking."""

from .hints import OriginHint, OriginHintTracker
from .service import WatchEvent, WatcherController, WatcherState, WatcherStatus

__all__ = [
    "OriginHint",
    "OriginHintTracker",
    "WatchEvent",
    "WatcherController",
    "WatcherState",
    "WatcherStatus",
]
