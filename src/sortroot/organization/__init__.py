"""Planning, execution, and cleanup of moves under the root."""

from .cleanup import CleanupEngine
from .executor import OperationExecutor
from .models import CleanupResult, MovedFile, PlanEntry, PlanPreview, PlanSkip, RunResult
from .planner import OrganizerPlanner

__all__ = [
    "CleanupEngine",
    "CleanupResult",
    "MovedFile",
    "OperationExecutor",
    "OrganizerPlanner",
    "PlanEntry",
    "PlanPreview",
    "PlanSkip",
    "RunResult",
]
