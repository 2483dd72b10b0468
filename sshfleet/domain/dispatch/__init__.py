"""
Concurrent command dispatch
"""
from .models import CommandRun, ExcludedTarget, Outcome, RunStatus, TargetResult, overall_status
from .service import Dispatcher, RunHandle

__all__ = [
    "CommandRun",
    "ExcludedTarget",
    "Outcome",
    "RunStatus",
    "TargetResult",
    "overall_status",
    "Dispatcher",
    "RunHandle",
]
