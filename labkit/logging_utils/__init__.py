"""
Workflow event logging and progress display.
"""

from .events import (
    LogEvent,
    StepCompleted,
    StepSkipped,
    StepStarted,
    WorkflowCompleted,
    WorkflowStarted,
)
from .log_manager import LogManager
from .progress_tracker import ProgressTracker

__all__ = [
    "LogEvent",
    "LogManager",
    "ProgressTracker",
    "StepCompleted",
    "StepSkipped",
    "StepStarted",
    "WorkflowCompleted",
    "WorkflowStarted",
]
