"""
Log events written to the workflow event log.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class LogEvent:
    """Base class for all log events."""

    correlation_id: str
    event_type: str = ""
    timestamp: Optional[datetime] = None
    execution_id: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.metadata is None:
            self.metadata = {}
        if self.timestamp is None:
            self.timestamp = datetime.now()


@dataclass
class WorkflowStarted(LogEvent):
    """Event emitted when a workflow run starts."""

    workflow: str = ""
    project_name: Optional[str] = None
    dry_run: bool = False

    def __post_init__(self):
        super().__post_init__()
        self.event_type = "workflow_started"


@dataclass
class WorkflowCompleted(LogEvent):
    """Event emitted when a workflow run finishes."""

    workflow: str = ""
    success: bool = False
    duration_seconds: float = 0.0
    failed_step: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.event_type = "workflow_completed"


@dataclass
class StepStarted(LogEvent):
    """Event emitted when a step starts."""

    step_id: str = ""
    step_name: str = ""
    tool: str = ""
    action: str = ""

    def __post_init__(self):
        super().__post_init__()
        self.event_type = "step_started"


@dataclass
class StepCompleted(LogEvent):
    """Event emitted when a step completes."""

    step_id: str = ""
    step_name: str = ""
    success: bool = False
    duration_seconds: float = 0.0
    error_message: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        self.event_type = "step_completed"


@dataclass
class StepSkipped(LogEvent):
    """Event emitted when a step's condition excludes it."""

    step_id: str = ""
    step_name: str = ""
    reason: str = ""

    def __post_init__(self):
        super().__post_init__()
        self.event_type = "step_skipped"
