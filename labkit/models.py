"""
Core request, plan and result models.

These are the values passed between the CLI, the planner and the executor.
"""

import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

PROJECT_NAME_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9-]*$")


class ExecutionResult(BaseModel):
    """Result of running a workflow plan."""

    success: bool
    execution_id: str
    artifacts: Dict[str, Any] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    metrics: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    failed_step: Optional[str] = None
    duration: Optional[float] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)


class WorkflowRequest(BaseModel):
    """What the user asked for: a workflow and its arguments."""

    workflow: str
    project_name: Optional[str] = None
    location: str = "eastus"
    working_dir: str = "."
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("project_name")
    @classmethod
    def validate_project_name(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not PROJECT_NAME_PATTERN.match(v):
            raise ValueError(
                "Project name must start with a letter and contain only "
                "letters, digits and hyphens"
            )
        return v

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        v = v.strip().lower()
        if not re.match(r"^[a-z0-9]+$", v):
            raise ValueError(f"Invalid Azure location: {v}")
        return v

    @property
    def base_path(self) -> Path:
        return Path(self.working_dir).expanduser()

    def option(self, name: str, default: Any = None) -> Any:
        """Return an option value, treating None as missing."""
        value = self.options.get(name)
        return default if value is None else value


class Plan(BaseModel):
    """Execution plan for a workflow."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    workflow: str
    steps: List[Dict[str, Any]] = Field(default_factory=list)
    dependencies: Dict[str, List[str]] = Field(default_factory=dict)
    variables: Dict[str, Any] = Field(default_factory=dict)
    estimated_duration: float = 0.0
    created_at: datetime = Field(default_factory=datetime.utcnow)
    request: WorkflowRequest
