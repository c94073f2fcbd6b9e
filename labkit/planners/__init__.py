"""
Planners package for labkit.

Planners turn a workflow request into an execution plan of tool steps.
"""

from .base import (
    Planner,
    PlannerConfig,
    PlannerError,
    PlanStep,
    PlanValidationError,
    PlanValidationResult,
    WorkflowError,
)
from .template_planner import TemplatePlanner

__all__ = [
    "Planner",
    "PlannerConfig",
    "PlannerError",
    "PlanStep",
    "PlanValidationError",
    "PlanValidationResult",
    "TemplatePlanner",
    "WorkflowError",
]
