"""
Workflow registry.

Each module contributes ``TEMPLATES``; the planner looks workflows up here by
id.
"""

from typing import Dict

from . import azure, devops, local, secrets
from .common import WorkflowTemplate

WORKFLOWS: Dict[str, WorkflowTemplate] = {
    template.id: template
    for module in (local, azure, devops, secrets)
    for template in module.TEMPLATES
}

__all__ = ["WORKFLOWS", "WorkflowTemplate"]
