"""
Building blocks shared by the workflow templates.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from ...config import AppSettings
from ...models import WorkflowRequest

StepTemplate = Dict[str, Any]
Builder = Callable[[WorkflowRequest, AppSettings, Dict[str, str]], List[StepTemplate]]


@dataclass
class WorkflowTemplate:
    """A named workflow and the function that lays out its steps."""

    id: str
    name: str
    description: str
    category: str  # 'local', 'azure', 'devops', 'secrets', 'editor'
    build: Builder
    requires_project: bool = True
    needs_resources: bool = False  # derive Azure resource names up front
    required_options: List[str] = field(default_factory=list)
    confirmations: List[str] = field(default_factory=list)
    destructive: bool = False

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "requires_project": self.requires_project,
            "required_options": list(self.required_options),
            "confirmations": list(self.confirmations),
            "destructive": self.destructive,
        }


def step(
    step_id: str,
    name: str,
    tool: str,
    action: str,
    parameters: Optional[Dict[str, Any]] = None,
    depends_on: Optional[List[str]] = None,
    **extra: Any,
) -> StepTemplate:
    """Build a step template; ``extra`` carries run_if, interactive, etc."""
    data: StepTemplate = {
        "id": step_id,
        "name": name,
        "description": extra.pop("description", name),
        "tool": tool,
        "action": action,
        "parameters": parameters or {},
        "dependencies": list(depends_on or []),
    }
    data.update(extra)
    return data


def sequence(steps: List[StepTemplate]) -> List[StepTemplate]:
    """Chain steps that declare no dependencies onto the step before them."""
    previous = None
    for item in steps:
        if previous is not None and not item["dependencies"]:
            item["dependencies"] = [previous]
        previous = item["id"]
    return steps


def azure_login() -> StepTemplate:
    return step(
        "azure_login",
        "Ensure Azure login",
        "azure",
        "ensure_login",
        description="Log in with 'az login' when no account is available",
        interactive=True,
    )


def require_devops_organization(depends_on: Optional[List[str]] = None) -> StepTemplate:
    return step(
        "devops_org",
        "Check DevOps organization",
        "devops",
        "get_organization",
        {"required": True},
        depends_on,
        description="Read the organization from 'az devops configure --list'",
    )


def set_devops_project() -> StepTemplate:
    return step(
        "devops_project",
        "Set default DevOps project",
        "devops",
        "configure_defaults",
        {"project": "{project_name}"},
    )
