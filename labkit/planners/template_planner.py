"""
Template-based planner implementation.

Looks the requested workflow up in the registry, derives the naming
variables for the project and lays out the workflow's steps. No step
inspects the machine at plan time; anything that depends on the current
state is resolved by the executor through step references and conditions.
"""

import json
import os
import time
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import AppSettings, get_settings
from ..models import WorkflowRequest
from ..utils.naming import ResourceNames
from .base import Planner, PlannerConfig, PlanStep, PlanStructure, WorkflowError
from .workflows import WORKFLOWS
from .workflows.common import WorkflowTemplate

# Parameters written verbatim; braces in file bodies are not placeholders.
VERBATIM_PARAMETERS = ("content",)


class TemplatePlanner(Planner):
    """
    Planner backed by the workflow registry.

    Each workflow is a builder function that returns step templates; the
    planner fills in ``{variable}`` placeholders and turns the templates
    into validated plan steps.
    """

    def __init__(
        self,
        config: PlannerConfig,
        settings: Optional[AppSettings] = None,
        progress_tracker=None,
    ):
        super().__init__(config, progress_tracker)
        self.settings = settings or get_settings()
        self._workflows: Dict[str, WorkflowTemplate] = dict(WORKFLOWS)

    def get_workflow(self, workflow_id: str) -> WorkflowTemplate:
        template = self._workflows.get(workflow_id)
        if template is None:
            raise WorkflowError(
                f"Unknown workflow: {workflow_id}. "
                f"Available: {', '.join(sorted(self._workflows))}"
            )
        return template

    async def _gather_context(self, request: WorkflowRequest) -> Dict[str, Any]:
        """Check the request against the workflow and derive its variables."""
        template = self.get_workflow(request.workflow)

        if template.requires_project and not request.project_name:
            raise WorkflowError(f"Workflow {template.id} requires a project name")

        missing = [
            name for name in template.required_options if request.option(name) is None
        ]
        if missing:
            raise WorkflowError(
                f"Workflow {template.id} requires: {', '.join(missing)}"
            )

        return {
            "request": request,
            "template": template,
            "variables": self._build_variables(request, template),
        }

    def _build_variables(
        self, request: WorkflowRequest, template: WorkflowTemplate
    ) -> Dict[str, str]:
        paths = self.settings.paths
        projects_dir = Path(paths.projects_dir).expanduser()
        variables = {
            "location": request.location,
            "working_dir": str(request.base_path.resolve()),
            "home": str(Path.home()),
            "projects_dir": str(projects_dir),
            "today": date.today().strftime("%Y%m%d"),
            "timestamp": str(int(time.time())),
        }

        if request.project_name:
            project = request.project_name
            directory = request.option("directory")
            project_dir = (
                Path(directory).expanduser() if directory else projects_dir / project
            )
            variables["project_name"] = project
            variables["project_dir"] = os.path.abspath(project_dir)

            if template.needs_resources:
                try:
                    names = ResourceNames.for_project(project)
                except ValueError as e:
                    raise WorkflowError(str(e))
                variables.update(
                    names.model_dump(exclude={"project"}, mode="python")
                )

        return variables

    async def _generate_initial_plan(self, context: Dict[str, Any]) -> PlanStructure:
        """Build the workflow's steps and fill in plan-time variables."""
        request: WorkflowRequest = context["request"]
        template: WorkflowTemplate = context["template"]
        variables: Dict[str, str] = context["variables"]

        step_templates = template.build(request, self.settings, variables)
        if not step_templates:
            raise WorkflowError(f"Workflow {template.id} produced no steps")

        steps: List[PlanStep] = []
        for step_data in step_templates:
            processed = self._substitute_variables(step_data, variables)
            steps.append(
                PlanStep(
                    id=processed["id"],
                    name=processed["name"],
                    description=processed.get("description", processed["name"]),
                    tool=processed["tool"],
                    action=processed["action"],
                    parameters=processed.get("parameters", {}),
                    dependencies=processed.get("dependencies", []),
                    estimated_duration=processed.get("estimated_duration", 5.0),
                    retry_count=processed.get("retry_count", 0),
                    timeout=processed.get("timeout"),
                    run_if=processed.get("run_if"),
                    skip_if=processed.get("skip_if"),
                    continue_on_failure=processed.get("continue_on_failure", False),
                    interactive=processed.get("interactive", False),
                    metadata=processed.get("metadata", {}),
                )
            )

        return PlanStructure(
            steps=steps,
            metadata={
                "workflow": template.id,
                "category": template.category,
                "variables": variables,
            },
        )

    def _substitute_variables(
        self, step_data: Dict[str, Any], variables: Dict[str, str]
    ) -> Dict[str, Any]:
        """Substitute ``{name}`` placeholders in step data."""
        parameters = dict(step_data.get("parameters") or {})
        verbatim = {
            key: parameters.pop(key)
            for key in VERBATIM_PARAMETERS
            if key in parameters
        }

        # Convert to JSON string for easy substitution
        step_json = json.dumps({**step_data, "parameters": parameters})
        for var_name, var_value in variables.items():
            step_json = step_json.replace(
                f"{{{var_name}}}", json.dumps(str(var_value))[1:-1]
            )

        result = json.loads(step_json)
        assert isinstance(result, dict), "Expected dict from JSON parsing"
        result["parameters"].update(verbatim)
        return result

    async def get_available_templates(self) -> List[Dict[str, Any]]:
        """Get the registered workflows for CLI display."""
        return [
            template.summary()
            for template in sorted(
                self._workflows.values(), key=lambda t: (t.category, t.id)
            )
        ]
