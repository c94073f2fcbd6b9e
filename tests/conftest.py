"""
Pytest configuration and shared fixtures.
"""

from typing import Any, Dict, List

import pytest

from labkit.config import AppSettings
from labkit.executors.base import ExecutorConfig
from labkit.models import Plan, WorkflowRequest
from labkit.planners.base import PlannerConfig, PlanStep


@pytest.fixture
def app_settings(tmp_path) -> AppSettings:
    """Settings isolated from the developer's environment and home."""
    return AppSettings(
        environment="testing",
        paths={
            "projects_dir": str(tmp_path / "projects"),
            "mlops_venv_dir": str(tmp_path / "projects" / "mlops"),
            "miniconda_dir": str(tmp_path / "miniconda"),
            "shell_profile": str(tmp_path / ".bashrc"),
            "gnupg_home": str(tmp_path / ".gnupg"),
        },
        devops={"organization": "https://dev.azure.com/contoso"},
        monitoring={"log_file": str(tmp_path / "labkit.log")},
    )


@pytest.fixture
def planner_config() -> PlannerConfig:
    """Create planner configuration for testing."""
    return PlannerConfig(max_plan_steps=100)


@pytest.fixture
def executor_config() -> ExecutorConfig:
    """Create executor configuration for testing."""
    return ExecutorConfig(step_timeout=30, retry_count=0, retry_delay=0)


@pytest.fixture
def sample_request(tmp_path) -> WorkflowRequest:
    """Create a sample workflow request for testing."""
    return WorkflowRequest(
        workflow="ml-project",
        project_name="demo",
        working_dir=str(tmp_path),
    )


@pytest.fixture
def sample_plan_steps() -> List[PlanStep]:
    """Create sample plan steps for testing."""
    return [
        PlanStep(
            id="create_dir",
            name="Create project directory",
            description="Create the project directory",
            tool="filesystem",
            action="create_directory",
            parameters={"path": "/tmp/demo"},
        ),
        PlanStep(
            id="init_repo",
            name="Initialise git repository",
            description="Run git init in the project directory",
            tool="git",
            action="init",
            parameters={"path": "/tmp/demo"},
            dependencies=["create_dir"],
        ),
    ]


@pytest.fixture
def sample_plan(sample_request, sample_plan_steps) -> Plan:
    """Create a sample plan for testing."""
    return Plan(
        id="plan-1",
        workflow="ml-project",
        steps=[step.model_dump() for step in sample_plan_steps],
        dependencies={step.id: step.dependencies for step in sample_plan_steps},
        request=sample_request,
    )


@pytest.fixture
def make_step():
    """Build plan step dicts the way the planner emits them."""

    def _make_step(
        step_id: str,
        tool: str = "filesystem",
        action: str = "create_directory",
        **kwargs,
    ) -> Dict[str, Any]:
        step: Dict[str, Any] = {
            "id": step_id,
            "name": kwargs.pop("name", step_id),
            "description": kwargs.pop("description", step_id),
            "tool": tool,
            "action": action,
            "parameters": kwargs.pop("parameters", {}),
            "dependencies": kwargs.pop("dependencies", []),
        }
        step.update(kwargs)
        return step

    return _make_step
