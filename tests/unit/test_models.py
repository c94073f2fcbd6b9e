"""
Tests for request and plan models.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from labkit.models import ExecutionResult, Plan, WorkflowRequest


class TestWorkflowRequest:
    """Test workflow request validation."""

    def test_defaults(self):
        request = WorkflowRequest(workflow="python-setup")

        assert request.project_name is None
        assert request.location == "eastus"
        assert request.options == {}
        assert request.base_path == Path(".")

    @pytest.mark.parametrize("name", ["demo", "ml-project-2", "A1"])
    def test_valid_project_names(self, name):
        assert WorkflowRequest(workflow="ml-project", project_name=name).project_name == name

    @pytest.mark.parametrize("name", ["1demo", "my project", "demo_x", "-demo", ""])
    def test_invalid_project_names(self, name):
        with pytest.raises(ValidationError):
            WorkflowRequest(workflow="ml-project", project_name=name)

    def test_location_is_normalised(self):
        request = WorkflowRequest(workflow="azure-environment", location=" WestEurope ")

        assert request.location == "westeurope"

    def test_invalid_location(self):
        with pytest.raises(ValidationError):
            WorkflowRequest(workflow="azure-environment", location="west-europe")

    def test_option_treats_none_as_missing(self):
        request = WorkflowRequest(
            workflow="azure-pipeline", options={"repository": None, "flag": False}
        )

        assert request.option("repository", "infrastructure") == "infrastructure"
        assert request.option("flag", True) is False
        assert request.option("absent") is None

    def test_base_path_expands_home(self):
        request = WorkflowRequest(workflow="ml-project", working_dir="~/work")

        assert request.base_path == Path.home() / "work"


class TestPlan:
    """Test plan defaults."""

    def test_plan_ids_are_unique(self):
        request = WorkflowRequest(workflow="python-setup")

        assert Plan(workflow="python-setup", request=request).id != Plan(
            workflow="python-setup", request=request
        ).id

    def test_execution_result_defaults(self):
        result = ExecutionResult(success=True, execution_id="exec-1")

        assert result.artifacts == {}
        assert result.failed_step is None
        assert result.created_at is not None
