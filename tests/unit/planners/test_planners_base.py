"""
Unit tests for the base planner.

Tests cover step validation, dependency analysis and plan assembly.
"""

from typing import Any, Dict, List

import pytest

from labkit.models import Plan, WorkflowRequest
from labkit.planners.base import (
    Planner,
    PlannerConfig,
    PlannerError,
    PlanStep,
    PlanStructure,
    PlanValidationError,
    WorkflowError,
)


class StaticPlanner(Planner):
    """Planner that returns a fixed list of steps."""

    def __init__(self, config: PlannerConfig, steps: List[PlanStep]):
        super().__init__(config)
        self.steps = steps

    async def _gather_context(self, request: WorkflowRequest) -> Dict[str, Any]:
        return {"request": request}

    async def _generate_initial_plan(self, context: Dict[str, Any]) -> PlanStructure:
        return PlanStructure(self.steps, {"variables": {"project_name": "demo"}})


def plan_step(step_id: str, **kwargs) -> PlanStep:
    return PlanStep(
        id=step_id,
        name=kwargs.pop("name", step_id),
        tool=kwargs.pop("tool", "filesystem"),
        action=kwargs.pop("action", "create_directory"),
        **kwargs,
    )


class TestPlanValidation:
    """Test step graph validation."""

    @pytest.fixture
    def planner(self, planner_config):
        return StaticPlanner(planner_config, [])

    @pytest.mark.asyncio
    async def test_valid_steps(self, planner, sample_plan_steps):
        result = await planner._validate_steps(sample_plan_steps)

        assert result.valid is True
        assert result.errors == []

    @pytest.mark.asyncio
    async def test_empty_plan(self, planner):
        result = await planner._validate_steps([])

        assert result.valid is False
        assert "Plan has no steps" in result.errors

    @pytest.mark.asyncio
    async def test_too_many_steps(self):
        planner = StaticPlanner(PlannerConfig(max_plan_steps=2), [])
        steps = [plan_step(f"s{i}") for i in range(3)]

        result = await planner._validate_steps(steps)

        assert result.valid is False
        assert any("more than the maximum of 2" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_duplicate_step_ids(self, planner):
        result = await planner._validate_steps([plan_step("a"), plan_step("a")])

        assert result.valid is False
        assert "Duplicate step id: a" in result.errors

    @pytest.mark.asyncio
    async def test_circular_dependencies(self, planner):
        steps = [
            plan_step("a", dependencies=["c"]),
            plan_step("b", dependencies=["a"]),
            plan_step("c", dependencies=["b"]),
        ]

        result = await planner._validate_steps(steps)

        assert result.valid is False
        assert "Circular dependencies detected" in result.errors

    @pytest.mark.asyncio
    async def test_unknown_dependency(self, planner):
        result = await planner._validate_steps([plan_step("a", dependencies=["ghost"])])

        assert result.valid is False
        assert "Step a depends on non-existent step ghost" in result.errors

    @pytest.mark.asyncio
    async def test_unavailable_tool(self):
        planner = StaticPlanner(PlannerConfig(available_tools=["filesystem"]), [])

        result = await planner._validate_steps([plan_step("a", tool="azure")])

        assert result.valid is False
        assert "Tool azure is not available" in result.errors

    @pytest.mark.asyncio
    async def test_reference_to_unknown_step(self, planner):
        steps = [plan_step("a", parameters={"path": "${ghost.path}"})]

        result = await planner._validate_steps(steps)

        assert result.valid is False
        assert "Step a references unknown step ghost" in result.errors

    @pytest.mark.asyncio
    async def test_reference_without_dependency(self, planner):
        steps = [
            plan_step("a"),
            plan_step("b", run_if="${a.created}"),
        ]

        result = await planner._validate_steps(steps)

        assert result.valid is False
        assert "Step b references a without depending on it" in result.errors

    @pytest.mark.asyncio
    async def test_reference_through_transitive_dependency(self, planner):
        steps = [
            plan_step("a"),
            plan_step("b", dependencies=["a"]),
            plan_step("c", dependencies=["b"], skip_if="!${a.created}"),
        ]

        result = await planner._validate_steps(steps)

        assert result.valid is True

    @pytest.mark.asyncio
    async def test_workspace_placeholders_are_not_references(self, planner):
        steps = [
            plan_step(
                "launch",
                action="write_file",
                parameters={"content": {"cwd": "${workspaceFolder}"}},
            )
        ]

        result = await planner._validate_steps(steps)

        assert result.valid is True

    @pytest.mark.asyncio
    async def test_interactive_continue_on_failure_warns(self, planner):
        steps = [plan_step("login", interactive=True, continue_on_failure=True)]

        result = await planner._validate_steps(steps)

        assert result.valid is True
        assert len(result.warnings) == 1
        assert "login" in result.warnings[0]


class TestCreatePlan:
    """Test plan assembly."""

    @pytest.mark.asyncio
    async def test_create_plan(self, planner_config, sample_request, sample_plan_steps):
        sample_plan_steps[0].estimated_duration = 2.0
        sample_plan_steps[1].estimated_duration = 3.0
        planner = StaticPlanner(planner_config, sample_plan_steps)

        plan = await planner.create_plan(sample_request)

        assert isinstance(plan, Plan)
        assert plan.workflow == "ml-project"
        assert [s["id"] for s in plan.steps] == ["create_dir", "init_repo"]
        assert plan.dependencies == {"init_repo": ["create_dir"]}
        assert plan.variables == {"project_name": "demo"}
        assert plan.estimated_duration == 5.0
        assert plan.request == sample_request

    @pytest.mark.asyncio
    async def test_invalid_plan_raises_validation_error(
        self, planner_config, sample_request
    ):
        planner = StaticPlanner(planner_config, [plan_step("a"), plan_step("a")])

        with pytest.raises(PlanValidationError) as exc_info:
            await planner.create_plan(sample_request)

        assert "Duplicate step id: a" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_workflow_errors_propagate(self, planner_config, sample_request):
        planner = StaticPlanner(planner_config, [])

        async def refuse(request):
            raise WorkflowError("Teardown cancelled")

        planner._gather_context = refuse

        with pytest.raises(WorkflowError, match="Teardown cancelled"):
            await planner.create_plan(sample_request)

    @pytest.mark.asyncio
    async def test_unexpected_errors_are_wrapped(self, planner_config, sample_request):
        planner = StaticPlanner(planner_config, [])

        async def broken(request):
            raise KeyError("variables")

        planner._gather_context = broken

        with pytest.raises(PlannerError) as exc_info:
            await planner.create_plan(sample_request)

        assert "Plan creation failed" in str(exc_info.value)
        assert not isinstance(exc_info.value, WorkflowError)

    @pytest.mark.asyncio
    async def test_validate_plan(self, planner_config, sample_plan):
        planner = StaticPlanner(planner_config, [])

        result = await planner.validate_plan(sample_plan)

        assert result.valid is True


class TestDependencyHelpers:
    """Test the dependency helpers."""

    @pytest.fixture
    def planner(self, planner_config):
        return StaticPlanner(planner_config, [])

    def test_ancestors_are_transitive(self, planner):
        steps = [
            plan_step("a"),
            plan_step("b", dependencies=["a"]),
            plan_step("c", dependencies=["b"]),
        ]

        ancestors = planner._ancestors(steps)

        assert ancestors["a"] == set()
        assert ancestors["c"] == {"a", "b"}

    def test_extract_dependencies_skips_roots(self, planner, sample_plan_steps):
        assert planner._extract_dependencies(sample_plan_steps) == {
            "init_repo": ["create_dir"]
        }

    def test_no_cycle_in_diamond(self, planner):
        steps = [
            plan_step("a"),
            plan_step("b", dependencies=["a"]),
            plan_step("c", dependencies=["a"]),
            plan_step("d", dependencies=["b", "c"]),
        ]

        assert planner._has_circular_dependencies(steps) is False
