"""
Tests for the base executor: dependency graph, ordering and bookkeeping.
"""

from datetime import datetime
from unittest.mock import patch

import pytest

from labkit.executors.base import (
    ExecutionContext,
    ExecutionStatus,
    Executor,
    ExecutorConfig,
    ExecutorError,
    StepExecution,
)
from labkit.models import ExecutionResult, Plan, WorkflowRequest


class RecordingExecutor(Executor):
    """Executor that records the order it was asked to run steps in."""

    def __init__(self, config):
        super().__init__(config)
        self.order = []

    async def _initialize_tool_registry(self):
        self._tool_registry = {"filesystem": object()}

    async def _execute_steps(self, plan, context):
        graph = await self._create_dependency_graph(plan)
        self.order = await self._topological_sort(graph)
        return ExecutionResult(success=True, execution_id=context.execution_id)


def plan_with(steps):
    return Plan(workflow="test", steps=steps, request=WorkflowRequest(workflow="test"))


class TestExecutorConfig:
    def test_defaults(self):
        config = ExecutorConfig()

        assert config.step_timeout == 900
        assert config.retry_count == 0
        assert config.continue_on_failure is False

    def test_get_with_fallback(self):
        config = ExecutorConfig()

        assert config.get("retry_delay") == 2
        assert config.get("missing", "fallback") == "fallback"


class TestExecutor:
    """Test the shared executor behaviour."""

    @pytest.fixture
    def executor(self):
        return RecordingExecutor(ExecutorConfig())

    @pytest.mark.asyncio
    async def test_initialize(self, executor):
        await executor.initialize()

        assert "filesystem" in executor._tool_registry

    @pytest.mark.asyncio
    async def test_initialize_wraps_unexpected_errors(self, executor):
        with patch.object(
            executor, "_initialize_tool_registry", side_effect=RuntimeError("boom")
        ):
            with pytest.raises(ExecutorError, match="Initialization failed: boom"):
                await executor.initialize()

    @pytest.mark.asyncio
    async def test_topological_sort_keeps_plan_order_for_ties(self, executor):
        order = await executor._topological_sort(
            {"a": set(), "b": set(), "c": {"a"}, "d": {"c", "b"}}
        )

        assert order == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_circular_dependency(self, executor):
        with pytest.raises(ExecutorError, match="Circular dependency"):
            await executor._topological_sort({"a": {"b"}, "b": {"a"}})

    @pytest.mark.asyncio
    async def test_execute_plan_reports_cycles_as_failure(self, executor):
        plan = plan_with(
            [
                {"id": "a", "dependencies": ["b"]},
                {"id": "b", "dependencies": ["a"]},
            ]
        )

        result = await executor.execute_plan(plan)

        assert result.success is False
        assert "Circular dependency" in result.error

    @pytest.mark.asyncio
    async def test_execute_plan_result(self, executor):
        result = await executor.execute_plan(plan_with([{"id": "a"}]))

        assert result.success is True
        assert result.execution_id.startswith("exec_")

    @pytest.mark.asyncio
    async def test_check_dependencies(self, executor):
        context = ExecutionContext(
            execution_id="e",
            plan_id="p",
            start_time=datetime.utcnow(),
            steps={
                "done": StepExecution(step_id="done", status=ExecutionStatus.COMPLETED),
                "skipped": StepExecution(step_id="skipped", status=ExecutionStatus.SKIPPED),
                "failed": StepExecution(step_id="failed", status=ExecutionStatus.FAILED),
                "tolerated": StepExecution(
                    step_id="tolerated",
                    status=ExecutionStatus.FAILED,
                    metadata={"tolerated": True},
                ),
            },
        )

        assert await executor._check_dependencies(
            {"dependencies": ["done", "skipped", "tolerated"]}, context
        )
        assert not await executor._check_dependencies(
            {"dependencies": ["failed"]}, context
        )
        assert not await executor._check_dependencies(
            {"dependencies": ["unknown"]}, context
        )
