"""
Base executor interface and implementations.

This module defines the execution system that takes plans and runs their
steps against the registered tools.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field

from ..models import ExecutionResult, Plan


class ExecutionStatus(Enum):
    """Execution status for individual steps."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class StepExecution(BaseModel):
    """Execution state for a single step."""

    step_id: str
    status: ExecutionStatus = ExecutionStatus.PENDING
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    result: Optional[Dict[str, Any]] = None
    error: Optional[str] = None
    retry_count: int = 0
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ExecutionContext(BaseModel):
    """Context for tracking execution state."""

    execution_id: str
    plan_id: str
    correlation_id: str = ""
    start_time: datetime
    end_time: Optional[datetime] = None
    status: ExecutionStatus = ExecutionStatus.PENDING
    steps: Dict[str, StepExecution] = Field(default_factory=dict)
    outputs: Dict[str, Any] = Field(default_factory=dict)
    artifacts: Dict[str, Any] = Field(default_factory=dict)
    logs: List[str] = Field(default_factory=list)
    metrics: Dict[str, Any] = Field(default_factory=dict)


class ExecutorConfig(BaseModel):
    """Configuration for an executor."""

    step_timeout: int = 900  # seconds, per tool call
    retry_count: int = 0
    retry_delay: int = 2  # seconds
    continue_on_failure: bool = False
    monitoring_enabled: bool = True

    def get(self, key: str, default: Any = None) -> Any:
        """Get config value with fallback."""
        return getattr(self, key, default)


class Executor(ABC):
    """
    Base executor interface for plan execution.

    Steps run one at a time in dependency order; subclasses decide how a
    single step is carried out.
    """

    def __init__(self, config: ExecutorConfig, progress_tracker=None):
        self.config = config
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        self._progress_tracker = progress_tracker
        self._tool_registry: Dict[str, Any] = {}

    async def initialize(self) -> None:
        """Initialize the executor and its tools."""
        self.logger.info("Initializing executor")

        try:
            await self._initialize_tool_registry()
            self.logger.info(
                "Executor initialized successfully",
                extra={"tools": sorted(self._tool_registry)},
            )

        except ExecutorError:
            raise
        except Exception as e:
            self.logger.error(f"Failed to initialize executor: {e}")
            raise ExecutorError(f"Initialization failed: {e}")

    async def execute_plan(
        self, plan: Plan, correlation_id: Optional[str] = None
    ) -> ExecutionResult:
        """
        Execute a plan and return the result.

        Args:
            plan: The plan to execute
            correlation_id: Id tying step events to the CLI invocation

        Returns:
            ExecutionResult: Result of the execution
        """
        execution_id = f"exec_{plan.id}_{datetime.utcnow().strftime('%Y%m%d_%H%M%S')}"
        start_time = datetime.utcnow()

        try:
            self.logger.info(
                f"Starting plan execution: {execution_id}",
                extra={"workflow": plan.workflow, "steps": len(plan.steps)},
            )

            context = ExecutionContext(
                execution_id=execution_id,
                plan_id=plan.id,
                correlation_id=correlation_id or execution_id,
                start_time=start_time,
                status=ExecutionStatus.RUNNING,
            )
            for step in plan.steps:
                context.steps[step["id"]] = StepExecution(step_id=step["id"])

            return await self._execute_steps(plan, context)

        except Exception as e:
            self.logger.error(f"Plan execution failed: {e}")
            return ExecutionResult(
                success=False,
                execution_id=execution_id,
                error=str(e),
                duration=(datetime.utcnow() - start_time).total_seconds(),
            )

    @abstractmethod
    async def _execute_steps(
        self, plan: Plan, context: ExecutionContext
    ) -> ExecutionResult:
        """Run the plan's steps."""

    @abstractmethod
    async def _initialize_tool_registry(self) -> None:
        """Create and initialise the tools steps can use."""

    async def _check_dependencies(
        self, step: Dict[str, Any], context: ExecutionContext
    ) -> bool:
        """Check if step dependencies are satisfied.

        A dependency is satisfied once it has completed or been skipped, or
        when it failed but was allowed to continue on failure.
        """
        for dep_id in step.get("dependencies", []):
            dep_execution = context.steps.get(dep_id)
            if dep_execution is None:
                return False
            if dep_execution.status in (
                ExecutionStatus.COMPLETED,
                ExecutionStatus.SKIPPED,
            ):
                continue
            if dep_execution.status == ExecutionStatus.FAILED and (
                dep_execution.metadata.get("tolerated")
            ):
                continue
            return False

        return True

    async def _create_dependency_graph(self, plan: Plan) -> Dict[str, Set[str]]:
        """Create a dependency graph from the plan."""
        graph = {}

        for step in plan.steps:
            step_id = step["id"]
            dependencies = set(step.get("dependencies", []))
            graph[step_id] = dependencies

        return graph

    async def _topological_sort(self, graph: Dict[str, Set[str]]) -> List[str]:
        """Perform topological sort on dependency graph."""
        # Kahn's algorithm; graph[node] holds the dependencies of node, and
        # ties keep plan order.
        in_degree = {node: len(graph[node]) for node in graph}

        for node in graph:
            for dep in graph[node]:
                if dep not in in_degree:
                    in_degree[dep] = 0

        queue = [node for node in in_degree if in_degree[node] == 0]
        result = []

        while queue:
            node = queue.pop(0)
            result.append(node)

            for dependent in graph:
                if node in graph[dependent]:
                    in_degree[dependent] -= 1
                    if in_degree[dependent] == 0:
                        queue.append(dependent)

        if len(result) != len(in_degree):
            raise ExecutorError("Circular dependency detected")

        return result


class ExecutorError(Exception):
    """Base exception for executor-related errors."""
