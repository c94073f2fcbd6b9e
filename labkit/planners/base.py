"""
Base planner interface and implementations.

This module defines the planning system that turns a workflow request into
an execution plan: an ordered list of tool steps with dependencies.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field

from ..executors.references import find_references
from ..models import Plan, WorkflowRequest

Condition = Union[bool, str, None]


class PlanStep(BaseModel):
    """Individual step in an execution plan."""

    id: str
    name: str
    description: str = ""
    tool: str
    action: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    dependencies: List[str] = Field(default_factory=list)
    estimated_duration: float = 0.0
    retry_count: int = 0
    timeout: Optional[int] = None
    run_if: Condition = None
    skip_if: Condition = None
    continue_on_failure: bool = False
    interactive: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PlanValidationResult(BaseModel):
    """Result of plan validation."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class PlannerConfig(BaseModel):
    """Configuration for a planner."""

    max_plan_steps: int = 100
    available_tools: Optional[List[str]] = None


class Planner(ABC):
    """
    Base planner interface for creating execution plans.

    Subclasses gather the planning context for a request and generate its
    steps; the base class validates the step graph and assembles the Plan.
    """

    def __init__(self, config: PlannerConfig, progress_tracker=None):
        self.config = config
        self.logger = logging.getLogger(f"{self.__class__.__name__}")
        self._progress_tracker = progress_tracker

    async def initialize(self) -> None:
        """Initialize the planner."""

    async def create_plan(self, request: WorkflowRequest) -> Plan:
        """
        Create an execution plan from a workflow request.

        Args:
            request: Workflow request

        Returns:
            Plan: Complete execution plan

        Raises:
            WorkflowError: If a workflow precondition is not met
            PlannerError: If the plan cannot be generated or is invalid
        """
        try:
            context = await self._gather_context(request)
            structure = await self._generate_initial_plan(context)

            validation = await self._validate_steps(structure.steps)
            if not validation.valid:
                raise PlanValidationError(
                    f"Plan validation failed: {'; '.join(validation.errors)}"
                )
            for warning in validation.warnings:
                self.logger.warning(warning)

            return Plan(
                workflow=request.workflow,
                steps=[step.model_dump() for step in structure.steps],
                dependencies=self._extract_dependencies(structure.steps),
                variables=structure.metadata.get("variables", {}),
                estimated_duration=self._calculate_duration(structure.steps),
                request=request,
            )

        except PlannerError:
            raise
        except Exception as e:
            self.logger.error(f"Plan creation failed: {e}")
            raise PlannerError(f"Plan creation failed: {e}")

    async def validate_plan(self, plan: Plan) -> PlanValidationResult:
        """
        Validate a plan for correctness.

        Args:
            plan: Plan to validate

        Returns:
            PlanValidationResult: Validation result
        """
        steps = [PlanStep(**step) for step in plan.steps]
        return await self._validate_steps(steps)

    @abstractmethod
    async def _generate_initial_plan(self, context: Dict[str, Any]) -> "PlanStructure":
        """Generate the plan structure."""

    @abstractmethod
    async def _gather_context(self, request: WorkflowRequest) -> Dict[str, Any]:
        """Gather context for planning."""

    async def _validate_steps(self, steps: List[PlanStep]) -> PlanValidationResult:
        """Validate individual steps and their dependencies."""
        errors: List[str] = []
        warnings: List[str] = []

        if not steps:
            errors.append("Plan has no steps")

        if len(steps) > self.config.max_plan_steps:
            errors.append(
                f"Plan has {len(steps)} steps, more than the maximum of "
                f"{self.config.max_plan_steps}"
            )

        seen = set()
        for step in steps:
            if step.id in seen:
                errors.append(f"Duplicate step id: {step.id}")
            seen.add(step.id)

        if self._has_circular_dependencies(steps):
            errors.append("Circular dependencies detected")

        ancestors = self._ancestors(steps)
        for step in steps:
            if (
                self.config.available_tools is not None
                and step.tool not in self.config.available_tools
            ):
                errors.append(f"Tool {step.tool} is not available")

            for dep in step.dependencies:
                if dep not in seen:
                    errors.append(f"Step {step.id} depends on non-existent step {dep}")

            referenced = find_references(
                [step.parameters, step.run_if, step.skip_if]
            )
            for ref in sorted(referenced):
                if ref not in seen:
                    errors.append(f"Step {step.id} references unknown step {ref}")
                elif ref not in ancestors.get(step.id, set()):
                    errors.append(
                        f"Step {step.id} references {ref} without depending on it"
                    )

            if step.interactive and step.continue_on_failure:
                warnings.append(
                    f"Interactive step {step.id} continues on failure; "
                    "a declined prompt will not stop the workflow"
                )

        return PlanValidationResult(
            valid=len(errors) == 0, errors=errors, warnings=warnings
        )

    def _extract_dependencies(self, steps: List[PlanStep]) -> Dict[str, List[str]]:
        """Extract dependency graph from steps."""
        dependencies = {}
        for step in steps:
            if step.dependencies:
                dependencies[step.id] = step.dependencies
        return dependencies

    def _calculate_duration(self, steps: List[PlanStep]) -> float:
        """Steps run sequentially, so the estimate is the plain sum."""
        return sum(step.estimated_duration for step in steps)

    def _ancestors(self, steps: List[PlanStep]) -> Dict[str, set]:
        """Transitive dependencies of every step."""
        direct = {step.id: set(step.dependencies) for step in steps}
        result: Dict[str, set] = {}

        def collect(step_id: str, trail: set) -> set:
            if step_id in result:
                return result[step_id]
            found: set = set()
            for dep in direct.get(step_id, set()):
                if dep in trail:
                    continue
                found.add(dep)
                found |= collect(dep, trail | {dep})
            result[step_id] = found
            return found

        for step in steps:
            collect(step.id, {step.id})
        return result

    def _has_circular_dependencies(self, steps: List[PlanStep]) -> bool:
        """Check for circular dependencies."""
        graph = {step.id: step.dependencies for step in steps}
        visited = set()
        rec_stack = set()

        def has_cycle(step_id: str) -> bool:
            if step_id in rec_stack:
                return True
            if step_id in visited:
                return False

            visited.add(step_id)
            rec_stack.add(step_id)
            for dep in graph.get(step_id, []):
                if has_cycle(dep):
                    return True
            rec_stack.remove(step_id)
            return False

        return any(has_cycle(step.id) for step in steps if step.id not in visited)


class PlanStructure:
    """Internal structure for plan manipulation."""

    def __init__(
        self, steps: List[PlanStep], metadata: Optional[Dict[str, Any]] = None
    ):
        self.steps = steps
        self.metadata = metadata or {}


class PlannerError(Exception):
    """Base exception for planner-related errors."""


class PlanValidationError(PlannerError):
    """Exception raised during plan validation."""


class WorkflowError(PlannerError):
    """A workflow precondition is not met (missing file, organisation, ...)."""
