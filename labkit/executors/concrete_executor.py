"""
Concrete executor implementation.

Runs workflow plans against the vendor CLI tools, resolving references to
earlier step outputs and evaluating step conditions as it goes.
"""

import asyncio
from contextlib import nullcontext
from datetime import datetime
from typing import Any, Dict, Optional, Type

from ..models import ExecutionResult, Plan
from ..tools.azure import AzureCliTool
from ..tools.base import Tool, ToolConfig
from ..tools.devops import AzureDevOpsTool
from ..tools.editor import EditorTool
from ..tools.filesystem import FileSystemTool
from ..tools.git import GitTool
from ..tools.gpg import GpgTool
from ..tools.packages import PackageManagerTool
from ..tools.passwordstore import PasswordStoreTool
from ..tools.python_env import PythonEnvTool
from .base import (
    ExecutionContext,
    ExecutionStatus,
    Executor,
    ExecutorConfig,
    ExecutorError,
    StepExecution,
)
from .references import StepReferenceError, evaluate_condition, resolve_references

TOOL_CLASSES: Dict[str, Type[Tool]] = {
    "azure": AzureCliTool,
    "devops": AzureDevOpsTool,
    "git": GitTool,
    "filesystem": FileSystemTool,
    "passwordstore": PasswordStoreTool,
    "gpg": GpgTool,
    "packages": PackageManagerTool,
    "python_env": PythonEnvTool,
    "editor": EditorTool,
}

# Tools every workflow family relies on
CRITICAL_TOOLS = ("filesystem",)


class ConcreteExecutor(Executor):
    """
    Concrete executor that uses real tools to execute plans.

    Steps run sequentially. Before a step runs, its ``run_if``/``skip_if``
    conditions are evaluated and ``${step.field}`` references in its
    parameters are replaced with earlier outputs. Interactive steps pause
    the progress display so the vendor CLI can use the terminal.
    """

    def __init__(self, config: ExecutorConfig, progress_tracker=None):
        super().__init__(config, progress_tracker)
        self._tools: Dict[str, Tool] = {}
        self._tool_configs: Dict[str, ToolConfig] = {}

    async def _initialize_tool_registry(self) -> None:
        """Initialize all available tools."""
        self._tool_configs = {
            name: ToolConfig(
                name=name,
                version="1.0.0",
                timeout=self.config.step_timeout,
                retry_count=self.config.retry_count,
                retry_delay=self.config.retry_delay,
            )
            for name in TOOL_CLASSES
        }

        for name, tool_class in TOOL_CLASSES.items():
            try:
                tool = tool_class(self._tool_configs[name])
                await tool.initialize()
                self._tools[name] = tool
            except Exception as e:
                if name in CRITICAL_TOOLS:
                    self.logger.error(f"{name} tool initialization failed: {e}")
                    raise ExecutorError(f"Critical tool initialization failed: {e}")
                # Continue without it; plans that need it fail validation
                self.logger.warning(f"{name} tool initialization failed: {e}")

        self._tool_registry = dict(self._tools)

    async def _execute_steps(
        self, plan: Plan, context: ExecutionContext
    ) -> ExecutionResult:
        """Execute steps in dependency order."""
        start_time = datetime.utcnow()

        dependency_graph = await self._create_dependency_graph(plan)
        execution_order = await self._topological_sort(dependency_graph)
        steps_by_id = {s["id"]: s for s in plan.steps}

        failed_step: Optional[str] = None
        failure_error: Optional[str] = None

        for step_id in execution_order:
            step = steps_by_id.get(step_id)
            if not step:
                continue

            if not await self._check_dependencies(step, context):
                step_execution = context.steps[step_id]
                step_execution.status = ExecutionStatus.FAILED
                step_execution.error = "Dependencies not satisfied"
                context.outputs[step_id] = None
                failed_step = failed_step or step_id
                failure_error = failure_error or f"Step {step_id}: dependencies not satisfied"
                continue

            step_execution = await self._execute_step(step, context)
            context.metrics["progress"] = (
                sum(
                    1
                    for s in context.steps.values()
                    if s.status != ExecutionStatus.PENDING
                )
                / len(plan.steps)
            )

            if step_execution.status != ExecutionStatus.FAILED:
                continue
            if step_execution.metadata.get("tolerated"):
                context.logs.append(
                    f"Step {step_id} failed and was allowed to continue: "
                    f"{step_execution.error}"
                )
                continue

            failed_step = failed_step or step_id
            failure_error = failure_error or (
                f"Step {step_id} ({step.get('name', step_id)}) failed: "
                f"{step_execution.error}"
            )
            if not self.config.continue_on_failure:
                break

        context.end_time = datetime.utcnow()
        duration = (context.end_time - start_time).total_seconds()
        counts = self._count_statuses(context)
        success = failed_step is None and counts["pending"] == 0
        context.status = ExecutionStatus.COMPLETED if success else ExecutionStatus.FAILED

        result = ExecutionResult(
            success=success,
            execution_id=context.execution_id,
            artifacts=context.artifacts,
            logs=context.logs,
            metrics={
                **context.metrics,
                "total_steps": len(plan.steps),
                "successful_steps": counts["completed"],
                "skipped_steps": counts["skipped"],
                "failed_steps": counts["failed"],
                "execution_time": duration,
            },
            failed_step=failed_step,
            duration=duration,
        )

        if not success:
            result.error = failure_error or (
                f"Plan execution failed. {counts['completed']}/{len(plan.steps)} "
                "steps completed."
            )

        return result

    async def _execute_step(
        self, step: Dict[str, Any], context: ExecutionContext
    ) -> StepExecution:
        """Execute a single step using the appropriate tool."""
        step_id = step["id"]
        step_name = step.get("name", step_id)
        step_execution = context.steps[step_id]
        step_execution.start_time = datetime.utcnow()

        try:
            reason = self._skip_reason(step, context.outputs)
        except StepReferenceError as e:
            return self._fail(step, step_execution, context, f"Condition error: {e}")

        if reason:
            step_execution.status = ExecutionStatus.SKIPPED
            step_execution.end_time = datetime.utcnow()
            step_execution.metadata["reason"] = reason
            context.outputs[step_id] = None
            context.logs.append(f"Skipped {step_id}: {reason}")
            self.logger.info(
                f"Step skipped: {step_id}", extra={"step_id": step_id, "reason": reason}
            )
            if self._progress_tracker:
                await self._progress_tracker.log_step_skipped(
                    step_id,
                    step_name,
                    reason,
                    context.correlation_id,
                    context.execution_id,
                )
            return step_execution

        tool_name = step.get("tool")
        if not tool_name:
            return self._fail(step, step_execution, context, "No tool specified")
        if tool_name not in self._tools:
            return self._fail(
                step, step_execution, context, f"Tool not available: {tool_name}"
            )

        try:
            parameters = resolve_references(step.get("parameters", {}), context.outputs)
        except StepReferenceError as e:
            return self._fail(step, step_execution, context, str(e))

        step_execution.status = ExecutionStatus.RUNNING
        self.logger.info(
            f"Executing step: {step_id}",
            extra={"step_id": step_id, "tool": tool_name, "action": step.get("action")},
        )

        tracker = None
        if self._progress_tracker:
            tracker = self._progress_tracker.track_step_execution(
                step_id,
                step_name,
                context.correlation_id,
                context.execution_id,
                tool=tool_name,
                action=step.get("action", ""),
            )

        try:
            if tracker:
                async with tracker:
                    result = await self._run_tool(step, parameters, step_execution)
                    if not result.success:
                        tracker.mark_failed(result.error)
            else:
                result = await self._run_tool(step, parameters, step_execution)
        except Exception as e:
            return self._fail(step, step_execution, context, str(e))

        step_execution.end_time = datetime.utcnow()
        if not result.success:
            return self._fail(
                step, step_execution, context, result.error or "Tool execution failed"
            )

        step_execution.status = ExecutionStatus.COMPLETED
        step_execution.result = {
            "tool_output": result.output,
            "duration": result.duration,
            "metadata": result.metadata,
        }
        context.outputs[step_id] = result.output
        if result.output:
            context.artifacts[step_id] = result.output
        context.logs.append(f"Completed {step_id}")
        return step_execution

    async def _run_tool(
        self,
        step: Dict[str, Any],
        parameters: Dict[str, Any],
        step_execution: StepExecution,
    ) -> Any:
        """Run the step's tool action, retrying failed results if asked."""
        tool = self._tools[step["tool"]]
        attempts = int(step.get("retry_count") or 0) + 1
        timeout = step.get("timeout")
        paused = (
            self._progress_tracker.paused()
            if step.get("interactive") and self._progress_tracker
            else nullcontext()
        )

        result = None
        with paused:
            for attempt in range(attempts):
                step_execution.retry_count = attempt
                call = tool.execute(step["action"], parameters)
                if timeout:
                    try:
                        result = await asyncio.wait_for(call, timeout=timeout)
                    except asyncio.TimeoutError:
                        raise ExecutorError(
                            f"Step timed out after {timeout} seconds"
                        )
                else:
                    result = await call

                if result.success or attempt == attempts - 1:
                    break
                self.logger.warning(
                    f"Step attempt {attempt + 1} failed, retrying in "
                    f"{self.config.retry_delay}s: {result.error}"
                )
                await asyncio.sleep(self.config.retry_delay)

        return result

    def _skip_reason(
        self, step: Dict[str, Any], outputs: Dict[str, Any]
    ) -> Optional[str]:
        run_if = step.get("run_if")
        if run_if is not None and not evaluate_condition(run_if, outputs):
            return f"run_if {run_if} is false"
        skip_if = step.get("skip_if")
        if skip_if is not None and evaluate_condition(skip_if, outputs):
            return f"skip_if {skip_if} is true"
        return None

    def _fail(
        self,
        step: Dict[str, Any],
        step_execution: StepExecution,
        context: ExecutionContext,
        error: str,
    ) -> StepExecution:
        step_execution.status = ExecutionStatus.FAILED
        step_execution.end_time = datetime.utcnow()
        step_execution.error = error
        step_execution.metadata["tolerated"] = bool(step.get("continue_on_failure"))
        context.outputs[step["id"]] = None
        self.logger.error(
            f"Step failed: {step['id']} - {error}",
            extra={"step_id": step["id"], "tool": step.get("tool")},
        )
        return step_execution

    def _count_statuses(self, context: ExecutionContext) -> Dict[str, int]:
        counts = {status.value: 0 for status in ExecutionStatus}
        for step_execution in context.steps.values():
            counts[step_execution.status.value] += 1
        return counts

    async def get_available_tools(self) -> Dict[str, Dict[str, Any]]:
        """Get information about available tools."""
        tools_info = {}

        for tool_name in TOOL_CLASSES:
            tool = self._tools.get(tool_name)
            if tool is None:
                tools_info[tool_name] = {
                    "name": tool_name,
                    "status": "error",
                    "error": "initialization failed",
                }
                continue
            try:
                schema = await tool.get_schema()
                installed = getattr(tool, "available", True)
                tools_info[tool_name] = {
                    "name": schema.name,
                    "description": schema.description,
                    "version": schema.version,
                    "actions": list(schema.actions.keys()),
                    "dependencies": schema.dependencies,
                    "status": "available" if installed else "not installed",
                }
            except Exception as e:
                tools_info[tool_name] = {
                    "name": tool_name,
                    "status": "error",
                    "error": str(e),
                }

        return tools_info

    async def validate_plan_requirements(self, plan: Plan) -> Dict[str, Any]:
        """Validate that all plan requirements can be met."""
        validation_results: Dict[str, Any] = {
            "valid": True,
            "missing_tools": [],
            "invalid_actions": [],
            "warnings": [],
        }

        for step in plan.steps:
            tool_name = step.get("tool")
            action = step.get("action")

            if not tool_name:
                validation_results["warnings"].append(
                    f"Step {step['id']} has no tool specified"
                )
                continue

            if tool_name not in self._tools:
                if tool_name not in validation_results["missing_tools"]:
                    validation_results["missing_tools"].append(tool_name)
                validation_results["valid"] = False
                continue

            try:
                supported_actions = await self._tools[tool_name]._get_supported_actions()
                if action not in supported_actions:
                    validation_results["invalid_actions"].append(
                        {
                            "step": step["id"],
                            "tool": tool_name,
                            "action": action,
                            "supported": supported_actions,
                        }
                    )
                    validation_results["valid"] = False
            except Exception as e:
                validation_results["warnings"].append(
                    f"Could not validate tool {tool_name}: {e}"
                )

        return validation_results

    async def get_execution_summary(self, context: ExecutionContext) -> Dict[str, Any]:
        """Get a summary of the execution."""
        counts = self._count_statuses(context)
        end_time = context.end_time or datetime.utcnow()

        return {
            "execution_id": context.execution_id,
            "status": context.status.value,
            "duration": (end_time - context.start_time).total_seconds(),
            "steps": {"total": len(context.steps), **counts},
            "artifacts": list(context.artifacts.keys()),
            "metrics": context.metrics,
        }
