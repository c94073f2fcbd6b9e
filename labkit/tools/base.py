"""
Base tool interface and implementations.

This module defines the tool abstraction layer that allows workflows to drive
vendor command-line tools (cloud CLI, git, pass, package managers) in a
consistent manner.
"""

import asyncio
import logging
import os
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..security import mask_command


class ToolStatus(Enum):
    """Tool operation status."""

    IDLE = "idle"
    VALIDATING = "validating"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"


class ToolResult(BaseModel):
    """Result of a tool operation."""

    success: bool
    tool_name: str
    action: str
    output: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    duration: Optional[float] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ValidationResult(BaseModel):
    """Result of parameter validation."""

    valid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    normalized_params: Dict[str, Any] = Field(default_factory=dict)


class ToolConfig(BaseModel):
    """Configuration for a tool."""

    name: str
    version: str
    enabled: bool = True
    timeout: int = 300  # seconds
    retry_count: int = 0
    retry_delay: int = 2  # seconds
    environment: Dict[str, Any] = Field(default_factory=dict)


class ToolSchema(BaseModel):
    """Schema describing tool capabilities."""

    name: str
    description: str
    version: str
    actions: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    required_permissions: List[str] = Field(default_factory=list)
    dependencies: List[str] = Field(default_factory=list)


class CommandResult(BaseModel):
    """Outcome of a single vendor CLI invocation."""

    returncode: int
    stdout: str = ""
    stderr: str = ""
    command: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ParameterValidator:
    """
    Checks that each action receives its required parameters.

    Tools subclass this and override ``check`` for action-specific rules.
    """

    required: Dict[str, List[str]] = {}
    sensitive: List[str] = []

    def validate(self, action: str, params: Dict[str, Any]) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []
        normalized_params = params.copy()

        for name in self.required.get(action, []):
            value = params.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"{name} is required for {action}")

        if not errors:
            self.check(action, normalized_params, errors, warnings)

        return ValidationResult(
            valid=len(errors) == 0,
            errors=errors,
            warnings=warnings,
            normalized_params=normalized_params,
        )

    def check(
        self,
        action: str,
        params: Dict[str, Any],
        errors: List[str],
        warnings: List[str],
    ) -> None:
        """Hook for action-specific validation."""


class Tool(ABC):
    """
    Base tool interface for all system tools.

    This abstract base class defines the contract that all tools must implement.
    It provides a consistent interface for validation and execution across
    different vendor CLIs.
    """

    def __init__(self, config: ToolConfig):
        self.config = config
        self.logger = logging.getLogger(f"{self.__class__.__name__}:{config.name}")
        self.status = ToolStatus.IDLE
        self._client: Optional[Any] = None
        self._validator: Optional[Any] = None
        self._last_operation: Optional[Dict[str, Any]] = None

    async def initialize(self) -> None:
        """Initialize the tool (locate binaries, build validator, etc.)."""
        try:
            self._validator = await self._create_validator()
            self._client = await self._create_client()
            await self._validate_configuration()

        except Exception as e:
            self.logger.error(f"Failed to initialize tool {self.config.name}: {e}")
            raise ToolError(f"Initialization failed: {e}")

    async def execute(self, action: str, params: Dict[str, Any]) -> ToolResult:
        """
        Execute a tool action with the given parameters.

        Args:
            action: The action to execute
            params: Parameters for the action

        Returns:
            ToolResult: Result of the operation
        """
        start_time = datetime.utcnow()
        operation_id = f"{self.config.name}_{action}_{int(start_time.timestamp())}"

        try:
            self.status = ToolStatus.VALIDATING

            validation = await self.validate(action, params)
            if not validation.valid:
                self.logger.error(
                    "Tool parameter validation failed",
                    extra={
                        "tool_name": self.config.name,
                        "operation_id": operation_id,
                        "action": action,
                        "operation": "tool_execution",
                        "phase": "validation_error",
                        "validation_errors": validation.errors,
                        "validation_warnings": validation.warnings,
                    },
                )
                raise ToolValidationError(f"Validation failed: {validation.errors}")

            for warning in validation.warnings:
                self.logger.warning(
                    warning,
                    extra={"tool_name": self.config.name, "action": action},
                )

            normalized_params = validation.normalized_params or params

            self.status = ToolStatus.EXECUTING
            result = await self._execute_with_retry(action, normalized_params)

            self._last_operation = {
                "action": action,
                "result": result,
                "timestamp": start_time,
            }

            self.status = ToolStatus.COMPLETED

            duration = (datetime.utcnow() - start_time).total_seconds()

            return ToolResult(
                success=True,
                tool_name=self.config.name,
                action=action,
                output=result,
                duration=duration,
            )

        except Exception as e:
            self.status = ToolStatus.FAILED
            duration = (datetime.utcnow() - start_time).total_seconds()

            self.logger.error(
                "Tool action failed",
                extra={
                    "tool_name": self.config.name,
                    "operation_id": operation_id,
                    "action": action,
                    "operation": "tool_execution",
                    "phase": "error",
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "duration_seconds": duration,
                    "tool_status": self.status.value,
                },
            )

            return ToolResult(
                success=False,
                tool_name=self.config.name,
                action=action,
                error=str(e),
                duration=duration,
            )

    async def validate(self, action: str, params: Dict[str, Any]) -> ValidationResult:
        """
        Validate action parameters.

        Args:
            action: The action to validate
            params: Parameters to validate

        Returns:
            ValidationResult: Validation result
        """
        if action not in await self._get_supported_actions():
            return ValidationResult(
                valid=False, errors=[f"Unsupported action: {action}"]
            )

        if not self._validator:
            return ValidationResult(valid=True, normalized_params=params)

        result = self._validator.validate(action, params)
        if hasattr(result, "__await__"):
            result = await result
        return result  # type: ignore[no-any-return]

    @abstractmethod
    async def get_schema(self) -> ToolSchema:
        """Return the tool's schema describing its capabilities."""

    @abstractmethod
    async def _create_client(self) -> Any:
        """Create and configure the underlying client."""

    @abstractmethod
    async def _create_validator(self) -> Any:
        """Create and configure the parameter validator."""

    @abstractmethod
    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute the actual action (implemented by subclasses)."""

    @abstractmethod
    async def _get_supported_actions(self) -> List[str]:
        """Get list of supported actions."""

    async def _validate_configuration(self) -> None:
        """Validate tool configuration."""
        if not self.config.name:
            raise ToolError("Tool name is required")

    async def _execute_with_retry(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute action with retry logic."""
        last_error = None
        operation_id = (
            f"{self.config.name}_{action}_{int(datetime.utcnow().timestamp())}"
        )

        for attempt in range(self.config.retry_count + 1):
            try:
                return await asyncio.wait_for(
                    self._execute_action(action, params), timeout=self.config.timeout
                )
            except asyncio.TimeoutError:
                last_error = f"Operation timed out after {self.config.timeout} seconds"
                if attempt < self.config.retry_count:
                    self.logger.warning(
                        "Tool action timed out, retrying",
                        extra={
                            "tool_name": self.config.name,
                            "operation_id": operation_id,
                            "action": action,
                            "phase": "timeout_retry",
                            "attempt": attempt + 1,
                            "max_attempts": self.config.retry_count + 1,
                            "timeout": self.config.timeout,
                        },
                    )
                    await asyncio.sleep(self.config.retry_delay)
            except ToolValidationError:
                raise
            except Exception as e:
                last_error = str(e)
                if attempt < self.config.retry_count:
                    self.logger.warning(
                        "Tool action failed, retrying",
                        extra={
                            "tool_name": self.config.name,
                            "operation_id": operation_id,
                            "action": action,
                            "phase": "error_retry",
                            "attempt": attempt + 1,
                            "max_attempts": self.config.retry_count + 1,
                            "error_type": type(e).__name__,
                            "error_message": str(e),
                            "retry_delay": self.config.retry_delay,
                        },
                    )
                    await asyncio.sleep(self.config.retry_delay)
                else:
                    raise

        self.logger.error(
            "Tool action failed after all retry attempts",
            extra={
                "tool_name": self.config.name,
                "operation_id": operation_id,
                "action": action,
                "phase": "retry_exhausted",
                "total_attempts": self.config.retry_count + 1,
                "final_error": last_error,
            },
        )
        raise ToolTimeoutError(
            f"Action failed after {self.config.retry_count + 1} attempts: {last_error}"
        )


class CommandTool(Tool):
    """
    Tool backed by an external executable.

    Subclasses set ``executable`` and build argument vectors; this class runs
    them and turns non-zero exits into ``ToolExecutionError``.
    """

    executable: str = ""

    async def _create_client(self) -> Any:
        """Locate the executable on PATH."""
        path = shutil.which(self.executable) if self.executable else None
        return {"executable": self.executable, "path": path, "available": bool(path)}

    @property
    def available(self) -> bool:
        # Re-check a missing binary: an earlier step may have installed it.
        if self._client and not self._client.get("available") and self.executable:
            path = shutil.which(self.executable)
            self._client.update(path=path, available=bool(path))
        return bool(self._client and self._client.get("available"))

    def _merge_env(self, env: Optional[Dict[str, str]]) -> Optional[Dict[str, str]]:
        """Overlay per-call variables on the process environment."""
        if not env and not self.config.environment:
            return None
        merged = dict(os.environ)
        merged.update({k: str(v) for k, v in self.config.environment.items()})
        merged.update(env or {})
        return merged

    async def _wait_or_kill(self, process, awaitable):
        """Await the process; kill it if the wait is cancelled by a timeout."""
        try:
            return await awaitable
        except asyncio.CancelledError:
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

    async def _run_command(
        self,
        cmd: List[str],
        input_text: Optional[str] = None,
        interactive: bool = False,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Run a command asynchronously.

        Interactive commands inherit the terminal so the user can answer
        prompts (browser login, passphrases); their output is not captured.
        """
        command = " ".join(mask_command(cmd))
        self.logger.debug("Running command", extra={"command": command})

        try:
            if interactive:
                process = await asyncio.create_subprocess_exec(
                    *cmd, cwd=cwd, env=self._merge_env(env)
                )
                await self._wait_or_kill(process, process.wait())
                return CommandResult(
                    returncode=process.returncode or 0, command=command
                )

            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE if input_text is not None else None,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=self._merge_env(env),
            )

            stdout, stderr = await self._wait_or_kill(
                process,
                process.communicate(
                    input_text.encode("utf-8") if input_text is not None else None
                ),
            )

            return CommandResult(
                returncode=process.returncode or 0,
                stdout=stdout.decode("utf-8", errors="replace"),
                stderr=stderr.decode("utf-8", errors="replace"),
                command=command,
            )

        except (FileNotFoundError, PermissionError) as e:
            self.logger.error(f"Command execution failed: {e}")
            return CommandResult(returncode=127, stderr=str(e), command=command)

    async def _run_checked(
        self,
        cmd: List[str],
        input_text: Optional[str] = None,
        interactive: bool = False,
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> CommandResult:
        """Run a command and raise if it exits non-zero."""
        result = await self._run_command(
            cmd, input_text=input_text, interactive=interactive, cwd=cwd, env=env
        )
        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()
            raise ToolExecutionError(
                f"Command '{result.command}' failed with exit code "
                f"{result.returncode}: {detail}"
            )
        return result


class ToolError(Exception):
    """Base exception for tool-related errors."""


class ToolValidationError(ToolError):
    """Exception raised during parameter validation."""


class ToolExecutionError(ToolError):
    """Exception raised during tool execution."""


class ToolTimeoutError(ToolError):
    """Exception raised when tool operation times out."""
