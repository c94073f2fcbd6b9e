"""
Tools package for labkit.

This package wraps the vendor command-line tools that workflows drive: the
Azure CLI and its DevOps extension, git, pass/gpg, package managers, Python
environment tooling, the VS Code CLI, and the local file system.
"""

from .azure import AzureCliTool
from .base import (
    CommandTool,
    Tool,
    ToolConfig,
    ToolError,
    ToolExecutionError,
    ToolResult,
    ToolSchema,
    ToolStatus,
    ToolTimeoutError,
    ToolValidationError,
)
from .devops import AzureDevOpsTool
from .editor import EditorTool
from .filesystem import FileSystemTool
from .git import GitTool
from .gpg import GpgTool
from .packages import PackageManagerTool
from .passwordstore import PasswordStoreTool
from .python_env import PythonEnvTool

__all__ = [
    # Base classes
    "CommandTool",
    "Tool",
    "ToolConfig",
    "ToolResult",
    "ToolSchema",
    "ToolStatus",
    # Errors
    "ToolError",
    "ToolExecutionError",
    "ToolTimeoutError",
    "ToolValidationError",
    # Cloud tools
    "AzureCliTool",
    "AzureDevOpsTool",
    # Secrets tools
    "GpgTool",
    "PasswordStoreTool",
    # System tools
    "EditorTool",
    "FileSystemTool",
    "GitTool",
    "PackageManagerTool",
    "PythonEnvTool",
]
