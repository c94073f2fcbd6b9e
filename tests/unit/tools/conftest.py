"""
Tool-specific fixtures for unit testing.
"""

import pytest

from labkit.tools.base import CommandResult, ToolConfig


def _tool_config(name: str, **kwargs) -> ToolConfig:
    return ToolConfig(name=name, version="1.0.0", timeout=30, retry_count=0, **kwargs)


@pytest.fixture
def azure_config() -> ToolConfig:
    """Create Azure CLI tool configuration for testing."""
    return _tool_config("azure")


@pytest.fixture
def devops_config() -> ToolConfig:
    """Create Azure DevOps tool configuration for testing."""
    return _tool_config("devops")


@pytest.fixture
def git_config() -> ToolConfig:
    """Create Git tool configuration for testing."""
    return _tool_config("git")


@pytest.fixture
def filesystem_config() -> ToolConfig:
    """Create Filesystem tool configuration for testing."""
    return _tool_config("filesystem")


@pytest.fixture
def passwordstore_config() -> ToolConfig:
    """Create password store tool configuration for testing."""
    return _tool_config(
        "passwordstore", environment={"PASSWORD_STORE_DIR": "/tmp/store"}
    )


@pytest.fixture
def gpg_config() -> ToolConfig:
    """Create GPG tool configuration for testing."""
    return _tool_config("gpg")


@pytest.fixture
def packages_config() -> ToolConfig:
    """Create package manager tool configuration for testing."""
    return _tool_config("packages")


@pytest.fixture
def python_env_config() -> ToolConfig:
    """Create Python environment tool configuration for testing."""
    return _tool_config("python_env")


@pytest.fixture
def editor_config() -> ToolConfig:
    """Create editor tool configuration for testing."""
    return _tool_config("editor")


@pytest.fixture
def command_result():
    """Factory for CommandResult values returned by mocked commands."""

    def _result(
        returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> CommandResult:
        return CommandResult(
            returncode=returncode, stdout=stdout, stderr=stderr, command="mocked"
        )

    return _result
