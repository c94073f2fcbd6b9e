"""
Tests for Git tool implementation.
"""

from unittest.mock import patch

import pytest

from labkit.tools.base import ToolError
from labkit.tools.git import GitTool


class TestGitTool:
    """Test Git tool functionality."""

    @pytest.fixture
    def git_tool(self, git_config):
        """Create Git tool instance."""
        tool = GitTool(git_config)
        tool._client = {"executable": "git", "path": "/usr/bin/git", "available": True}
        return tool

    @pytest.mark.asyncio
    async def test_tool_initialization(self, git_config):
        """Test Git tool initialization."""
        tool = GitTool(git_config)
        with patch("labkit.tools.base.shutil.which", return_value="/usr/bin/git"):
            await tool.initialize()

        assert tool.available is True

    @pytest.mark.asyncio
    async def test_git_not_available(self, git_tool):
        git_tool._client = {"executable": "git", "path": None, "available": False}

        with patch("labkit.tools.base.shutil.which", return_value=None):
            with pytest.raises(ToolError, match="Git is not available"):
                await git_tool._execute_action("init", {"path": "/tmp/repo"})

    @pytest.mark.asyncio
    async def test_get_schema(self, git_tool):
        """Test getting tool schema."""
        schema = await git_tool.get_schema()

        assert schema.name == "git"
        assert schema.description == "Git version control system tool"
        assert "init" in schema.actions
        assert "commit" in schema.actions
        assert "push" in schema.actions
        assert "git" in schema.dependencies

    @pytest.mark.asyncio
    async def test_validate_add_params(self, git_tool):
        validator = await git_tool._create_validator()

        assert validator.validate("add", {"path": "/tmp/repo", "all": True}).valid
        result = validator.validate("add", {"path": "/tmp/repo"})
        assert result.valid is False
        assert "Either files list or all=True" in result.errors[0]

    @pytest.mark.asyncio
    async def test_validate_remote_params(self, git_tool):
        validator = await git_tool._create_validator()

        valid = validator.validate(
            "remote",
            {
                "path": "/tmp/repo",
                "action": "add",
                "url": "https://contoso@dev.azure.com/contoso/demo/_git/infrastructure",
            },
        )
        assert valid.valid is True

        missing_url = validator.validate("remote", {"path": "/tmp/repo", "action": "add"})
        assert "url is required for remote add" in missing_url.errors

        bad_url = validator.validate(
            "remote", {"path": "/tmp/repo", "action": "add", "url": "not-a-url"}
        )
        assert "Invalid Git URL format" in bad_url.errors[0]

        bad_action = validator.validate("remote", {"path": "/tmp/repo", "action": "rename"})
        assert bad_action.valid is False

    @pytest.mark.asyncio
    async def test_validate_commit_short_message_warns(self, git_tool):
        validator = await git_tool._create_validator()

        result = validator.validate("commit", {"path": "/tmp/repo", "message": "x"})

        assert result.valid is True
        assert result.warnings == ["Commit message is very short"]

    @pytest.mark.asyncio
    async def test_init(self, git_tool, command_result):
        with patch.object(git_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="Initialized empty Git repository")

            result = await git_tool._execute_action(
                "init", {"path": "/tmp/repo", "initial_branch": "main"}
            )

            assert result["path"] == "/tmp/repo"
            assert mock_run.call_args.args[0] == [
                "git",
                "init",
                "--initial-branch",
                "main",
                "/tmp/repo",
            ]

    @pytest.mark.asyncio
    async def test_add_all_and_commit(self, git_tool, command_result):
        with patch.object(git_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            await git_tool._execute_action("add", {"path": "/tmp/repo", "all": True})
            await git_tool._execute_action(
                "commit", {"path": "/tmp/repo", "message": "Initial commit"}
            )

            assert mock_run.call_args_list[0].args[0] == [
                "git",
                "-C",
                "/tmp/repo",
                "add",
                "--all",
            ]
            assert mock_run.call_args_list[1].args[0] == [
                "git",
                "-C",
                "/tmp/repo",
                "commit",
                "-m",
                "Initial commit",
            ]

    @pytest.mark.asyncio
    async def test_push_with_upstream(self, git_tool, command_result):
        with patch.object(git_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stderr="To dev.azure.com")

            result = await git_tool._execute_action(
                "push", {"path": "/tmp/repo", "branch": "main", "set_upstream": True}
            )

            assert result["output"] == "To dev.azure.com"
            assert mock_run.call_args.args[0] == [
                "git",
                "-C",
                "/tmp/repo",
                "push",
                "--set-upstream",
                "origin",
                "main",
            ]

    @pytest.mark.asyncio
    async def test_push_failure(self, git_tool, command_result):
        with patch.object(git_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=1, stderr="rejected")

            result = await git_tool.execute(
                "push", {"path": "/tmp/repo", "branch": "main"}
            )

            assert result.success is False
            assert "rejected" in result.error
