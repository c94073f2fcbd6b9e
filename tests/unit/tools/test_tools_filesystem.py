"""
Tests for File System tool implementation.
"""

import json
import stat

import pytest
import yaml

from labkit.tools.base import ToolExecutionError
from labkit.tools.filesystem import FileSystemTool, render_content


class TestRenderContent:
    def test_json(self):
        assert json.loads(render_content({"a": 1}, "json")) == {"a": 1}

    def test_yaml_keeps_key_order(self):
        rendered = render_content({"trigger": ["main"], "pool": {"vmImage": "x"}}, "yaml")

        assert rendered.index("trigger") < rendered.index("pool")
        assert yaml.safe_load(rendered)["pool"] == {"vmImage": "x"}

    def test_text(self):
        assert render_content("hello", "text") == "hello"


class TestFileSystemTool:
    """Test File System tool functionality."""

    @pytest.fixture
    def fs_tool(self, filesystem_config):
        """Create File System tool instance."""
        return FileSystemTool(filesystem_config)

    @pytest.mark.asyncio
    async def test_get_schema(self, fs_tool):
        """Test getting tool schema."""
        schema = await fs_tool.get_schema()

        assert schema.name == "filesystem"
        assert "write_file" in schema.actions
        assert "append_file" in schema.actions
        assert "exists" in schema.actions

    @pytest.mark.asyncio
    async def test_validate_protected_path(self, fs_tool):
        validator = await fs_tool._create_validator()

        result = validator.validate("write_file", {"path": "/etc/passwd", "content": "x"})

        assert result.valid is False
        assert "Access to /etc not allowed" in result.errors

    @pytest.mark.asyncio
    async def test_validate_mode(self, fs_tool, temp_dir):
        validator = await fs_tool._create_validator()

        result = validator.validate(
            "set_permissions", {"path": str(temp_dir), "mode": "rwx"}
        )

        assert result.valid is False
        assert "Invalid mode format: rwx" in result.errors

    @pytest.mark.asyncio
    async def test_validate_create_directory_needs_path(self, fs_tool):
        validator = await fs_tool._create_validator()

        result = validator.validate("create_directory", {})

        assert "path or paths is required for create_directory" in result.errors

    @pytest.mark.asyncio
    async def test_validate_write_file_missing_content(self, fs_tool, temp_dir):
        validator = await fs_tool._create_validator()

        result = validator.validate("write_file", {"path": str(temp_dir / "a.txt")})

        assert "content is required for write_file" in result.errors

    @pytest.mark.asyncio
    async def test_create_directories(self, fs_tool, temp_dir):
        paths = [str(temp_dir / "demo" / name) for name in ("data", "models")]

        result = await fs_tool._execute_action("create_directory", {"paths": paths})

        assert result["count"] == 2
        assert all((temp_dir / "demo" / name).is_dir() for name in ("data", "models"))

    @pytest.mark.asyncio
    async def test_create_directory_mode(self, fs_tool, temp_dir):
        target = temp_dir / ".gnupg"

        await fs_tool._execute_action(
            "create_directory", {"path": str(target), "mode": "700"}
        )

        assert stat.S_IMODE(target.stat().st_mode) & 0o077 == 0

    @pytest.mark.asyncio
    async def test_write_json_file_omitting_nulls(self, fs_tool, temp_dir):
        target = temp_dir / "demo-mlops-env.json"

        result = await fs_tool._execute_action(
            "write_file",
            {
                "path": str(target),
                "content": {"project": "demo", "mlWorkspace": None},
                "omit_null": True,
                "mode": "600",
            },
        )

        assert result["format"] == "json"
        assert json.loads(target.read_text()) == {"project": "demo"}
        assert stat.S_IMODE(target.stat().st_mode) == 0o600

    @pytest.mark.asyncio
    async def test_write_yaml_inferred_from_suffix(self, fs_tool, temp_dir):
        target = temp_dir / "environment.yml"

        result = await fs_tool._execute_action(
            "write_file", {"path": str(target), "content": {"name": "demo"}}
        )

        assert result["format"] == "yaml"
        assert yaml.safe_load(target.read_text()) == {"name": "demo"}

    @pytest.mark.asyncio
    async def test_write_file_without_overwrite(self, fs_tool, temp_dir):
        target = temp_dir / "README.md"
        target.write_text("keep me")

        result = await fs_tool._execute_action(
            "write_file", {"path": str(target), "content": "new", "overwrite": False}
        )

        assert result["written"] is False
        assert target.read_text() == "keep me"

    @pytest.mark.asyncio
    async def test_append_file_is_idempotent(self, fs_tool, temp_dir):
        profile = temp_dir / ".bashrc"
        profile.write_text("alias ll='ls -l'")
        params = {
            "path": str(profile),
            "content": "export PATH=$HOME/miniconda/bin:$PATH",
            "unless_contains": "miniconda/bin",
        }

        first = await fs_tool._execute_action("append_file", params)
        second = await fs_tool._execute_action("append_file", params)

        assert first["appended"] is True
        assert second["appended"] is False
        assert profile.read_text() == (
            "alias ll='ls -l'\nexport PATH=$HOME/miniconda/bin:$PATH\n"
        )

    @pytest.mark.asyncio
    async def test_delete_files_skips_missing(self, fs_tool, temp_dir):
        present = temp_dir / "present.json"
        present.write_text("{}")

        result = await fs_tool._execute_action(
            "delete_file", {"paths": [str(present), str(temp_dir / "missing.json")]}
        )

        assert result["count"] == 1
        assert not present.exists()
        assert result["missing"] == [str(temp_dir / "missing.json")]

    @pytest.mark.asyncio
    async def test_delete_directory_fails(self, fs_tool, temp_dir):
        with pytest.raises(ToolExecutionError, match="is a directory"):
            await fs_tool._execute_action("delete_file", {"path": str(temp_dir)})

    @pytest.mark.asyncio
    async def test_set_permissions_missing_path(self, fs_tool, temp_dir):
        with pytest.raises(ToolExecutionError, match="Path not found"):
            await fs_tool._execute_action(
                "set_permissions", {"path": str(temp_dir / "nope"), "mode": "600"}
            )

    @pytest.mark.asyncio
    async def test_exists(self, fs_tool, temp_dir):
        result = await fs_tool._execute_action(
            "exists", {"path": str(temp_dir), "kind": "file"}
        )

        assert result["exists"] is False

    @pytest.mark.asyncio
    async def test_exists_required(self, fs_tool, temp_dir):
        with pytest.raises(ToolExecutionError, match="run setup first"):
            await fs_tool._execute_action(
                "exists",
                {
                    "path": str(temp_dir / "demo-mlops-env.json"),
                    "require": True,
                    "message": "Environment file missing; run setup first",
                },
            )

    @pytest.mark.asyncio
    async def test_execute_end_to_end(self, fs_tool, temp_dir):
        await fs_tool.initialize()

        result = await fs_tool.execute(
            "write_file", {"path": str(temp_dir / "a.txt"), "content": "hi"}
        )

        assert result.success is True
        assert (temp_dir / "a.txt").read_text() == "hi"
