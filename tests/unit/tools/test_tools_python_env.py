"""
Tests for the Python environment tool.
"""

from unittest.mock import patch

import pytest

from labkit.tools.python_env import PythonEnvTool, venv_python


def test_venv_python():
    assert venv_python("/opt/venv") == "/opt/venv/bin/python"


class TestPythonEnvTool:
    """Test Python environment tool functionality."""

    @pytest.fixture
    def env_tool(self, python_env_config):
        return PythonEnvTool(python_env_config)

    @pytest.mark.asyncio
    async def test_get_schema(self, env_tool):
        schema = await env_tool.get_schema()

        assert schema.name == "python_env"
        assert set(await env_tool._get_supported_actions()) == set(schema.actions)

    @pytest.mark.asyncio
    async def test_validate_register_kernel(self, env_tool):
        validator = await env_tool._create_validator()

        assert validator.validate("register_kernel", {"name": "demo"}).valid
        assert not validator.validate("register_kernel", {"name": "bad name"}).valid
        result = validator.validate(
            "register_kernel", {"name": "demo", "venv": "/v", "conda_env": "demo"}
        )
        assert "venv and conda_env are mutually exclusive" in result.errors

    @pytest.mark.asyncio
    async def test_validate_pip_install_needs_something(self, env_tool):
        validator = await env_tool._create_validator()

        assert not validator.validate("pip_install_requirements", {"venv": "/v"}).valid

    @pytest.mark.asyncio
    async def test_validate_conda_init_shell(self, env_tool):
        validator = await env_tool._create_validator()

        assert not validator.validate("conda_init", {"shell": "tcsh"}).valid

    @pytest.mark.asyncio
    async def test_create_venv_upgrades_pip(self, env_tool, command_result):
        with patch.object(env_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            result = await env_tool._execute_action(
                "create_venv", {"path": "/opt/demo/venv", "upgrade_pip": True}
            )

            assert result == {
                "path": "/opt/demo/venv",
                "python": "/opt/demo/venv/bin/python",
            }
            assert mock_run.call_args_list[0].args[0] == [
                "python3",
                "-m",
                "venv",
                "/opt/demo/venv",
            ]
            assert mock_run.call_args_list[1].args[0] == [
                "/opt/demo/venv/bin/python",
                "-m",
                "pip",
                "install",
                "--upgrade",
                "pip",
            ]

    @pytest.mark.asyncio
    async def test_pip_install_requirements(self, env_tool, command_result):
        with patch.object(env_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            await env_tool._execute_action(
                "pip_install_requirements",
                {"venv": "/opt/demo/venv", "requirements": "/opt/demo/requirements.txt"},
            )

            assert mock_run.call_args.args[0] == [
                "/opt/demo/venv/bin/python",
                "-m",
                "pip",
                "install",
                "-r",
                "/opt/demo/requirements.txt",
            ]

    @pytest.mark.asyncio
    async def test_register_kernel_in_conda_env(self, env_tool, command_result):
        with patch.object(env_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            result = await env_tool._execute_action(
                "register_kernel", {"name": "demo", "conda_env": "demo"}
            )

            assert result["display_name"] == "Python (demo)"
            assert mock_run.call_args.args[0][:5] == [
                "conda",
                "run",
                "-n",
                "demo",
                "python",
            ]
            assert "--name=demo" in mock_run.call_args.args[0]

    @pytest.mark.asyncio
    async def test_create_conda_env_runs_in_file_directory(
        self, env_tool, command_result
    ):
        with patch.object(env_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            await env_tool._execute_action(
                "create_conda_env", {"file": "/opt/demo/environment.yml"}
            )

            args, kwargs = mock_run.call_args
            assert args[0] == ["conda", "env", "create", "-f", "environment.yml"]
            assert kwargs["cwd"] == "/opt/demo"

    @pytest.mark.asyncio
    async def test_version(self, env_tool, command_result):
        with patch.object(env_tool, "_run_command") as mock_run:
            mock_run.side_effect = [
                command_result(stdout="Python 3.11.4\n"),
                command_result(stdout="pip 23.2 from /usr/lib (python 3.11)\n"),
            ]

            result = await env_tool._execute_action("version", {})

            assert result["python_version"] == "Python 3.11.4"
            assert result["pip_version"].startswith("pip 23.2")
