"""
Python environment tool.

Creates virtual environments and Conda environments, installs requirements
into them and registers them as Jupyter kernels.
"""

import os
import re
from pathlib import Path
from typing import Any, Dict, List

from .base import CommandTool, ParameterValidator, ToolError, ToolSchema

KERNEL_NAME_PATTERN = re.compile(r"^[A-Za-z0-9._-]+$")


def venv_python(venv_path: str) -> str:
    """Return the interpreter inside a virtual environment."""
    return str(Path(os.path.expanduser(venv_path)) / "bin" / "python")


class PythonEnvTool(CommandTool):
    """
    Python environment tool.

    Provides functionality for:
    - ``venv`` creation and requirement installs
    - Conda environment creation from ``environment.yml``
    - ``conda init`` for a fresh Miniconda install
    - Jupyter kernel registration
    - Interpreter and pip version reporting
    """

    executable = "python3"

    async def get_schema(self) -> ToolSchema:
        """Return the Python environment tool schema."""
        return ToolSchema(
            name="python_env",
            description="Python virtualenv and Conda environment tool",
            version=self.config.version,
            actions={
                "create_venv": {
                    "description": "Create a virtual environment",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "python": {"type": "string", "default": "python3"},
                        "upgrade_pip": {"type": "boolean", "default": False},
                    },
                },
                "pip_install_requirements": {
                    "description": "Install packages into a virtual environment",
                    "parameters": {
                        "venv": {"type": "string", "required": True},
                        "requirements": {"type": "string"},
                        "packages": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "register_kernel": {
                    "description": "Register a Jupyter kernel",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "display_name": {"type": "string"},
                        "venv": {"type": "string"},
                        "conda_env": {"type": "string"},
                        "conda": {"type": "string", "default": "conda"},
                    },
                },
                "create_conda_env": {
                    "description": "Create a Conda environment from a file",
                    "parameters": {
                        "file": {"type": "string", "required": True},
                        "conda": {"type": "string", "default": "conda"},
                    },
                },
                "conda_init": {
                    "description": "Initialise Conda for a shell",
                    "parameters": {
                        "conda": {"type": "string", "default": "conda"},
                        "shell": {"type": "string", "default": "bash"},
                    },
                },
                "version": {
                    "description": "Report interpreter and pip versions",
                    "parameters": {"python": {"type": "string", "default": "python3"}},
                },
            },
            required_permissions=[],
            dependencies=["python3", "conda"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class PythonEnvValidator(ParameterValidator):
            required = {
                "create_venv": ["path"],
                "pip_install_requirements": ["venv"],
                "register_kernel": ["name"],
                "create_conda_env": ["file"],
            }

            def check(self, action, params, errors, warnings):
                if action == "pip_install_requirements":
                    if not params.get("requirements") and not params.get("packages"):
                        errors.append(
                            "requirements or packages is required for "
                            "pip_install_requirements"
                        )

                if action == "register_kernel":
                    if not KERNEL_NAME_PATTERN.match(params["name"]):
                        errors.append(f"Invalid kernel name: {params['name']}")
                    if params.get("venv") and params.get("conda_env"):
                        errors.append("venv and conda_env are mutually exclusive")

                if action == "conda_init" and params.get("shell", "bash") not in (
                    "bash",
                    "zsh",
                    "fish",
                ):
                    errors.append(f"Unsupported shell: {params['shell']}")

        return PythonEnvValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute Python environment action."""
        if action == "create_venv":
            return await self._create_venv(params)
        elif action == "pip_install_requirements":
            return await self._pip_install_requirements(params)
        elif action == "register_kernel":
            return await self._register_kernel(params)
        elif action == "create_conda_env":
            return await self._create_conda_env(params)
        elif action == "conda_init":
            return await self._conda_init(params)
        elif action == "version":
            return await self._version(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported Python environment actions."""
        return [
            "create_venv",
            "pip_install_requirements",
            "register_kernel",
            "create_conda_env",
            "conda_init",
            "version",
        ]

    async def _create_venv(self, params: Dict[str, Any]) -> Dict[str, Any]:
        path = os.path.expanduser(params["path"])
        await self._run_checked([params.get("python", "python3"), "-m", "venv", path])

        python = venv_python(path)
        if params.get("upgrade_pip"):
            await self._run_checked([python, "-m", "pip", "install", "--upgrade", "pip"])

        return {"path": path, "python": python}

    async def _pip_install_requirements(
        self, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        python = venv_python(params["venv"])
        cmd = [python, "-m", "pip", "install"]
        if params.get("requirements"):
            cmd.extend(["-r", os.path.expanduser(params["requirements"])])
        cmd.extend(params.get("packages") or [])

        await self._run_checked(cmd)
        return {
            "python": python,
            "requirements": params.get("requirements"),
            "packages": params.get("packages") or [],
        }

    async def _register_kernel(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params["name"]
        display_name = params.get("display_name") or f"Python ({name})"
        install = [
            "-m",
            "ipykernel",
            "install",
            "--user",
            f"--name={name}",
            f"--display-name={display_name}",
        ]

        if params.get("conda_env"):
            conda = os.path.expanduser(params.get("conda", "conda"))
            cmd = [conda, "run", "-n", params["conda_env"], "python", *install]
        elif params.get("venv"):
            cmd = [venv_python(params["venv"]), *install]
        else:
            cmd = ["python3", *install]

        await self._run_checked(cmd)
        return {"name": name, "display_name": display_name}

    async def _create_conda_env(self, params: Dict[str, Any]) -> Dict[str, Any]:
        env_file = Path(os.path.expanduser(params["file"]))
        conda = os.path.expanduser(params.get("conda", "conda"))
        await self._run_checked(
            [conda, "env", "create", "-f", env_file.name], cwd=str(env_file.parent)
        )
        return {"file": str(env_file)}

    async def _conda_init(self, params: Dict[str, Any]) -> Dict[str, Any]:
        conda = os.path.expanduser(params.get("conda", "conda"))
        shell = params.get("shell", "bash")
        await self._run_checked([conda, "init", shell])
        return {"conda": conda, "shell": shell}

    async def _version(self, params: Dict[str, Any]) -> Dict[str, Any]:
        python = os.path.expanduser(params.get("python", "python3"))
        py = await self._run_checked([python, "--version"])
        pip = await self._run_checked([python, "-m", "pip", "--version"])
        return {
            "python_version": (py.stdout or py.stderr).strip(),
            "pip_version": pip.stdout.strip(),
        }
