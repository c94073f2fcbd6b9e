"""
Package manager tool.

System package installation through apt (Debian/Ubuntu/WSL) and Homebrew
(macOS), user-level pip installs, and vendor installer scripts fetched with
curl.
"""

import getpass
import os
import shutil
import tempfile
from typing import Any, Dict, List

from .base import (
    CommandTool,
    ParameterValidator,
    ToolError,
    ToolExecutionError,
    ToolSchema,
)

APT_ACTIONS = ["apt_update", "apt_install", "add_apt_source"]
MANAGED_BINARIES = ["apt-get", "brew", "curl", "sudo"]


class PackageManagerTool(CommandTool):
    """
    Package manager tool.

    Provides functionality for:
    - Command availability checks
    - apt package lists, installs and third-party apt sources
    - Homebrew formulae and casks
    - pip/pipx user installs
    - Downloading and running vendor installer scripts
    - Group membership changes (e.g. docker)
    """

    async def get_schema(self) -> ToolSchema:
        """Return the package manager tool schema."""
        packages = {"type": "array", "items": {"type": "string"}, "required": True}
        return ToolSchema(
            name="packages",
            description="System package manager tool (apt, brew, pip, curl)",
            version=self.config.version,
            actions={
                "command_exists": {
                    "description": "Check whether a command is on PATH",
                    "parameters": {
                        "command": {"type": "string", "required": True},
                        "require": {"type": "boolean", "default": False},
                    },
                },
                "apt_update": {"description": "Refresh apt package lists"},
                "apt_install": {
                    "description": "Install apt packages",
                    "parameters": {"packages": packages},
                },
                "add_apt_source": {
                    "description": "Register a signed third-party apt repository",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "key_url": {"type": "string", "required": True},
                        "repo_url": {"type": "string", "required": True},
                        "component": {"type": "string", "default": "stable"},
                    },
                },
                "brew_install": {
                    "description": "Install Homebrew formulae or casks",
                    "parameters": {
                        "packages": packages,
                        "cask": {"type": "boolean", "default": False},
                    },
                },
                "pip_install": {
                    "description": "Install Python packages with pip",
                    "parameters": {
                        "packages": packages,
                        "python": {"type": "string", "default": "python3"},
                        "user": {"type": "boolean", "default": False},
                        "upgrade": {"type": "boolean", "default": False},
                    },
                },
                "pipx_ensurepath": {
                    "description": "Add the pipx bin directory to PATH",
                    "parameters": {"python": {"type": "string", "default": "python3"}},
                },
                "download": {
                    "description": "Download a file with curl",
                    "parameters": {
                        "url": {"type": "string", "required": True},
                        "destination": {"type": "string", "required": True},
                        "mode": {"type": "string"},
                    },
                },
                "run_installer": {
                    "description": "Run an installer script from a URL or path",
                    "parameters": {
                        "url": {"type": "string"},
                        "path": {"type": "string"},
                        "args": {"type": "array", "items": {"type": "string"}},
                        "sudo": {"type": "boolean", "default": False},
                        "interactive": {"type": "boolean", "default": False},
                    },
                },
                "add_user_to_group": {
                    "description": "Add a user to a system group",
                    "parameters": {
                        "group": {"type": "string", "required": True},
                        "user": {"type": "string"},
                    },
                },
            },
            required_permissions=["sudo"],
            dependencies=MANAGED_BINARIES,
        )

    async def _create_client(self) -> Any:
        """Locate the package managers present on this machine."""
        found = {name: shutil.which(name) for name in MANAGED_BINARIES}
        return {
            "binaries": found,
            "available": bool(found.get("apt-get") or found.get("brew")),
        }

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class PackagesValidator(ParameterValidator):
            required = {
                "command_exists": ["command"],
                "apt_install": ["packages"],
                "add_apt_source": ["name", "key_url", "repo_url"],
                "brew_install": ["packages"],
                "pip_install": ["packages"],
                "download": ["url", "destination"],
                "add_user_to_group": ["group"],
            }

            def check(self, action, params, errors, warnings):
                pkgs = params.get("packages")
                if pkgs is not None:
                    if isinstance(pkgs, str):
                        params["packages"] = pkgs.split()
                    elif not all(isinstance(p, str) and p for p in pkgs):
                        errors.append("packages must be a list of names")

                if action == "run_installer":
                    if not params.get("url") and not params.get("path"):
                        errors.append("url or path is required for run_installer")

                for key in ("url", "key_url", "repo_url"):
                    value = params.get(key)
                    if value and not str(value).startswith("https://"):
                        errors.append(f"{key} must use https: {value}")

        return PackagesValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute package manager action."""
        if action in APT_ACTIONS:
            self._require_binary("apt-get", "apt is only available on Debian/Ubuntu")
        elif action == "brew_install":
            self._require_binary(
                "brew", "Homebrew is not installed. See https://brew.sh"
            )
        elif action in ("download", "run_installer") and params.get("url"):
            self._require_binary("curl", "curl is not installed")

        if action == "command_exists":
            return await self._command_exists(params)
        elif action == "apt_update":
            return await self._apt_update(params)
        elif action == "apt_install":
            return await self._apt_install(params)
        elif action == "add_apt_source":
            return await self._add_apt_source(params)
        elif action == "brew_install":
            return await self._brew_install(params)
        elif action == "pip_install":
            return await self._pip_install(params)
        elif action == "pipx_ensurepath":
            return await self._pipx_ensurepath(params)
        elif action == "download":
            return await self._download(params)
        elif action == "run_installer":
            return await self._run_installer(params)
        elif action == "add_user_to_group":
            return await self._add_user_to_group(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported package manager actions."""
        return [
            "command_exists",
            "apt_update",
            "apt_install",
            "add_apt_source",
            "brew_install",
            "pip_install",
            "pipx_ensurepath",
            "download",
            "run_installer",
            "add_user_to_group",
        ]

    def _require_binary(self, name: str, message: str) -> None:
        binaries = (self._client or {}).setdefault("binaries", {})
        if not binaries.get(name):
            # Homebrew may have been installed by an earlier step
            binaries[name] = shutil.which(name)
        if not binaries[name]:
            raise ToolError(message)

    def _privileged(self, cmd: List[str], use_sudo: bool = True) -> List[str]:
        """Prefix with sudo unless already running as root."""
        if use_sudo and os.geteuid() != 0:
            return ["sudo", *cmd]
        return cmd

    async def _command_exists(self, params: Dict[str, Any]) -> Dict[str, Any]:
        path = shutil.which(params["command"])
        if params.get("require") and not path:
            raise ToolExecutionError(f"{params['command']} is not installed")
        return {"command": params["command"], "exists": bool(path), "path": path}

    async def _apt_update(self, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._run_checked(self._privileged(["apt-get", "update"]))
        return {"updated": True}

    async def _apt_install(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = self._privileged(["apt-get", "install", "-y", *params["packages"]])
        await self._run_checked(cmd, env={"DEBIAN_FRONTEND": "noninteractive"})
        return {"installed": params["packages"], "manager": "apt"}

    async def _add_apt_source(self, params: Dict[str, Any]) -> Dict[str, Any]:
        name = params["name"]
        keyring = f"/usr/share/keyrings/{name}-archive-keyring.gpg"
        sources = f"/etc/apt/sources.list.d/{name}.list"

        fd, key_path = tempfile.mkstemp(prefix=f"labkit-{name}-", suffix=".asc")
        os.close(fd)
        try:
            await self._run_checked(["curl", "-fsSL", params["key_url"], "-o", key_path])
            await self._run_checked(
                self._privileged(
                    ["gpg", "--dearmor", "--yes", "--output", keyring, key_path]
                )
            )
        finally:
            os.unlink(key_path)

        arch = (await self._run_checked(["dpkg", "--print-architecture"])).stdout
        codename = (await self._run_checked(["lsb_release", "-cs"])).stdout
        line = (
            f"deb [arch={arch.strip()} signed-by={keyring}] {params['repo_url']} "
            f"{codename.strip()} {params.get('component', 'stable')}\n"
        )
        await self._run_checked(
            self._privileged(["tee", sources]), input_text=line
        )
        return {"name": name, "keyring": keyring, "sources": sources, "line": line}

    async def _brew_install(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = ["brew", "install"]
        if params.get("cask"):
            cmd.append("--cask")
        cmd.extend(params["packages"])
        await self._run_checked(cmd)
        return {"installed": params["packages"], "manager": "brew"}

    async def _pip_install(self, params: Dict[str, Any]) -> Dict[str, Any]:
        python = os.path.expanduser(params.get("python", "python3"))
        cmd = [python, "-m", "pip", "install"]
        if params.get("user"):
            cmd.append("--user")
        if params.get("upgrade"):
            cmd.append("--upgrade")
        cmd.extend(params["packages"])
        await self._run_checked(cmd)
        return {"installed": params["packages"], "manager": "pip", "python": python}

    async def _pipx_ensurepath(self, params: Dict[str, Any]) -> Dict[str, Any]:
        python = params.get("python", "python3")
        result = await self._run_checked([python, "-m", "pipx", "ensurepath"])
        return {"output": result.stdout}

    async def _download(self, params: Dict[str, Any]) -> Dict[str, Any]:
        destination = os.path.expanduser(params["destination"])
        await self._run_checked(
            ["curl", "-fsSL", params["url"], "-o", destination]
        )
        if params.get("mode"):
            os.chmod(destination, int(str(params["mode"]), 8))
        return {"url": params["url"], "destination": destination}

    async def _run_installer(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Run an installer with bash, downloading it first when given a URL."""
        args = [os.path.expanduser(str(a)) for a in params.get("args", [])]
        temp_path = None

        if params.get("url"):
            fd, temp_path = tempfile.mkstemp(prefix="labkit-installer-", suffix=".sh")
            os.close(fd)
            await self._run_checked(["curl", "-fsSL", params["url"], "-o", temp_path])
            script = temp_path
        else:
            script = os.path.expanduser(params["path"])

        try:
            cmd = ["bash", script, *args]
            if params.get("sudo"):
                cmd = self._privileged(["-E", *cmd]) if os.geteuid() != 0 else cmd
            await self._run_checked(cmd, interactive=params.get("interactive", False))
        finally:
            if temp_path:
                os.unlink(temp_path)

        return {"installer": params.get("url") or script, "args": args}

    async def _add_user_to_group(self, params: Dict[str, Any]) -> Dict[str, Any]:
        user = params.get("user") or getpass.getuser()
        await self._run_checked(
            self._privileged(["usermod", "-aG", params["group"], user])
        )
        return {"user": user, "group": params["group"]}
