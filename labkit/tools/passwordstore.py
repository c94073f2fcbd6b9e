"""
Password store tool.

Stores and retrieves secrets through the ``pass`` command-line password
manager. Secret values are fed to ``pass`` on stdin, never on the command
line.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

from .base import CommandTool, ParameterValidator, ToolError, ToolSchema


def password_store_dir() -> Path:
    """Return the store directory, honouring PASSWORD_STORE_DIR."""
    configured = os.environ.get("PASSWORD_STORE_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".password-store"


class PasswordStoreTool(CommandTool):
    """
    ``pass`` password manager tool.

    Provides functionality for:
    - Availability and store initialisation checks
    - Inserting single-line, multi-line or interactively typed secrets
    - Reading, listing and removing entries
    - Initialising the store and its git history
    """

    executable = "pass"

    async def get_schema(self) -> ToolSchema:
        """Return the password store tool schema."""
        name = {"type": "string", "required": True}
        return ToolSchema(
            name="passwordstore",
            description="pass password manager tool",
            version=self.config.version,
            actions={
                "available": {"description": "Check whether pass is installed"},
                "insert": {
                    "description": "Insert one entry or a batch of entries",
                    "parameters": {
                        "name": {"type": "string"},
                        "value": {"type": "string"},
                        "entries": {"type": "object"},
                        "force": {"type": "boolean", "default": True},
                    },
                },
                "show": {"description": "Read an entry", "parameters": {"name": name}},
                "list": {
                    "description": "List entries under a prefix",
                    "parameters": {"prefix": {"type": "string"}},
                },
                "remove": {
                    "description": "Remove one or more entries",
                    "parameters": {
                        "name": {"type": "string"},
                        "names": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "exists": {
                    "description": "Check whether an entry exists",
                    "parameters": {"name": name},
                },
                "init": {
                    "description": "Initialise the store for a GPG key",
                    "parameters": {"gpg_id": {"type": "string", "required": True}},
                },
                "git_init": {"description": "Initialise git in the store"},
                "store_initialized": {
                    "description": "Check whether the store has been initialised"
                },
            },
            required_permissions=["gpg_key"],
            dependencies=["pass", "gpg"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class PassValidator(ParameterValidator):
            required = {
                "show": ["name"],
                "exists": ["name"],
                "init": ["gpg_id"],
            }

            def check(self, action, params, errors, warnings):
                if action == "insert":
                    if not params.get("name") and not params.get("entries"):
                        errors.append("name or entries is required for insert")
                    entries = params.get("entries") or {}
                    if not isinstance(entries, dict):
                        errors.append("entries must be a mapping of name to value")
                    elif any(v is None or str(v) == "" for v in entries.values()):
                        errors.append("entries must not contain empty values")
                if action == "remove":
                    if not params.get("name") and not params.get("names"):
                        errors.append("name or names is required for remove")

                for key in ("name", "prefix"):
                    value = params.get(key)
                    if value and (str(value).startswith("/") or ".." in str(value)):
                        errors.append(f"Invalid entry path: {value}")

        return PassValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute pass action."""
        if action == "available":
            return {"available": self.available}
        if action == "store_initialized":
            return await self._store_initialized(params)

        if not self.available:
            raise ToolError("pass is not installed. Run the pass-setup workflow first.")

        if action == "insert":
            return await self._insert(params)
        elif action == "show":
            return await self._show(params)
        elif action == "list":
            return await self._list(params)
        elif action == "remove":
            return await self._remove(params)
        elif action == "exists":
            return await self._exists(params)
        elif action == "init":
            return await self._init(params)
        elif action == "git_init":
            return await self._git_init(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported pass actions."""
        return [
            "available",
            "insert",
            "show",
            "list",
            "remove",
            "exists",
            "init",
            "git_init",
            "store_initialized",
        ]

    async def _insert_one(self, name: str, value: Any, force: bool) -> None:
        if value is None:
            # pass prompts twice for the secret
            cmd = ["pass", "insert", name]
            if force:
                cmd.insert(2, "--force")
            await self._run_checked(cmd, interactive=True)
            return

        if isinstance(value, (dict, list)):
            text = json.dumps(value, indent=2)
        else:
            text = str(value)
        multiline = "\n" in text.strip()
        cmd = ["pass", "insert", "--multiline" if multiline else "--echo"]
        if force:
            cmd.append("--force")
        cmd.append(name)
        await self._run_checked(cmd, input_text=text if multiline else text + "\n")

    async def _insert(self, params: Dict[str, Any]) -> Dict[str, Any]:
        force = params.get("force", True)
        entries = dict(params.get("entries") or {})
        if params.get("name"):
            entries[params["name"]] = params.get("value")

        for name, value in entries.items():
            await self._insert_one(name, value, force)

        return {"stored": list(entries), "count": len(entries)}

    async def _show(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_checked(["pass", "show", params["name"]])
        return {"name": params["name"], "value": result.stdout.rstrip("\n")}

    async def _list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = ["pass", "ls"]
        if params.get("prefix"):
            cmd.append(params["prefix"])
        result = await self._run_checked(cmd)
        return {"prefix": params.get("prefix"), "listing": result.stdout}

    async def _remove(self, params: Dict[str, Any]) -> Dict[str, Any]:
        names = list(params.get("names") or [])
        if params.get("name"):
            names.append(params["name"])

        for name in names:
            await self._run_checked(["pass", "rm", "--force", name])

        return {"removed": names, "count": len(names)}

    async def _exists(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(["pass", "show", params["name"]])
        return {"name": params["name"], "exists": result.ok}

    async def _init(self, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._run_checked(["pass", "init", params["gpg_id"]])
        return {"gpg_id": params["gpg_id"], "store": str(password_store_dir())}

    async def _git_init(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_checked(["pass", "git", "init"])
        return {"store": str(password_store_dir()), "output": result.stdout}

    async def _store_initialized(self, params: Dict[str, Any]) -> Dict[str, Any]:
        store = password_store_dir()
        return {
            "store": str(store),
            "initialized": (store / ".gpg-id").is_file(),
        }
