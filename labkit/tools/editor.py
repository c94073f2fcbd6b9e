"""
Editor tool.

Installs and lists Visual Studio Code extensions through the ``code`` CLI.
"""

import re
from typing import Any, Dict, List

from .base import CommandTool, ParameterValidator, ToolError, ToolSchema

EXTENSION_ID_PATTERN = re.compile(r"^[A-Za-z0-9-]+\.[A-Za-z0-9.-]+$")


class EditorTool(CommandTool):
    """VS Code extension management through the ``code`` CLI."""

    executable = "code"

    async def get_schema(self) -> ToolSchema:
        """Return the editor tool schema."""
        return ToolSchema(
            name="editor",
            description="Visual Studio Code CLI tool",
            version=self.config.version,
            actions={
                "install_extension": {
                    "description": "Install one or more extensions",
                    "parameters": {
                        "extensions": {
                            "type": "array",
                            "items": {"type": "string"},
                            "required": True,
                        },
                        "force": {"type": "boolean", "default": False},
                    },
                },
                "list_extensions": {"description": "List installed extensions"},
            },
            required_permissions=[],
            dependencies=["code"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class EditorValidator(ParameterValidator):
            required = {"install_extension": ["extensions"]}

            def check(self, action, params, errors, warnings):
                if action == "install_extension":
                    if isinstance(params["extensions"], str):
                        params["extensions"] = [params["extensions"]]
                    for extension in params["extensions"]:
                        if not EXTENSION_ID_PATTERN.match(str(extension)):
                            errors.append(f"Invalid extension id: {extension}")

        return EditorValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute editor action."""
        if not self.available:
            raise ToolError(
                "VS Code CLI (code) is not on PATH. Run 'Shell Command: Install "
                "code command in PATH' from the VS Code command palette."
            )

        if action == "install_extension":
            return await self._install_extension(params)
        elif action == "list_extensions":
            return await self._list_extensions(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported editor actions."""
        return ["install_extension", "list_extensions"]

    async def _install_extension(self, params: Dict[str, Any]) -> Dict[str, Any]:
        for extension in params["extensions"]:
            cmd = ["code", "--install-extension", extension]
            if params.get("force"):
                cmd.append("--force")
            await self._run_checked(cmd)
        return {"installed": params["extensions"], "count": len(params["extensions"])}

    async def _list_extensions(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_checked(["code", "--list-extensions"])
        extensions = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return {"extensions": extensions, "count": len(extensions)}
