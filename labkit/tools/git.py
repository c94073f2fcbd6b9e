"""
Git tool for repository bootstrap operations.

This module provides a concrete implementation of the Tool interface for the
Git operations used when scaffolding projects and publishing them to Azure
Repos: init, add, commit, remote and push.
"""

import re
from pathlib import Path
from typing import Any, Dict, List

from .base import CommandTool, ParameterValidator, ToolError, ToolSchema


class GitTool(CommandTool):
    """
    Git tool for repository bootstrap operations.

    Provides functionality for:
    - Repository initialisation
    - Staging and committing files
    - Remote management and pushing
    """

    executable = "git"

    async def get_schema(self) -> ToolSchema:
        """Return the Git tool schema."""
        return ToolSchema(
            name="git",
            description="Git version control system tool",
            version=self.config.version,
            actions={
                "init": {
                    "description": "Initialize a new Git repository",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "initial_branch": {"type": "string"},
                    },
                },
                "add": {
                    "description": "Add files to staging area",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "files": {"type": "array", "items": {"type": "string"}},
                        "all": {"type": "boolean", "default": False},
                    },
                },
                "commit": {
                    "description": "Create a commit",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "message": {"type": "string", "required": True},
                        "allow_empty": {"type": "boolean", "default": False},
                    },
                },
                "remote": {
                    "description": "Manage remotes",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "action": {
                            "type": "string",
                            "enum": ["add", "remove", "set-url"],
                            "required": True,
                        },
                        "remote_name": {"type": "string", "default": "origin"},
                        "url": {"type": "string"},
                    },
                },
                "push": {
                    "description": "Push changes to remote",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "remote": {"type": "string", "default": "origin"},
                        "branch": {"type": "string"},
                        "force": {"type": "boolean", "default": False},
                        "set_upstream": {"type": "boolean", "default": False},
                    },
                },
            },
            required_permissions=["git"],
            dependencies=["git"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class GitValidator(ParameterValidator):
            required = {
                "init": ["path"],
                "add": ["path"],
                "commit": ["path", "message"],
                "remote": ["path", "action"],
                "push": ["path"],
            }

            def check(self, action, params, errors, warnings):
                if not self._is_valid_path(params["path"]):
                    errors.append(f"Invalid path format: {params['path']}")

                if action == "add":
                    if not params.get("files") and not params.get("all"):
                        errors.append(
                            "Either files list or all=True is required for add"
                        )

                if action == "commit" and len(params["message"]) < 3:
                    warnings.append("Commit message is very short")

                if action == "remote":
                    valid_actions = ["add", "remove", "set-url"]
                    if params["action"] not in valid_actions:
                        errors.append(f"Valid actions for remote: {valid_actions}")
                    elif params["action"] != "remove":
                        if not params.get("url"):
                            errors.append(f"url is required for remote {params['action']}")
                        elif not self._is_valid_git_url(params["url"]):
                            errors.append(f"Invalid Git URL format: {params['url']}")

                if action == "push" and params.get("force"):
                    warnings.append("Force push will overwrite the remote branch")

            def _is_valid_path(self, path: str) -> bool:
                """Validate path format."""
                try:
                    Path(path)
                    return True
                except (TypeError, ValueError, OSError):
                    return False

            def _is_valid_git_url(self, url: str) -> bool:
                """Validate Git URL format."""
                git_patterns = [
                    r"^https?://.*\.git$",
                    r"^git@.*:.*",
                    r"^ssh://.*",
                    r"^https?://([^@/]+@)?dev\.azure\.com/.*",
                    r"^https?://[^/]+\.visualstudio\.com/.*",
                    r"^https?://github\.com/.*",
                ]

                return any(re.match(pattern, url) for pattern in git_patterns)

        return GitValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute Git action."""
        if not self.available:
            raise ToolError("Git is not available")

        if action == "init":
            return await self._git_init(params)
        elif action == "add":
            return await self._git_add(params)
        elif action == "commit":
            return await self._git_commit(params)
        elif action == "remote":
            return await self._git_remote(params)
        elif action == "push":
            return await self._git_push(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported Git actions."""
        return ["init", "add", "commit", "remote", "push"]

    async def _git_init(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Initialize a Git repository."""
        cmd = ["git", "init"]

        if params.get("initial_branch"):
            cmd.extend(["--initial-branch", params["initial_branch"]])

        cmd.append(params["path"])

        result = await self._run_checked(cmd)

        return {
            "path": params["path"],
            "initial_branch": params.get("initial_branch"),
            "output": result.stdout,
        }

    async def _git_add(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Add files to Git staging area."""
        cmd = ["git", "-C", params["path"], "add"]

        if params.get("all"):
            cmd.append("--all")
        else:
            cmd.extend(params["files"])

        await self._run_checked(cmd)

        return {
            "path": params["path"],
            "files": params.get("files", []),
            "all": params.get("all", False),
        }

    async def _git_commit(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Create a Git commit."""
        cmd = ["git", "-C", params["path"], "commit", "-m", params["message"]]

        if params.get("allow_empty"):
            cmd.append("--allow-empty")

        result = await self._run_checked(cmd)

        return {
            "path": params["path"],
            "message": params["message"],
            "output": result.stdout,
        }

    async def _git_remote(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Manage Git remotes."""
        action = params["action"]
        remote_name = params.get("remote_name", "origin")
        cmd = ["git", "-C", params["path"], "remote", action, remote_name]

        if action in ("add", "set-url"):
            cmd.append(params["url"])

        await self._run_checked(cmd)

        return {
            "path": params["path"],
            "action": action,
            "remote_name": remote_name,
            "url": params.get("url"),
        }

    async def _git_push(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Push changes to a remote."""
        remote = params.get("remote", "origin")
        cmd = ["git", "-C", params["path"], "push"]

        if params.get("set_upstream"):
            cmd.append("--set-upstream")

        if params.get("force"):
            cmd.append("--force")

        cmd.append(remote)

        if params.get("branch"):
            cmd.append(params["branch"])

        result = await self._run_checked(cmd)

        return {
            "path": params["path"],
            "remote": remote,
            "branch": params.get("branch"),
            "output": result.stderr or result.stdout,
        }
