"""
File System tool for file and directory operations.

This module provides a concrete implementation of the Tool interface for the
files workflows generate: project scaffolds, editor settings, environment
descriptors, shell profile additions and credential files.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .base import (
    ParameterValidator,
    Tool,
    ToolConfig,
    ToolError,
    ToolExecutionError,
    ToolSchema,
)

PROTECTED_PATHS = ["/etc", "/usr", "/var", "/sys", "/proc", "/dev", "/boot"]
FORMATS = ["text", "json", "yaml"]


def expand_path(path: str) -> Path:
    """Expand ``~`` and environment variables in a path."""
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def render_content(content: Any, fmt: str) -> str:
    """Serialise file content for the requested format."""
    if fmt == "json":
        return json.dumps(content, indent=2, ensure_ascii=False) + "\n"
    if fmt == "yaml":
        return yaml.safe_dump(content, default_flow_style=False, sort_keys=False)
    return str(content)


class FileSystemTool(Tool):
    """
    File System tool for local file and directory operations.

    Provides functionality for:
    - Directory creation (single path or a batch of paths)
    - File writes as text, JSON or YAML
    - Idempotent appends to profile files such as ``~/.bashrc``
    - File deletion and permission management
    - Existence checks used as workflow preconditions
    """

    def __init__(self, config: ToolConfig):
        super().__init__(config)
        self._protected: List[str] = list(PROTECTED_PATHS)

    async def get_schema(self) -> ToolSchema:
        """Return the File System tool schema."""
        return ToolSchema(
            name="filesystem",
            description="File system operations tool",
            version=self.config.version,
            actions={
                "create_directory": {
                    "description": "Create one or more directories",
                    "parameters": {
                        "path": {"type": "string"},
                        "paths": {"type": "array", "items": {"type": "string"}},
                        "mode": {"type": "string", "default": "755"},
                    },
                },
                "write_file": {
                    "description": "Write content to a file",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "content": {"type": "any", "required": True},
                        "format": {"type": "string", "enum": FORMATS},
                        "mode": {"type": "string", "default": "644"},
                        "overwrite": {"type": "boolean", "default": True},
                        "omit_null": {"type": "boolean", "default": False},
                    },
                },
                "append_file": {
                    "description": "Append content to a file",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "content": {"type": "string", "required": True},
                        "unless_contains": {"type": "string"},
                    },
                },
                "delete_file": {
                    "description": "Delete one or more files",
                    "parameters": {
                        "path": {"type": "string"},
                        "paths": {"type": "array", "items": {"type": "string"}},
                    },
                },
                "set_permissions": {
                    "description": "Set file or directory permissions",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "mode": {"type": "string", "required": True},
                        "recursive": {"type": "boolean", "default": False},
                    },
                },
                "exists": {
                    "description": "Check whether a path exists",
                    "parameters": {
                        "path": {"type": "string", "required": True},
                        "kind": {"type": "string", "enum": ["any", "file", "dir"]},
                        "require": {"type": "boolean", "default": False},
                        "message": {"type": "string"},
                    },
                },
            },
            required_permissions=["filesystem_write"],
            dependencies=[],
        )

    async def _create_client(self) -> Any:
        """Create file system client."""
        return {"filesystem_available": True, "home": str(Path.home())}

    async def _create_validator(self) -> Any:
        """Create parameter validator."""
        protected = self._protected

        class FileSystemValidator(ParameterValidator):
            required = {
                "write_file": ["path"],
                "append_file": ["path", "content"],
                "set_permissions": ["path", "mode"],
                "exists": ["path"],
            }

            def check(self, action, params, errors, warnings):
                if action in ("create_directory", "delete_file"):
                    if not params.get("path") and not params.get("paths"):
                        errors.append(f"path or paths is required for {action}")

                if action == "write_file":
                    if "content" not in params or params["content"] is None:
                        errors.append("content is required for write_file")
                    fmt = params.get("format")
                    if fmt is not None and fmt not in FORMATS:
                        errors.append(f"Invalid format: {fmt}")
                    if fmt == "json" or isinstance(params.get("content"), (dict, list)):
                        try:
                            json.dumps(params.get("content"), allow_nan=False)
                        except (TypeError, ValueError):
                            errors.append("content object must be JSON serializable")

                if action == "exists":
                    kind = params.get("kind", "any")
                    if kind not in ("any", "file", "dir"):
                        errors.append(f"Invalid kind: {kind}")

                if "mode" in params and not self._validate_mode(str(params["mode"])):
                    errors.append(f"Invalid mode format: {params['mode']}")

                if action != "exists":
                    targets = params.get("paths") or [params.get("path")]
                    for target in targets:
                        if target:
                            errors.extend(self._validate_path(target))

            def _validate_path(self, path: str) -> List[str]:
                """Reject writes into system directories."""
                errors = []
                try:
                    resolved = str(expand_path(path).resolve())
                except (ValueError, OSError) as e:
                    return [f"Invalid path: {e}"]

                for dangerous in protected:
                    if resolved == dangerous or resolved.startswith(dangerous + "/"):
                        errors.append(f"Access to {dangerous} not allowed")
                return errors

            def _validate_mode(self, mode: str) -> bool:
                """Validate octal file mode."""
                if not mode.isdigit() or len(mode) not in (3, 4):
                    return False
                try:
                    int(mode, 8)
                    return True
                except ValueError:
                    return False

        return FileSystemValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute file system action."""
        try:
            if action == "create_directory":
                return await self._create_directory(params)
            elif action == "write_file":
                return await self._write_file(params)
            elif action == "append_file":
                return await self._append_file(params)
            elif action == "delete_file":
                return await self._delete_file(params)
            elif action == "set_permissions":
                return await self._set_permissions(params)
            elif action == "exists":
                return await self._exists(params)
            else:
                raise ToolError(f"Unknown action: {action}")
        except OSError as e:
            raise ToolExecutionError(f"{action} failed: {e}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported file system actions."""
        return [
            "create_directory",
            "write_file",
            "append_file",
            "delete_file",
            "set_permissions",
            "exists",
        ]

    async def _create_directory(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Create directories, including parents."""
        mode_str = str(params.get("mode", "755"))
        targets = params.get("paths") or [params["path"]]

        created = []
        for target in targets:
            path = expand_path(target)
            path.mkdir(mode=int(mode_str, 8), parents=True, exist_ok=True)
            created.append(str(path))

        return {"paths": created, "count": len(created), "mode": mode_str}

    async def _write_file(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Write content to a file."""
        path = expand_path(params["path"])
        content = params["content"]
        mode_str = str(params.get("mode", "644"))
        if params.get("omit_null") and isinstance(content, dict):
            content = {k: v for k, v in content.items() if v is not None}
        fmt = params.get("format") or self._infer_format(path, content)

        if path.exists() and not params.get("overwrite", True):
            return {"path": str(path), "written": False, "format": fmt}

        if path.parent != path:
            path.parent.mkdir(parents=True, exist_ok=True)

        content_str = render_content(content, fmt)
        path.write_text(content_str, encoding="utf-8")
        path.chmod(int(mode_str, 8))

        return {
            "path": str(path),
            "written": True,
            "size": len(content_str.encode("utf-8")),
            "format": fmt,
            "mode": mode_str,
        }

    def _infer_format(self, path: Path, content: Any) -> str:
        if isinstance(content, (dict, list)):
            if path.suffix in (".yml", ".yaml"):
                return "yaml"
            return "json"
        return "text"

    async def _append_file(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Append content unless the marker text is already present."""
        path = expand_path(params["path"])
        content = str(params["content"])
        marker = params.get("unless_contains")

        existing = path.read_text(encoding="utf-8") if path.exists() else ""
        if marker and marker in existing:
            return {"path": str(path), "appended": False}

        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write(content if content.endswith("\n") else content + "\n")

        return {"path": str(path), "appended": True}

    async def _delete_file(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Delete files; missing files are skipped."""
        targets = params.get("paths") or [params["path"]]

        deleted = []
        missing = []
        for target in targets:
            path = expand_path(target)
            if not path.exists():
                missing.append(str(path))
                continue
            if path.is_dir():
                raise IsADirectoryError(f"Path is a directory, not a file: {path}")
            path.unlink()
            deleted.append(str(path))

        return {"deleted": deleted, "missing": missing, "count": len(deleted)}

    async def _set_permissions(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Set file or directory permissions."""
        path = expand_path(params["path"])
        mode_str = str(params["mode"])
        recursive = params.get("recursive", False)

        if not path.exists():
            raise FileNotFoundError(f"Path not found: {path}")

        mode = int(mode_str, 8)
        if recursive and path.is_dir():
            for item in path.rglob("*"):
                item.chmod(mode)
        path.chmod(mode)

        return {"path": str(path), "mode": mode_str, "recursive": recursive}

    async def _exists(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Check a path, optionally failing when it is absent."""
        path = expand_path(params["path"])
        kind = params.get("kind", "any")

        if kind == "file":
            exists = path.is_file()
        elif kind == "dir":
            exists = path.is_dir()
        else:
            exists = path.exists()

        if params.get("require") and not exists:
            raise ToolExecutionError(
                params.get("message") or f"Required path not found: {path}"
            )

        return {"path": str(path), "exists": exists, "kind": kind}
