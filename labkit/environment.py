"""
Environment descriptor files.

Setup workflows record what they provisioned in ``<project>-mlops-env.json``
or ``<project>-azure-env.json``; teardown and local-access workflows read the
file back. Keys are camelCase on disk.
"""

import json
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DESCRIPTOR_SUFFIXES = {"mlops": "mlops-env.json", "azure": "azure-env.json"}


def descriptor_filename(project_name: str, kind: str = "mlops") -> str:
    """Return ``<project>-mlops-env.json`` or ``<project>-azure-env.json``."""
    if kind not in DESCRIPTOR_SUFFIXES:
        raise ValueError(f"Unknown descriptor kind: {kind}")
    return f"{project_name}-{DESCRIPTOR_SUFFIXES[kind]}"


class EnvironmentDescriptor(BaseModel):
    """Resources recorded for a project; absent fields were not provisioned."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    project: str
    subscription: Optional[str] = None
    resource_group: Optional[str] = Field(default=None, alias="resourceGroup")
    location: Optional[str] = None
    storage_account: Optional[str] = Field(default=None, alias="storageAccount")
    storage_key: Optional[str] = Field(default=None, alias="storageKey")
    key_vault: Optional[str] = Field(default=None, alias="keyVault")
    app_insights: Optional[str] = Field(default=None, alias="appInsights")
    ml_workspace: Optional[str] = Field(default=None, alias="mlWorkspace")

    def to_file_dict(self) -> Dict[str, Any]:
        """Serialise with on-disk key names, omitting unset resources."""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def load(cls, path: Union[str, Path]) -> "EnvironmentDescriptor":
        """
        Read a descriptor file.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a valid descriptor
        """
        path = Path(path).expanduser()
        with path.open(encoding="utf-8") as f:
            try:
                data = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid environment file {path}: {e}")
        return cls.model_validate(data)

    @classmethod
    def find(
        cls, project_name: str, directory: Union[str, Path] = "."
    ) -> Optional["EnvironmentDescriptor"]:
        """Load the first descriptor present for a project, if any."""
        base = Path(directory).expanduser()
        for kind in DESCRIPTOR_SUFFIXES:
            candidate = base / descriptor_filename(project_name, kind)
            if candidate.is_file():
                return cls.load(candidate)
        return None

    def save(self, path: Union[str, Path]) -> Path:
        path = Path(path).expanduser()
        path.write_text(
            json.dumps(self.to_file_dict(), indent=4) + "\n", encoding="utf-8"
        )
        return path
