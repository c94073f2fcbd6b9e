"""
Azure resource naming conventions.

All resource names derive from the project name so that teardown can find
everything a setup workflow created.
"""

import re
from datetime import date
from typing import List, Optional

from pydantic import BaseModel

STORAGE_CONTAINERS: List[str] = ["data", "models", "notebooks", "outputs"]


def storage_account_name(project_name: str) -> str:
    """
    Derive the storage account name: ``<project>storage``, lower-cased,
    hyphens removed. Azure requires 3-24 lowercase letters and digits.
    """
    name = f"{project_name}storage".lower().replace("-", "")
    if not re.match(r"^[a-z0-9]{3,24}$", name):
        raise ValueError(
            f"Storage account name '{name}' must be 3-24 lowercase letters and "
            "digits; choose a shorter project name"
        )
    return name


def dated_name(prefix: str, on: Optional[date] = None) -> str:
    """Append a ``YYYYMMDD`` stamp, e.g. ``mlops-automation-20240131``."""
    return f"{prefix}-{(on or date.today()).strftime('%Y%m%d')}"


class ResourceNames(BaseModel):
    """Names of the Azure resources that belong to one project."""

    project: str
    resource_group: str
    storage_account: str
    key_vault: str
    app_insights: str
    ml_workspace: str

    @classmethod
    def for_project(cls, project_name: str) -> "ResourceNames":
        return cls(
            project=project_name,
            resource_group=f"{project_name}-rg",
            storage_account=storage_account_name(project_name),
            key_vault=f"{project_name}-kv",
            app_insights=f"{project_name}-appinsights",
            ml_workspace=f"{project_name}-ml",
        )

