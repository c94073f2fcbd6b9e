"""
Azure DevOps tool.

Drives the ``azure-devops`` extension of the Azure CLI: organisation and
project defaults, repositories, pipelines, service connections, work items
and dashboards. Endpoints without a dedicated ``az`` subcommand (work item
relations, dashboards) go through ``az devops invoke`` with a temporary
request body file.
"""

import json
import os
import re
import tempfile
from typing import Any, Dict, List, Optional

from .base import (
    CommandTool,
    ParameterValidator,
    ToolError,
    ToolExecutionError,
    ToolSchema,
)

ORGANIZATION_HINT = (
    "Azure DevOps CLI not configured. Please run 'az devops configure --defaults "
    "organization=https://dev.azure.com/YOUR_ORGANIZATION'"
)

# az reads the service principal secret from this variable instead of argv
SERVICE_PRINCIPAL_KEY_ENV = "AZURE_DEVOPS_EXT_AZURE_RM_SERVICE_PRINCIPAL_KEY"

WORK_ITEM_API_VERSION = "7.0"
DASHBOARD_API_VERSION = "7.1-preview.3"


def parse_configured_defaults(output: str) -> Dict[str, str]:
    """Parse ``az devops configure --list`` output into a dict."""
    defaults: Dict[str, str] = {}
    for line in output.splitlines():
        match = re.match(r"^\s*([A-Za-z_]+)\s*=\s*(.*?)\s*$", line)
        if match and match.group(2):
            defaults[match.group(1).lower()] = match.group(2)
    return defaults


class AzureDevOpsTool(CommandTool):
    """
    Azure DevOps tool.

    Provides functionality for:
    - Organisation/project defaults
    - Repository creation and remote URL lookup
    - YAML pipeline creation
    - AzureRM service connections
    - Work item hyperlinks and dashboards
    - Project deletion
    """

    executable = "az"

    async def get_schema(self) -> ToolSchema:
        """Return the Azure DevOps tool schema."""
        organization = {"type": "string"}
        return ToolSchema(
            name="devops",
            description="Azure DevOps CLI extension tool",
            version=self.config.version,
            actions={
                "get_organization": {
                    "description": "Read the configured default organisation",
                    "parameters": {"required": {"type": "boolean", "default": False}},
                },
                "configure_defaults": {
                    "description": "Set default organisation and/or project",
                    "parameters": {
                        "organization": organization,
                        "project": {"type": "string"},
                    },
                },
                "repo_exists": {
                    "description": "Check whether a repository exists",
                    "parameters": {"repository": {"type": "string", "required": True}},
                },
                "create_repo": {
                    "description": "Create a Git repository",
                    "parameters": {"name": {"type": "string", "required": True}},
                },
                "get_repo_url": {
                    "description": "Get the remote URL of a repository",
                    "parameters": {"repository": {"type": "string", "required": True}},
                },
                "create_pipeline": {
                    "description": "Create a YAML pipeline",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "repository": {"type": "string", "required": True},
                        "yml_path": {"type": "string", "required": True},
                        "branch": {"type": "string", "default": "main"},
                    },
                },
                "create_service_endpoint": {
                    "description": "Create an AzureRM service connection",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "service_principal_id": {"type": "string", "required": True},
                        "service_principal_key": {"type": "string", "required": True},
                        "subscription_id": {"type": "string", "required": True},
                        "subscription_name": {"type": "string", "required": True},
                        "tenant_id": {"type": "string", "required": True},
                    },
                },
                "find_service_endpoint": {
                    "description": "Find a service connection id by name",
                    "parameters": {"name": {"type": "string", "required": True}},
                },
                "enable_service_endpoint_for_all": {
                    "description": "Grant a service connection to all pipelines",
                    "parameters": {"id": {"type": "string", "required": True}},
                },
                "update_work_item": {
                    "description": "Add a hyperlink relation to a work item",
                    "parameters": {
                        "work_item_id": {"type": "integer", "required": True},
                        "url": {"type": "string", "required": True},
                        "comment": {"type": "string"},
                    },
                },
                "create_dashboard": {
                    "description": "Create a project dashboard",
                    "parameters": {
                        "project": {"type": "string", "required": True},
                        "name": {"type": "string", "required": True},
                        "description": {"type": "string"},
                    },
                },
                "delete_project": {
                    "description": "Delete a DevOps project",
                    "parameters": {"project": {"type": "string", "required": True}},
                },
            },
            required_permissions=["azure_login", "devops_organization"],
            dependencies=["az", "azure-devops extension"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class DevOpsValidator(ParameterValidator):
            required = {
                "repo_exists": ["repository"],
                "create_repo": ["name"],
                "get_repo_url": ["repository"],
                "create_pipeline": ["name", "repository", "yml_path"],
                "create_service_endpoint": [
                    "name",
                    "service_principal_id",
                    "service_principal_key",
                    "subscription_id",
                    "subscription_name",
                    "tenant_id",
                ],
                "find_service_endpoint": ["name"],
                "enable_service_endpoint_for_all": ["id"],
                "update_work_item": ["work_item_id", "url"],
                "create_dashboard": ["project", "name"],
                "delete_project": ["project"],
            }

            def check(self, action, params, errors, warnings):
                if action == "configure_defaults":
                    if not params.get("organization") and not params.get("project"):
                        errors.append(
                            "organization or project is required for "
                            "configure_defaults"
                        )
                    org = params.get("organization")
                    if org and not str(org).startswith("https://"):
                        errors.append(f"Organization must be a URL: {org}")

                if action == "update_work_item":
                    try:
                        params["work_item_id"] = int(params["work_item_id"])
                    except (TypeError, ValueError):
                        errors.append(
                            f"work_item_id must be an integer: {params['work_item_id']}"
                        )

                if action == "delete_project":
                    warnings.append(
                        f"DevOps project {params['project']} will be deleted"
                    )

        return DevOpsValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute Azure DevOps action."""
        if not self.available:
            raise ToolError("Azure CLI (az) is not installed")

        if action == "get_organization":
            return await self._get_organization(params)
        elif action == "configure_defaults":
            return await self._configure_defaults(params)
        elif action == "repo_exists":
            return await self._repo_exists(params)
        elif action == "create_repo":
            return await self._create_repo(params)
        elif action == "get_repo_url":
            return await self._get_repo_url(params)
        elif action == "create_pipeline":
            return await self._create_pipeline(params)
        elif action == "create_service_endpoint":
            return await self._create_service_endpoint(params)
        elif action == "find_service_endpoint":
            return await self._find_service_endpoint(params)
        elif action == "enable_service_endpoint_for_all":
            return await self._enable_service_endpoint_for_all(params)
        elif action == "update_work_item":
            return await self._update_work_item(params)
        elif action == "create_dashboard":
            return await self._create_dashboard(params)
        elif action == "delete_project":
            return await self._delete_project(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported Azure DevOps actions."""
        return [
            "get_organization",
            "configure_defaults",
            "repo_exists",
            "create_repo",
            "get_repo_url",
            "create_pipeline",
            "create_service_endpoint",
            "find_service_endpoint",
            "enable_service_endpoint_for_all",
            "update_work_item",
            "create_dashboard",
            "delete_project",
        ]

    def _with_org(self, cmd: List[str], params: Dict[str, Any]) -> List[str]:
        if params.get("organization"):
            cmd.extend(["--organization", params["organization"]])
        return cmd

    async def _json(self, cmd: List[str], **kwargs: Any) -> Dict[str, Any]:
        result = await self._run_checked([*cmd, "--output", "json"], **kwargs)
        if not result.stdout.strip():
            return {}
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Unexpected output from az: {e}")

    async def _invoke(
        self,
        area: str,
        resource: str,
        route_parameters: Dict[str, Any],
        method: str,
        body: Any,
        api_version: str,
        media_type: str = "application/json",
        organization: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Call a REST endpoint through ``az devops invoke``."""
        fd, path = tempfile.mkstemp(prefix="labkit-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(body, f)

            cmd = [
                "az",
                "devops",
                "invoke",
                "--area",
                area,
                "--resource",
                resource,
                "--route-parameters",
                *[f"{k}={v}" for k, v in route_parameters.items()],
                "--http-method",
                method,
                "--in-file",
                path,
                "--api-version",
                api_version,
                "--media-type",
                media_type,
            ]
            return await self._json(
                self._with_org(cmd, {"organization": organization})
            )
        finally:
            os.unlink(path)

    async def _get_organization(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(["az", "devops", "configure", "--list"])
        defaults = parse_configured_defaults(result.stdout) if result.ok else {}
        organization = defaults.get("organization")

        if params.get("required") and not organization:
            raise ToolExecutionError(ORGANIZATION_HINT)

        return {
            "organization": organization,
            "project": defaults.get("project"),
            "configured": bool(organization),
        }

    async def _configure_defaults(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = ["az", "devops", "configure", "--defaults"]
        if params.get("organization"):
            cmd.append(f"organization={params['organization']}")
        if params.get("project"):
            cmd.append(f"project={params['project']}")

        await self._run_checked(cmd)
        return {
            "organization": params.get("organization"),
            "project": params.get("project"),
        }

    async def _repo_exists(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = ["az", "repos", "show", "--repository", params["repository"]]
        result = await self._run_command(self._with_org(cmd, params))
        return {"repository": params["repository"], "exists": result.ok}

    async def _create_repo(self, params: Dict[str, Any]) -> Dict[str, Any]:
        repo = await self._json(
            self._with_org(["az", "repos", "create", "--name", params["name"]], params)
        )
        return {
            "name": params["name"],
            "id": repo.get("id"),
            "remote_url": repo.get("remoteUrl"),
        }

    async def _get_repo_url(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = [
            "az",
            "repos",
            "show",
            "--repository",
            params["repository"],
            "--query",
            "remoteUrl",
            "--output",
            "tsv",
        ]
        result = await self._run_checked(self._with_org(cmd, params))
        url = result.stdout.strip()
        if not url:
            raise ToolExecutionError(
                f"Repository {params['repository']} has no remote URL"
            )
        return {"repository": params["repository"], "remote_url": url}

    async def _create_pipeline(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = [
            "az",
            "pipelines",
            "create",
            "--name",
            params["name"],
            "--repository",
            params["repository"],
            "--repository-type",
            "tfsgit",
            "--branch",
            params.get("branch", "main"),
            "--yml-path",
            params["yml_path"],
            "--skip-first-run",
            "true",
        ]
        pipeline = await self._json(self._with_org(cmd, params))
        return {"name": params["name"], "id": pipeline.get("id")}

    async def _create_service_endpoint(
        self, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        cmd = [
            "az",
            "devops",
            "service-endpoint",
            "azurerm",
            "create",
            "--name",
            params["name"],
            "--azure-rm-service-principal-id",
            params["service_principal_id"],
            "--azure-rm-subscription-id",
            params["subscription_id"],
            "--azure-rm-subscription-name",
            params["subscription_name"],
            "--azure-rm-tenant-id",
            params["tenant_id"],
        ]
        endpoint = await self._json(
            self._with_org(cmd, params),
            env={SERVICE_PRINCIPAL_KEY_ENV: str(params["service_principal_key"])},
        )
        return {"name": params["name"], "id": endpoint.get("id")}

    async def _find_service_endpoint(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = [
            "az",
            "devops",
            "service-endpoint",
            "list",
            "--query",
            f"[?name=='{params['name']}'].id | [0]",
            "--output",
            "tsv",
        ]
        result = await self._run_checked(self._with_org(cmd, params))
        endpoint_id = result.stdout.strip()
        if not endpoint_id:
            raise ToolExecutionError(f"Service connection {params['name']} not found")
        return {"name": params["name"], "id": endpoint_id}

    async def _enable_service_endpoint_for_all(
        self, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        cmd = [
            "az",
            "devops",
            "service-endpoint",
            "update",
            "--id",
            params["id"],
            "--enable-for-all",
            "true",
        ]
        await self._run_checked(self._with_org(cmd, params))
        return {"id": params["id"], "enabled_for_all": True}

    async def _update_work_item(self, params: Dict[str, Any]) -> Dict[str, Any]:
        relation: Dict[str, Any] = {"rel": "Hyperlink", "url": params["url"]}
        if params.get("comment"):
            relation["attributes"] = {"comment": params["comment"]}
        patch = [{"op": "add", "path": "/relations/-", "value": relation}]

        work_item = await self._invoke(
            area="wit",
            resource="workitems",
            route_parameters={"id": params["work_item_id"]},
            method="PATCH",
            body=patch,
            api_version=WORK_ITEM_API_VERSION,
            media_type="application/json-patch+json",
            organization=params.get("organization"),
        )
        return {
            "work_item_id": params["work_item_id"],
            "url": params["url"],
            "revision": work_item.get("rev"),
        }

    async def _create_dashboard(self, params: Dict[str, Any]) -> Dict[str, Any]:
        body = {
            "name": params["name"],
            "description": params.get("description", ""),
        }
        dashboard = await self._invoke(
            area="dashboard",
            resource="dashboards",
            route_parameters={"project": params["project"]},
            method="POST",
            body=body,
            api_version=DASHBOARD_API_VERSION,
            organization=params.get("organization"),
        )
        return {"name": params["name"], "id": dashboard.get("id")}

    async def _delete_project(self, params: Dict[str, Any]) -> Dict[str, Any]:
        show = [
            "az",
            "devops",
            "project",
            "show",
            "--project",
            params["project"],
            "--query",
            "id",
            "--output",
            "tsv",
        ]
        result = await self._run_checked(self._with_org(show, params))
        project_id = result.stdout.strip()
        if not project_id:
            raise ToolExecutionError(f"DevOps project {params['project']} not found")

        delete = ["az", "devops", "project", "delete", "--id", project_id, "--yes"]
        await self._run_checked(self._with_org(delete, params))
        return {"project": params["project"], "id": project_id, "deleted": True}
