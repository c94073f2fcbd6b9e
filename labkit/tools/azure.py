"""
Azure CLI tool.

Wraps the ``az`` command for account, resource group, storage, Key Vault,
Application Insights, ML workspace and service principal operations. Every
action runs one ``az`` invocation (two for the composite login and
permission probes) and returns the parsed result.
"""

import json
import re
from typing import Any, Dict, List, Optional

from .base import (
    CommandTool,
    ParameterValidator,
    ToolConfig,
    ToolError,
    ToolExecutionError,
    ToolSchema,
)

STORAGE_ACCOUNT_PATTERN = re.compile(r"^[a-z0-9]{3,24}$")
LOCATION_PATTERN = re.compile(r"^[a-z0-9]+$")

PERMISSION_PROBES = ["create_group", "list_storage", "list_vms", "list_ml_workspaces"]


class AzureCliTool(CommandTool):
    """
    Azure CLI tool for provisioning the MLOps resources.

    Provides functionality for:
    - Login state and subscription selection
    - Resource groups, storage accounts and blob containers
    - Key Vault secrets and Application Insights components
    - Azure ML workspaces (requires the ``ml`` extension)
    - Service principals and permission probes
    """

    executable = "az"

    def __init__(self, config: ToolConfig):
        super().__init__(config)
        self._handlers = {
            "check_login": self._check_login,
            "login": self._login,
            "ensure_login": self._ensure_login,
            "show_account": self._show_account,
            "list_accounts": self._list_accounts,
            "set_subscription": self._set_subscription,
            "create_group": self._create_group,
            "delete_group": self._delete_group,
            "create_storage_account": self._create_storage_account,
            "get_storage_key": self._get_storage_key,
            "get_connection_string": self._get_connection_string,
            "create_container": self._create_container,
            "list_storage_accounts": self._list_storage_accounts,
            "list_vms": self._list_vms,
            "create_keyvault": self._create_keyvault,
            "set_secret": self._set_secret,
            "create_app_insights": self._create_app_insights,
            "extension_installed": self._extension_installed,
            "create_ml_workspace": self._create_ml_workspace,
            "list_ml_workspaces": self._list_ml_workspaces,
            "create_service_principal": self._create_service_principal,
            "delete_service_principal": self._delete_service_principal,
            "show_resource": self._show_resource,
            "check_permission": self._check_permission,
        }

    async def get_schema(self) -> ToolSchema:
        """Return the Azure CLI tool schema."""
        rg = {"type": "string", "required": True}
        location = {"type": "string", "required": True}
        return ToolSchema(
            name="azure",
            description="Azure CLI (az) resource provisioning tool",
            version=self.config.version,
            actions={
                "check_login": {"description": "Check whether az has a login"},
                "login": {"description": "Interactive az login"},
                "ensure_login": {"description": "Log in only if not logged in"},
                "show_account": {"description": "Show the active subscription"},
                "list_accounts": {"description": "List available subscriptions"},
                "set_subscription": {
                    "description": "Select the active subscription",
                    "parameters": {"subscription": {"type": "string", "required": True}},
                },
                "create_group": {
                    "description": "Create a resource group",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "location": location,
                    },
                },
                "delete_group": {
                    "description": "Delete a resource group",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "no_wait": {"type": "boolean", "default": False},
                    },
                },
                "create_storage_account": {
                    "description": "Create a StorageV2 account",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "resource_group": rg,
                        "location": location,
                        "sku": {"type": "string", "default": "Standard_LRS"},
                        "kind": {"type": "string", "default": "StorageV2"},
                    },
                },
                "get_storage_key": {
                    "description": "Fetch the first storage account key",
                    "parameters": {
                        "account_name": {"type": "string", "required": True},
                        "resource_group": rg,
                    },
                },
                "get_connection_string": {
                    "description": "Fetch the storage account connection string",
                    "parameters": {
                        "account_name": {"type": "string", "required": True},
                        "resource_group": rg,
                    },
                },
                "create_container": {
                    "description": "Create a blob container",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "account_name": {"type": "string", "required": True},
                        "account_key": {"type": "string", "required": True},
                    },
                },
                "list_storage_accounts": {"description": "List storage accounts"},
                "list_vms": {"description": "List virtual machines"},
                "create_keyvault": {
                    "description": "Create a Key Vault",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "resource_group": rg,
                        "location": location,
                    },
                },
                "set_secret": {
                    "description": "Store a secret in a Key Vault",
                    "parameters": {
                        "vault_name": {"type": "string", "required": True},
                        "name": {"type": "string", "required": True},
                        "value": {"type": "string", "required": True},
                    },
                },
                "create_app_insights": {
                    "description": "Create an Application Insights component",
                    "parameters": {
                        "app": {"type": "string", "required": True},
                        "resource_group": rg,
                        "location": location,
                    },
                },
                "extension_installed": {
                    "description": "Check whether an az extension is installed",
                    "parameters": {"name": {"type": "string", "required": True}},
                },
                "create_ml_workspace": {
                    "description": "Create an Azure ML workspace",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "resource_group": rg,
                        "location": location,
                        "storage_account": {"type": "string", "required": True},
                        "key_vault": {"type": "string", "required": True},
                        "app_insights": {"type": "string", "required": True},
                    },
                },
                "list_ml_workspaces": {
                    "description": "List Azure ML workspaces",
                    "parameters": {"resource_group": {"type": "string"}},
                },
                "create_service_principal": {
                    "description": "Create a service principal with an RBAC role",
                    "parameters": {
                        "name": {"type": "string", "required": True},
                        "role": {"type": "string", "default": "Contributor"},
                        "scopes": {"type": "string"},
                    },
                },
                "delete_service_principal": {
                    "description": "Delete a service principal",
                    "parameters": {"id": {"type": "string", "required": True}},
                },
                "show_resource": {
                    "description": "Resolve the id of a resource",
                    "parameters": {
                        "resource_group": rg,
                        "name": {"type": "string", "required": True},
                        "resource_type": {"type": "string", "required": True},
                    },
                },
                "check_permission": {
                    "description": "Probe whether an operation is permitted",
                    "parameters": {
                        "probe": {
                            "type": "string",
                            "enum": PERMISSION_PROBES,
                            "required": True,
                        },
                        "resource_group": {"type": "string"},
                        "location": {"type": "string", "default": "eastus"},
                    },
                },
            },
            required_permissions=["azure_login"],
            dependencies=["az"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class AzureValidator(ParameterValidator):
            required = {
                "set_subscription": ["subscription"],
                "create_group": ["name", "location"],
                "delete_group": ["name"],
                "create_storage_account": ["name", "resource_group", "location"],
                "get_storage_key": ["account_name", "resource_group"],
                "get_connection_string": ["account_name", "resource_group"],
                "create_container": ["name", "account_name", "account_key"],
                "create_keyvault": ["name", "resource_group", "location"],
                "set_secret": ["vault_name", "name", "value"],
                "create_app_insights": ["app", "resource_group", "location"],
                "extension_installed": ["name"],
                "create_ml_workspace": [
                    "name",
                    "resource_group",
                    "location",
                    "storage_account",
                    "key_vault",
                    "app_insights",
                ],
                "create_service_principal": ["name"],
                "delete_service_principal": ["id"],
                "show_resource": ["resource_group", "name", "resource_type"],
                "check_permission": ["probe"],
            }

            def check(self, action, params, errors, warnings):
                if "location" in params and params["location"]:
                    location = str(params["location"]).lower()
                    if not LOCATION_PATTERN.match(location):
                        errors.append(f"Invalid Azure location: {params['location']}")
                    params["location"] = location

                if action == "create_storage_account":
                    if not STORAGE_ACCOUNT_PATTERN.match(params["name"]):
                        errors.append(
                            "Storage account name must be 3-24 lowercase letters "
                            f"and digits: {params['name']}"
                        )

                if action == "check_permission":
                    if params["probe"] not in PERMISSION_PROBES:
                        errors.append(f"Valid probes: {PERMISSION_PROBES}")
                    elif params["probe"] == "create_group" and not params.get(
                        "resource_group"
                    ):
                        errors.append("resource_group is required for create_group")

                if action == "delete_group" and params.get("no_wait"):
                    warnings.append(
                        f"Resource group {params['name']} will be deleted "
                        "in the background"
                    )

        return AzureValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute Azure CLI action."""
        if not self.available:
            raise ToolError(
                "Azure CLI (az) is not installed. "
                "Install it from https://aka.ms/installazurecli"
            )

        handler = self._handlers.get(action)
        if handler is None:
            raise ToolError(f"Unknown action: {action}")
        return await handler(params)

    async def _get_supported_actions(self) -> List[str]:
        """Get supported Azure CLI actions."""
        return list(self._handlers)

    async def _az_json(self, args: List[str]) -> Any:
        """Run an az command and parse its JSON output."""
        result = await self._run_checked(["az", *args, "--output", "json"])
        output = result.stdout.strip()
        if not output:
            return None
        try:
            return json.loads(output)
        except json.JSONDecodeError as e:
            raise ToolExecutionError(f"Unexpected output from az {args[0]}: {e}")

    async def _az_value(self, args: List[str], query: str) -> str:
        """Run an az command and return a single tsv value."""
        result = await self._run_checked(
            ["az", *args, "--query", query, "--output", "tsv"]
        )
        return result.stdout.strip()

    # Account

    async def _check_login(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(["az", "account", "list", "--output", "json"])
        logged_in = False
        if result.ok:
            try:
                logged_in = bool(json.loads(result.stdout or "[]"))
            except json.JSONDecodeError:
                logged_in = False
        return {"logged_in": logged_in}

    async def _login(self, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._run_checked(["az", "login"], interactive=True)
        return {"logged_in": True}

    async def _ensure_login(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Log in interactively only when no account is available."""
        status = await self._check_login(params)
        if status["logged_in"]:
            return {"logged_in": True, "performed_login": False}

        self.logger.info("Not logged in to Azure, starting az login")
        await self._login(params)
        return {"logged_in": True, "performed_login": True}

    async def _show_account(self, params: Dict[str, Any]) -> Dict[str, Any]:
        account = await self._az_json(["account", "show"]) or {}
        return {
            "subscription_id": account.get("id"),
            "subscription_name": account.get("name"),
            "tenant_id": account.get("tenantId"),
            "user": (account.get("user") or {}).get("name"),
        }

    async def _list_accounts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        accounts = await self._az_json(["account", "list"]) or []
        return {
            "accounts": [
                {
                    "id": account.get("id"),
                    "name": account.get("name"),
                    "is_default": account.get("isDefault", False),
                }
                for account in accounts
            ],
            "count": len(accounts),
        }

    async def _set_subscription(self, params: Dict[str, Any]) -> Dict[str, Any]:
        await self._run_checked(
            ["az", "account", "set", "--subscription", params["subscription"]]
        )
        return {"subscription": params["subscription"]}

    # Resource groups

    async def _create_group(self, params: Dict[str, Any]) -> Dict[str, Any]:
        group = (
            await self._az_json(
                [
                    "group",
                    "create",
                    "--name",
                    params["name"],
                    "--location",
                    params["location"],
                ]
            )
            or {}
        )
        return {
            "name": params["name"],
            "location": params["location"],
            "id": group.get("id"),
        }

    async def _delete_group(self, params: Dict[str, Any]) -> Dict[str, Any]:
        cmd = ["az", "group", "delete", "--name", params["name"], "--yes"]
        if params.get("no_wait"):
            cmd.append("--no-wait")
        await self._run_checked(cmd)
        return {
            "name": params["name"],
            "deleted": True,
            "no_wait": bool(params.get("no_wait")),
        }

    # Storage

    async def _create_storage_account(self, params: Dict[str, Any]) -> Dict[str, Any]:
        account = (
            await self._az_json(
                [
                    "storage",
                    "account",
                    "create",
                    "--name",
                    params["name"],
                    "--resource-group",
                    params["resource_group"],
                    "--location",
                    params["location"],
                    "--sku",
                    params.get("sku", "Standard_LRS"),
                    "--kind",
                    params.get("kind", "StorageV2"),
                ]
            )
            or {}
        )
        return {
            "name": params["name"],
            "resource_group": params["resource_group"],
            "id": account.get("id"),
        }

    async def _get_storage_key(self, params: Dict[str, Any]) -> Dict[str, Any]:
        key = await self._az_value(
            [
                "storage",
                "account",
                "keys",
                "list",
                "--resource-group",
                params["resource_group"],
                "--account-name",
                params["account_name"],
            ],
            "[0].value",
        )
        if not key:
            raise ToolExecutionError(
                f"No access key returned for storage account {params['account_name']}"
            )
        return {"account_name": params["account_name"], "key": key}

    async def _get_connection_string(self, params: Dict[str, Any]) -> Dict[str, Any]:
        connection_string = await self._az_value(
            [
                "storage",
                "account",
                "show-connection-string",
                "--name",
                params["account_name"],
                "--resource-group",
                params["resource_group"],
            ],
            "connectionString",
        )
        return {
            "account_name": params["account_name"],
            "connection_string": connection_string,
        }

    async def _create_container(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = (
            await self._az_json(
                [
                    "storage",
                    "container",
                    "create",
                    "--name",
                    params["name"],
                    "--account-name",
                    params["account_name"],
                    "--account-key",
                    params["account_key"],
                ]
            )
            or {}
        )
        return {
            "name": params["name"],
            "account_name": params["account_name"],
            "created": bool(result.get("created", True)),
        }

    async def _list_storage_accounts(self, params: Dict[str, Any]) -> Dict[str, Any]:
        accounts = await self._az_json(["storage", "account", "list"]) or []
        return {"accounts": [a.get("name") for a in accounts], "count": len(accounts)}

    async def _list_vms(self, params: Dict[str, Any]) -> Dict[str, Any]:
        vms = await self._az_json(["vm", "list"]) or []
        return {"vms": [vm.get("name") for vm in vms], "count": len(vms)}

    # Key Vault and monitoring

    async def _create_keyvault(self, params: Dict[str, Any]) -> Dict[str, Any]:
        vault = (
            await self._az_json(
                [
                    "keyvault",
                    "create",
                    "--name",
                    params["name"],
                    "--resource-group",
                    params["resource_group"],
                    "--location",
                    params["location"],
                ]
            )
            or {}
        )
        return {
            "name": params["name"],
            "id": vault.get("id"),
            "vault_uri": (vault.get("properties") or {}).get("vaultUri"),
        }

    async def _set_secret(self, params: Dict[str, Any]) -> Dict[str, Any]:
        secret = (
            await self._az_json(
                [
                    "keyvault",
                    "secret",
                    "set",
                    "--vault-name",
                    params["vault_name"],
                    "--name",
                    params["name"],
                    "--value",
                    str(params["value"]),
                ]
            )
            or {}
        )
        return {
            "vault_name": params["vault_name"],
            "name": params["name"],
            "id": secret.get("id"),
        }

    async def _create_app_insights(self, params: Dict[str, Any]) -> Dict[str, Any]:
        component = (
            await self._az_json(
                [
                    "monitor",
                    "app-insights",
                    "component",
                    "create",
                    "--app",
                    params["app"],
                    "--resource-group",
                    params["resource_group"],
                    "--location",
                    params["location"],
                ]
            )
            or {}
        )
        return {
            "name": params["app"],
            "id": component.get("id"),
            "instrumentation_key": component.get("instrumentationKey"),
        }

    # ML workspaces

    async def _extension_installed(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(
            ["az", "extension", "show", "--name", params["name"], "--output", "json"]
        )
        return {"name": params["name"], "installed": result.ok}

    async def _create_ml_workspace(self, params: Dict[str, Any]) -> Dict[str, Any]:
        workspace = (
            await self._az_json(
                [
                    "ml",
                    "workspace",
                    "create",
                    "--name",
                    params["name"],
                    "--resource-group",
                    params["resource_group"],
                    "--location",
                    params["location"],
                    "--storage-account",
                    params["storage_account"],
                    "--key-vault",
                    params["key_vault"],
                    "--application-insights",
                    params["app_insights"],
                ]
            )
            or {}
        )
        return {"name": params["name"], "id": workspace.get("id")}

    async def _list_ml_workspaces(self, params: Dict[str, Any]) -> Dict[str, Any]:
        args = ["ml", "workspace", "list"]
        if params.get("resource_group"):
            args.extend(["--resource-group", params["resource_group"]])
        workspaces = await self._az_json(args) or []
        return {
            "workspaces": [w.get("name") for w in workspaces],
            "count": len(workspaces),
        }

    # Service principals

    async def _create_service_principal(
        self, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        args = [
            "ad",
            "sp",
            "create-for-rbac",
            "--name",
            params["name"],
            "--role",
            params.get("role", "Contributor"),
        ]
        if params.get("scopes"):
            args.extend(["--scopes", params["scopes"]])

        credentials = await self._az_json(args) or {}
        if not credentials.get("appId"):
            raise ToolExecutionError(
                f"Service principal {params['name']} was not returned by az"
            )
        return {
            "display_name": credentials.get("displayName", params["name"]),
            "app_id": credentials["appId"],
            "password": credentials.get("password"),
            "tenant": credentials.get("tenant"),
            "credentials": credentials,
        }

    async def _delete_service_principal(
        self, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        await self._run_checked(["az", "ad", "sp", "delete", "--id", params["id"]])
        return {"id": params["id"], "deleted": True}

    # Resources and permissions

    async def _show_resource(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(
            [
                "az",
                "resource",
                "show",
                "--resource-group",
                params["resource_group"],
                "--name",
                params["name"],
                "--resource-type",
                params["resource_type"],
                "--query",
                "id",
                "--output",
                "tsv",
            ]
        )
        resource_id = result.stdout.strip() if result.ok else ""
        if not resource_id:
            raise ToolExecutionError(
                "Resource not found. Please check the resource group, name, and type."
            )
        return {"name": params["name"], "id": resource_id}

    async def _check_permission(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Probe a single permission; a denied probe is a result, not a failure."""
        probe = params["probe"]
        detail: Optional[str] = None

        if probe == "create_group":
            result = await self._run_command(
                [
                    "az",
                    "group",
                    "create",
                    "--name",
                    params["resource_group"],
                    "--location",
                    params.get("location", "eastus"),
                    "--output",
                    "json",
                ]
            )
            if result.ok:
                # Clean up the probe group without waiting for it
                await self._run_command(
                    [
                        "az",
                        "group",
                        "delete",
                        "--name",
                        params["resource_group"],
                        "--yes",
                        "--no-wait",
                    ]
                )
        elif probe == "list_storage":
            result = await self._run_command(
                ["az", "storage", "account", "list", "--output", "json"]
            )
        elif probe == "list_vms":
            result = await self._run_command(["az", "vm", "list", "--output", "json"])
        else:
            result = await self._run_command(
                ["az", "ml", "workspace", "list", "--output", "json"]
            )

        if not result.ok:
            detail = result.stderr.strip() or result.stdout.strip()

        return {"probe": probe, "allowed": result.ok, "detail": detail}
