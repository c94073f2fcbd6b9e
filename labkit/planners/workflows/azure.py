"""
Azure workflows: CLI configuration, permission checks, environment
provisioning, local access and teardown.
"""

from pathlib import Path
from typing import Any, Dict, List

from ...config import AppSettings
from ...environment import EnvironmentDescriptor, descriptor_filename
from ...models import WorkflowRequest
from ...utils.naming import STORAGE_CONTAINERS, dated_name
from ..base import WorkflowError
from . import content
from .common import StepTemplate, WorkflowTemplate, azure_login, sequence, step

LOCAL_ACCESS_SCRIPT = "access-azure-resources.py"
SP_ENTRIES = ["app-id", "password", "tenant", "subscription-id"]


def _local_file(variables: Dict[str, str], name: str) -> str:
    return str(Path(variables["working_dir"]) / name)


def _show_account() -> StepTemplate:
    return step("account", "Read current subscription", "azure", "show_account")


def _storage_steps() -> List[StepTemplate]:
    """Resource group, storage account, its key and the standard containers."""
    steps = [
        step(
            "resource_group",
            "Create resource group",
            "azure",
            "create_group",
            {"name": "{resource_group}", "location": "{location}"},
        ),
        step(
            "storage",
            "Create storage account",
            "azure",
            "create_storage_account",
            {
                "name": "{storage_account}",
                "resource_group": "{resource_group}",
                "location": "{location}",
            },
            estimated_duration=60.0,
        ),
        step(
            "storage_key",
            "Read storage account key",
            "azure",
            "get_storage_key",
            {"account_name": "{storage_account}", "resource_group": "{resource_group}"},
        ),
    ]
    for container in STORAGE_CONTAINERS:
        steps.append(
            step(
                f"container_{container}",
                f"Create '{container}' container",
                "azure",
                "create_container",
                {
                    "name": container,
                    "account_name": "{storage_account}",
                    "account_key": "${storage_key.key}",
                },
            )
        )
    steps.append(
        step(
            "key_vault",
            "Create Key Vault",
            "azure",
            "create_keyvault",
            {
                "name": "{key_vault}",
                "resource_group": "{resource_group}",
                "location": "{location}",
            },
            estimated_duration=60.0,
        )
    )
    return steps


def _app_insights() -> StepTemplate:
    return step(
        "app_insights",
        "Create Application Insights",
        "azure",
        "create_app_insights",
        {
            "app": "{app_insights}",
            "resource_group": "{resource_group}",
            "location": "{location}",
        },
    )


def _descriptor_step(
    request: WorkflowRequest, variables: Dict[str, str], kind: str, body: Dict[str, Any]
) -> StepTemplate:
    return step(
        "descriptor",
        "Save environment information",
        "filesystem",
        "write_file",
        {
            "path": _local_file(variables, descriptor_filename(request.project_name, kind)),
            "content": body,
            "format": "json",
            "omit_null": True,
        },
    )


def build_configure_cli(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    prefix = settings.secrets.service_principal_prefix
    credentials_file = _local_file(variables, "sp-credentials.json")
    pass_ready = "${pass_check.available}"

    steps = [
        azure_login(),
        step("accounts", "List subscriptions", "azure", "list_accounts"),
    ]
    subscription = request.option("subscription")
    if subscription:
        steps.append(
            step(
                "subscription",
                "Set active subscription",
                "azure",
                "set_subscription",
                {"subscription": subscription},
            )
        )
    steps.extend(
        [
            _show_account(),
            step(
                "service_principal",
                "Create automation service principal",
                "azure",
                "create_service_principal",
                {
                    "name": dated_name("mlops-automation"),
                    "role": settings.azure.service_principal_role,
                },
            ),
            step(
                "save_credentials",
                "Save service principal credentials",
                "filesystem",
                "write_file",
                {
                    "path": credentials_file,
                    "content": "${service_principal.credentials}",
                    "format": "json",
                    "mode": "600",
                },
            ),
            step("pass_check", "Check for pass", "passwordstore", "available"),
            step(
                "store_credentials",
                "Store credentials in pass",
                "passwordstore",
                "insert",
                {
                    "entries": {
                        f"{prefix}/app-id": "${service_principal.app_id}",
                        f"{prefix}/password": "${service_principal.password}",
                        f"{prefix}/tenant": "${service_principal.tenant}",
                        f"{prefix}/subscription-id": "${account.subscription_id}",
                    }
                },
                run_if=pass_ready,
            ),
            step(
                "remove_credentials_file",
                "Remove credentials file",
                "filesystem",
                "delete_file",
                {"path": credentials_file},
                run_if=pass_ready,
            ),
            step(
                "export_credentials",
                "Export credentials from the shell profile",
                "filesystem",
                "append_file",
                {
                    "path": settings.paths.shell_profile,
                    "content": content.service_principal_exports(
                        "${account.subscription_id}",
                        "${service_principal.tenant}",
                        "${service_principal.app_id}",
                        "${service_principal.password}",
                    ),
                    "unless_contains": 'export AZURE_CLIENT_ID="${service_principal.app_id}"',
                },
            ),
        ]
    )
    return sequence(steps)


def build_verify_permissions(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    return sequence(
        [
            azure_login(),
            _show_account(),
            step(
                "probe_group",
                "Check resource group creation",
                "azure",
                "check_permission",
                {
                    "probe": "create_group",
                    "resource_group": "permission-test-{timestamp}",
                    "location": settings.azure.permission_probe_location,
                },
            ),
            step(
                "probe_storage",
                "Check storage account access",
                "azure",
                "check_permission",
                {"probe": "list_storage"},
            ),
            step(
                "probe_vms",
                "Check virtual machine access",
                "azure",
                "check_permission",
                {"probe": "list_vms"},
            ),
            step(
                "ml_extension",
                "Check ML extension",
                "azure",
                "extension_installed",
                {"name": settings.azure.ml_extension},
            ),
            step(
                "probe_ml",
                "Check ML workspace access",
                "azure",
                "check_permission",
                {"probe": "list_ml_workspaces"},
                run_if="${ml_extension.installed}",
            ),
        ]
    )


def build_azure_environment(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    steps = [azure_login(), _show_account()]
    steps.extend(_storage_steps())
    steps.extend(
        [
            _app_insights(),
            step(
                "ml_extension",
                "Check ML extension",
                "azure",
                "extension_installed",
                {"name": settings.azure.ml_extension},
            ),
            step(
                "ml_workspace",
                "Create ML workspace",
                "azure",
                "create_ml_workspace",
                {
                    "name": "{ml_workspace}",
                    "resource_group": "{resource_group}",
                    "location": "{location}",
                    "storage_account": "{storage_account}",
                    "key_vault": "{key_vault}",
                    "app_insights": "{app_insights}",
                },
                run_if="${ml_extension.installed}",
                estimated_duration=300.0,
            ),
            _descriptor_step(
                request,
                variables,
                "azure",
                {
                    "project": request.project_name,
                    "subscription": "${account.subscription_id}",
                    "resourceGroup": variables["resource_group"],
                    "location": variables["location"],
                    "storageAccount": variables["storage_account"],
                    "keyVault": variables["key_vault"],
                    "appInsights": variables["app_insights"],
                    "mlWorkspace": "${ml_workspace.name}",
                },
            ),
        ]
    )
    return sequence(steps)


def build_mlops_environment(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    project = request.project_name
    steps = [azure_login(), _show_account()]
    steps.extend(_storage_steps())
    steps.extend(
        [
            step(
                "connection_string",
                "Read storage connection string",
                "azure",
                "get_connection_string",
                {"account_name": "{storage_account}", "resource_group": "{resource_group}"},
            ),
            step(
                "connection_secret",
                "Store connection string in Key Vault",
                "azure",
                "set_secret",
                {
                    "vault_name": "{key_vault}",
                    "name": "StorageConnectionString",
                    "value": "${connection_string.connection_string}",
                },
            ),
            _app_insights(),
            _descriptor_step(
                request,
                variables,
                "mlops",
                {
                    "project": project,
                    "subscription": "${account.subscription_id}",
                    "resourceGroup": variables["resource_group"],
                    "location": variables["location"],
                    "storageAccount": variables["storage_account"],
                    "storageKey": "${storage_key.key}",
                    "keyVault": variables["key_vault"],
                    "appInsights": variables["app_insights"],
                },
            ),
            step(
                "config_module",
                "Write Python configuration",
                "filesystem",
                "write_file",
                {
                    "path": _local_file(variables, f"{project}-config.py"),
                    "content": content.project_config_module(
                        project,
                        variables["resource_group"],
                        variables["storage_account"],
                        variables["key_vault"],
                        "${connection_string.connection_string}",
                    ),
                    "format": "text",
                    "mode": "600",
                },
            ),
        ]
    )
    return sequence(steps)


def load_descriptor(request: WorkflowRequest, variables: Dict[str, str]) -> EnvironmentDescriptor:
    """Load ``<project>-mlops-env.json`` from the working directory."""
    name = descriptor_filename(request.project_name, "mlops")
    path = Path(variables["working_dir"]) / name
    if not path.is_file():
        raise WorkflowError(
            f"Environment file '{name}' not found. "
            "Please run the mlops-environment workflow first."
        )
    try:
        return EnvironmentDescriptor.load(path)
    except ValueError as e:
        raise WorkflowError(str(e))


def build_local_access(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    load_descriptor(request, variables)
    return sequence(
        [
            step(
                "azure_sdk",
                "Install Azure SDK packages",
                "packages",
                "pip_install",
                {
                    "packages": list(content.AZURE_SDK_PACKAGES),
                    "python": request.option("python", "python3"),
                },
                estimated_duration=60.0,
            ),
            step(
                "access_script",
                "Write access-azure-resources.py",
                "filesystem",
                "write_file",
                {
                    "path": _local_file(variables, LOCAL_ACCESS_SCRIPT),
                    "content": content.access_script(request.project_name),
                    "format": "text",
                    "mode": "755",
                },
            ),
        ]
    )


def resolve_resource_group(request: WorkflowRequest, variables: Dict[str, str]) -> str:
    """Resource group from the environment file, else the ``resource_group`` option."""
    try:
        descriptor = EnvironmentDescriptor.find(
            request.project_name, variables["working_dir"]
        )
    except ValueError as e:
        raise WorkflowError(str(e))

    if descriptor and descriptor.resource_group:
        return descriptor.resource_group
    if request.option("resource_group"):
        return request.option("resource_group")
    raise WorkflowError(
        f"Environment file '{descriptor_filename(request.project_name)}' not found "
        "and no resource group given"
    )


def _local_files(request: WorkflowRequest, variables: Dict[str, str]) -> List[str]:
    project = request.project_name
    return [
        _local_file(variables, descriptor_filename(project, "mlops")),
        _local_file(variables, descriptor_filename(project, "azure")),
        _local_file(variables, f"{project}-config.py"),
        _local_file(variables, LOCAL_ACCESS_SCRIPT),
    ]


def _delete_group(resource_group: str) -> StepTemplate:
    return step(
        "delete_group",
        "Delete resource group",
        "azure",
        "delete_group",
        {"name": resource_group},
        description=f"Delete '{resource_group}' and ALL resources within it",
        estimated_duration=300.0,
    )


def _devops_cleanup() -> List[StepTemplate]:
    return [
        step("devops_org", "Check DevOps organization", "devops", "get_organization"),
        step(
            "delete_devops_project",
            "Delete DevOps project",
            "devops",
            "delete_project",
            {"project": "{project_name}"},
            run_if="${devops_org.configured}",
        ),
    ]


def build_teardown(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    resource_group = resolve_resource_group(request, variables)
    if not request.option("confirm", False):
        raise WorkflowError("Teardown cancelled")

    steps = [azure_login(), _delete_group(resource_group)]
    if request.option("delete_devops_project", False):
        steps.extend(_devops_cleanup())
    if request.option("delete_local_files", False):
        steps.append(
            step(
                "delete_local_files",
                "Delete local configuration files",
                "filesystem",
                "delete_file",
                {"paths": _local_files(request, variables)},
            )
        )
    return sequence(steps)


def build_complete_teardown(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    prefix = settings.secrets.service_principal_prefix
    steps = [azure_login()]

    if request.option("delete_resource_group", False):
        steps.append(_delete_group(resolve_resource_group(request, variables)))

    if request.option("delete_devops_project", False):
        steps.extend(_devops_cleanup())

    if request.option("delete_local_files", False):
        steps.append(
            step(
                "delete_local_files",
                "Delete local configuration files",
                "filesystem",
                "delete_file",
                {"paths": _local_files(request, variables)},
            )
        )

    if request.option("delete_service_principal", False):
        found = "${sp_stored.exists}"
        steps.extend(
            [
                step("pass_check", "Check for pass", "passwordstore", "available"),
                step(
                    "sp_stored",
                    "Look up stored service principal",
                    "passwordstore",
                    "exists",
                    {"name": f"{prefix}/app-id"},
                    run_if="${pass_check.available}",
                ),
                step(
                    "sp_app_id",
                    "Read service principal app id",
                    "passwordstore",
                    "show",
                    {"name": f"{prefix}/app-id"},
                    run_if=found,
                ),
                step(
                    "delete_sp",
                    "Delete service principal",
                    "azure",
                    "delete_service_principal",
                    {"id": "${sp_app_id.value}"},
                    run_if=found,
                ),
                step(
                    "remove_sp_entries",
                    "Remove credentials from pass",
                    "passwordstore",
                    "remove",
                    {"names": [f"{prefix}/{entry}" for entry in SP_ENTRIES]},
                    run_if=found,
                ),
            ]
        )
    return sequence(steps)


TEMPLATES = [
    WorkflowTemplate(
        id="configure-azure-cli",
        name="Configure Azure CLI",
        description="Select a subscription and create an automation service principal",
        category="azure",
        build=build_configure_cli,
        requires_project=False,
    ),
    WorkflowTemplate(
        id="verify-permissions",
        name="Verify Azure permissions",
        description="Probe resource group, storage, VM and ML workspace permissions",
        category="azure",
        build=build_verify_permissions,
        requires_project=False,
    ),
    WorkflowTemplate(
        id="azure-environment",
        name="Azure environment",
        description="Provision storage, Key Vault, App Insights and an optional ML workspace",
        category="azure",
        build=build_azure_environment,
        needs_resources=True,
    ),
    WorkflowTemplate(
        id="mlops-environment",
        name="MLOps environment",
        description="Provision storage, Key Vault and App Insights; write the Python config",
        category="azure",
        build=build_mlops_environment,
        needs_resources=True,
    ),
    WorkflowTemplate(
        id="local-azure-access",
        name="Local Azure access",
        description="Install the Azure SDK and write access-azure-resources.py",
        category="azure",
        build=build_local_access,
    ),
    WorkflowTemplate(
        id="teardown",
        name="Teardown",
        description="Delete the project resource group and optionally its DevOps project and files",
        category="azure",
        build=build_teardown,
        confirmations=["confirm", "delete_devops_project", "delete_local_files"],
        destructive=True,
    ),
    WorkflowTemplate(
        id="complete-teardown",
        name="Complete teardown",
        description="Remove the resource group, DevOps project, local files and service principal",
        category="azure",
        build=build_complete_teardown,
        confirmations=[
            "delete_resource_group",
            "delete_devops_project",
            "delete_local_files",
            "delete_service_principal",
        ],
        destructive=True,
    ),
]
