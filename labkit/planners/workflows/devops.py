"""
Azure DevOps workflows: deployment pipeline, service connection, work-item
links and dashboards.
"""

from pathlib import Path
from typing import Dict, List

from ...config import AppSettings
from ...models import WorkflowRequest
from ...utils.naming import dated_name
from . import content
from .common import (
    StepTemplate,
    WorkflowTemplate,
    azure_login,
    require_devops_organization,
    sequence,
    set_devops_project,
    step,
)

PORTAL_RESOURCE_URL = "https://portal.azure.com/#resource{}"


def build_pipeline(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    devops = settings.devops
    repository = request.option("repository", devops.repository_name)
    connection = request.option("connection_name", devops.connection_name)
    repo_dir = Path(variables["working_dir"]) / "pipeline-files"

    return sequence(
        [
            require_devops_organization(),
            set_devops_project(),
            step(
                "repo_check",
                "Check repository",
                "devops",
                "repo_exists",
                {"repository": repository},
            ),
            step(
                "create_repo",
                "Create repository",
                "devops",
                "create_repo",
                {"name": repository},
                skip_if="${repo_check.exists}",
            ),
            step(
                "pipeline_dirs",
                "Create pipeline directories",
                "filesystem",
                "create_directory",
                {"paths": [str(repo_dir), str(repo_dir / "templates")]},
            ),
            step(
                "pipeline_yaml",
                "Write pipeline YAML",
                "filesystem",
                "write_file",
                {
                    "path": str(repo_dir / devops.pipeline_file),
                    "content": content.deploy_pipeline(
                        f"{request.project_name}-rg", request.location, connection
                    ),
                    "format": "text",
                },
            ),
            step(
                "arm_template",
                "Write ARM template",
                "filesystem",
                "write_file",
                {
                    "path": str(repo_dir / "templates" / "mlops-resources.json"),
                    "content": content.storage_arm_template(),
                    "format": "json",
                },
            ),
            step(
                "pipeline_readme",
                "Write README",
                "filesystem",
                "write_file",
                {
                    "path": str(repo_dir / "README.md"),
                    "content": content.PIPELINE_README,
                    "format": "text",
                },
            ),
            step(
                "git_init",
                "Initialise git repository",
                "git",
                "init",
                {"path": str(repo_dir), "initial_branch": "main"},
            ),
            step("git_add", "Stage files", "git", "add", {"path": str(repo_dir), "all": True}),
            step(
                "git_commit",
                "Commit pipeline files",
                "git",
                "commit",
                {
                    "path": str(repo_dir),
                    "message": "Initial commit with pipeline and templates",
                },
            ),
            step(
                "repo_url",
                "Read repository URL",
                "devops",
                "get_repo_url",
                {"repository": repository},
            ),
            step(
                "git_remote",
                "Add remote",
                "git",
                "remote",
                {
                    "path": str(repo_dir),
                    "action": "add",
                    "remote_name": "origin",
                    "url": "${repo_url.remote_url}",
                },
            ),
            step(
                "git_push",
                "Push to Azure Repos",
                "git",
                "push",
                {
                    "path": str(repo_dir),
                    "remote": "origin",
                    "branch": "main",
                    "force": True,
                    "set_upstream": True,
                },
                interactive=True,
            ),
            step(
                "create_pipeline",
                "Create pipeline",
                "devops",
                "create_pipeline",
                {
                    "name": devops.pipeline_name,
                    "repository": repository,
                    "branch": "main",
                    "yml_path": devops.pipeline_file,
                },
            ),
        ]
    )


def build_service_connection(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    connection = request.option("connection_name", settings.devops.connection_name)
    store_path = f"{settings.secrets.devops_prefix}/{request.project_name}"

    return sequence(
        [
            azure_login(),
            require_devops_organization(),
            set_devops_project(),
            step("account", "Read subscription details", "azure", "show_account"),
            step(
                "service_principal",
                "Create DevOps service principal",
                "azure",
                "create_service_principal",
                {
                    "name": dated_name(f"devops-{request.project_name}"),
                    "role": settings.azure.service_principal_role,
                    "scopes": "/subscriptions/${account.subscription_id}",
                },
            ),
            step("pass_check", "Check for pass", "passwordstore", "available"),
            step(
                "store_credentials",
                "Store credentials in pass",
                "passwordstore",
                "insert",
                {"name": store_path, "value": "${service_principal.credentials}"},
                run_if="${pass_check.available}",
            ),
            step(
                "endpoint",
                "Create service connection",
                "devops",
                "create_service_endpoint",
                {
                    "name": connection,
                    "service_principal_id": "${service_principal.app_id}",
                    "service_principal_key": "${service_principal.password}",
                    "subscription_id": "${account.subscription_id}",
                    "subscription_name": "${account.subscription_name}",
                    "tenant_id": "${service_principal.tenant}",
                },
            ),
            step(
                "endpoint_id",
                "Look up service connection",
                "devops",
                "find_service_endpoint",
                {"name": connection},
            ),
            step(
                "grant_pipelines",
                "Grant access to all pipelines",
                "devops",
                "enable_service_endpoint_for_all",
                {"id": "${endpoint_id.id}"},
            ),
        ]
    )


def build_link_workitem(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    resource_name = request.option("resource_name")
    resource_type = request.option("resource_type", settings.devops.default_resource_type)

    return sequence(
        [
            azure_login(),
            require_devops_organization(),
            step(
                "resource",
                "Resolve resource id",
                "azure",
                "show_resource",
                {
                    "resource_group": request.option("resource_group"),
                    "name": resource_name,
                    "resource_type": resource_type,
                },
            ),
            step(
                "link",
                "Link work item to resource",
                "devops",
                "update_work_item",
                {
                    "work_item_id": request.option("work_item_id"),
                    "url": PORTAL_RESOURCE_URL.format("${resource.id}"),
                    "comment": f"Link to Azure resource: {resource_name}",
                },
            ),
        ]
    )


def build_dashboard(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    return sequence(
        [
            require_devops_organization(),
            set_devops_project(),
            step(
                "dashboard",
                "Create dashboard",
                "devops",
                "create_dashboard",
                {
                    "project": "{project_name}",
                    "name": request.option("dashboard_name", settings.devops.dashboard_name),
                    "description": "Dashboard for Azure resources",
                },
            ),
        ]
    )


TEMPLATES = [
    WorkflowTemplate(
        id="azure-pipeline",
        name="Azure deployment pipeline",
        description="Push pipeline YAML and an ARM template to Azure Repos and create the pipeline",
        category="devops",
        build=build_pipeline,
    ),
    WorkflowTemplate(
        id="service-connection",
        name="Service connection",
        description="Create a subscription-scoped service principal and DevOps service connection",
        category="devops",
        build=build_service_connection,
    ),
    WorkflowTemplate(
        id="link-workitem",
        name="Link work item",
        description="Add a portal hyperlink for an Azure resource to a work item",
        category="devops",
        build=build_link_workitem,
        requires_project=False,
        required_options=["work_item_id", "resource_group", "resource_name"],
    ),
    WorkflowTemplate(
        id="azure-dashboard",
        name="Azure dashboard",
        description="Create the 'Azure Resources' dashboard in a DevOps project",
        category="devops",
        build=build_dashboard,
    ),
]
