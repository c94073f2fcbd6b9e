"""
Main CLI interface for labkit.

One command per workflow, grouped by area (local machine, Azure, Azure
DevOps, secrets, editor), plus catalogue, tool status, log and settings
commands.
"""

import asyncio
import json
import logging
import sys
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import click

from .. import __version__
from ..config import AppSettings, get_settings
from ..environment import EnvironmentDescriptor
from ..executors.base import ExecutorConfig, ExecutorError
from ..executors.concrete_executor import ConcreteExecutor
from ..logging_utils import (
    LogManager,
    ProgressTracker,
    WorkflowCompleted,
    WorkflowStarted,
)
from ..models import WorkflowRequest
from ..planners.base import PlannerConfig, PlannerError
from ..planners.template_planner import TemplatePlanner
from ..planners.workflows import WORKFLOWS
from ..security import mask_sensitive
from ..utils.directories import get_secure_app_directory

LOG_FILE_NAME = "labkit.log"

CONFIRM_PROMPTS = {
    "install_docker": "Do you want to install Docker?",
    "confirm": "Are you sure you want to delete resource group '{resource_group}'?",
    "delete_resource_group": "Delete resource group '{resource_group}'?",
    "delete_devops_project": "Delete the Azure DevOps project '{project_name}'?",
    "delete_local_files": "Delete local configuration files?",
    "delete_service_principal": "Delete the automation service principal?",
    "install_gui": "Install the Pass for macOS GUI?",
    "install_browserpass": "Install browserpass for browser integration?",
}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging with correlation IDs."""

    RESERVED = {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "getMessage",
        "stack_info",
        "exc_info",
        "exc_text",
        "message",
        "correlation_id",
        "execution_id",
    }

    def format(self, record):
        log_data = {
            "timestamp": datetime.utcnow().isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "unknown"),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        execution_id = getattr(record, "execution_id", None)
        if execution_id:
            log_data["execution_id"] = execution_id

        extra = {
            key: value
            for key, value in record.__dict__.items()
            if key not in self.RESERVED and not key.startswith("_")
        }
        log_data.update(mask_sensitive(extra))

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def get_log_file(settings: AppSettings) -> Path:
    if settings.monitoring.log_file:
        return Path(settings.monitoring.log_file).expanduser()
    return get_secure_app_directory("labkit", "logs") / LOG_FILE_NAME


def setup_logging(settings: AppSettings, verbose: bool = False) -> None:
    """Structured JSON to the log file; warnings (or everything with -v) to stderr."""
    log_file = get_log_file(settings)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    if settings.monitoring.log_format == "json":
        file_handler.setFormatter(StructuredFormatter())
    else:
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else settings.monitoring.log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)


class LabkitAgent:
    """Wires the planner and executor together for one CLI invocation."""

    def __init__(self, settings: Optional[AppSettings] = None):
        self.settings = settings or get_settings()
        self.logger = logging.getLogger(self.__class__.__name__)
        self.correlation_id = str(uuid.uuid4())
        self.planner: Optional[TemplatePlanner] = None
        self.executor: Optional[ConcreteExecutor] = None

        self.log_manager = LogManager(str(get_log_file(self.settings).parent))
        self.progress_tracker = ProgressTracker(self.log_manager)
        self.show_progress = self.settings.monitoring.show_progress

    async def initialize(self) -> None:
        """Initialize the planner and executor."""
        execution = self.settings.execution

        self.planner = TemplatePlanner(
            PlannerConfig(max_plan_steps=execution.max_plan_steps),
            settings=self.settings,
            progress_tracker=self.progress_tracker,
        )
        await self.planner.initialize()

        self.executor = ConcreteExecutor(
            ExecutorConfig(
                step_timeout=execution.tool_timeout,
                retry_count=execution.retry_count,
                retry_delay=execution.retry_delay,
                continue_on_failure=execution.continue_on_failure,
            ),
            progress_tracker=self.progress_tracker if self.show_progress else None,
        )
        await self.executor.initialize()

    async def plan_workflow(self, request: WorkflowRequest) -> Dict[str, Any]:
        """Generate the plan only (dry run)."""
        if not self.planner:
            raise RuntimeError("Agent not initialized")

        plan = await self.planner.create_plan(request)
        return {
            "success": True,
            "dry_run": True,
            "workflow": request.workflow,
            "plan": {
                "id": plan.id,
                "steps": [
                    {
                        "id": step["id"],
                        "name": step.get("name"),
                        "description": step.get("description"),
                        "tool": step.get("tool"),
                        "action": step.get("action"),
                        "parameters": step.get("parameters"),
                        "dependencies": step.get("dependencies"),
                        "run_if": step.get("run_if"),
                        "skip_if": step.get("skip_if"),
                        "interactive": step.get("interactive"),
                    }
                    for step in plan.steps
                ],
                "variables": plan.variables,
                "estimated_duration": plan.estimated_duration,
            },
            "request": request.model_dump(),
        }

    async def run_workflow(self, request: WorkflowRequest) -> Dict[str, Any]:
        """Plan and execute a workflow."""
        if not self.planner or not self.executor:
            raise RuntimeError("Agent not initialized")

        start_time = datetime.utcnow()
        await self.log_manager.emit_event(
            WorkflowStarted(
                correlation_id=self.correlation_id,
                workflow=request.workflow,
                project_name=request.project_name,
            )
        )

        try:
            plan = await self.planner.create_plan(request)

            validation = await self.executor.validate_plan_requirements(plan)
            if not validation["valid"]:
                error_details = {
                    "missing_tools": validation.get("missing_tools", []),
                    "invalid_actions": validation.get("invalid_actions", []),
                }
                raise RuntimeError(f"Plan validation failed: {error_details}")
            for warning in validation.get("warnings", []):
                self.logger.warning(
                    "Plan validation warning",
                    extra={
                        "correlation_id": self.correlation_id,
                        "warning_message": warning,
                    },
                )

            if self.show_progress:
                self.progress_tracker.start_execution_progress(
                    len(plan.steps), f"labkit {request.workflow}"
                )
            try:
                result = await self.executor.execute_plan(plan, self.correlation_id)
            finally:
                self.progress_tracker.complete_execution_progress()

            duration = (datetime.utcnow() - start_time).total_seconds()
            await self.log_manager.emit_event(
                WorkflowCompleted(
                    correlation_id=self.correlation_id,
                    execution_id=result.execution_id,
                    workflow=request.workflow,
                    success=result.success,
                    duration_seconds=duration,
                    failed_step=result.failed_step,
                )
            )

            return {
                "success": result.success,
                "workflow": request.workflow,
                "execution_id": result.execution_id,
                "plan": {
                    "id": plan.id,
                    "steps": len(plan.steps),
                    "estimated_duration": plan.estimated_duration,
                },
                "execution": {
                    "duration": result.duration,
                    "artifacts": result.artifacts,
                    "metrics": result.metrics,
                    "logs": result.logs,
                },
                "failed_step": result.failed_step,
                "error": result.error,
                "request": request.model_dump(),
            }

        except Exception as e:
            duration = (datetime.utcnow() - start_time).total_seconds()
            await self.log_manager.emit_event(
                WorkflowCompleted(
                    correlation_id=self.correlation_id,
                    workflow=request.workflow,
                    success=False,
                    duration_seconds=duration,
                )
            )
            self.logger.error(
                "Workflow failed",
                extra={
                    "correlation_id": self.correlation_id,
                    "workflow": request.workflow,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                    "duration_seconds": duration,
                },
            )
            return {
                "success": False,
                "workflow": request.workflow,
                "error": str(e),
                "request": request.model_dump(),
            }

    async def list_workflows(self) -> List[Dict[str, Any]]:
        if not self.planner:
            raise RuntimeError("Agent not initialized")
        return await self.planner.get_available_templates()

    async def get_tools_status(self) -> Dict[str, Any]:
        if not self.executor:
            raise RuntimeError("Agent not initialized")
        return await self.executor.get_available_tools()


def workflow_options(func):
    """Options shared by every workflow command."""
    options = [
        click.option("--dry-run", is_flag=True, help="Print the plan without executing it"),
        click.option("--output", "-o", type=click.Path(), help="Save the result to a JSON file"),
        click.option("--yes", "-y", is_flag=True, help="Answer yes to every confirmation"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def collect_confirmations(
    workflow_id: str,
    options: Dict[str, Any],
    assume_yes: bool,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Ask every confirmation the workflow declares that was not given."""
    template = WORKFLOWS[workflow_id]
    answers = dict(options)
    for name in template.confirmations:
        if answers.get(name) is not None:
            continue
        if assume_yes:
            answers[name] = True
            continue
        prompt = CONFIRM_PROMPTS.get(name, f"Confirm {name.replace('_', ' ')}?")
        answers[name] = click.confirm(prompt.format(**(context or {})), default=False)
    return answers


def execute_workflow(
    workflow_id: str,
    project_name: Optional[str] = None,
    location: Optional[str] = None,
    options: Optional[Dict[str, Any]] = None,
    dry_run: bool = False,
    output: Optional[str] = None,
) -> Dict[str, Any]:
    """Run a workflow from a CLI command, print the summary and return the result."""
    settings = get_settings()

    async def _run() -> Dict[str, Any]:
        agent = LabkitAgent(settings)
        await agent.initialize()

        request = WorkflowRequest(
            workflow=workflow_id,
            project_name=project_name,
            location=location or settings.azure.default_location,
            working_dir=str(Path.cwd()),
            options=options or {},
        )

        if dry_run:
            click.echo("🔍 Dry run mode - generating plan only...")
            result = await agent.plan_workflow(request)
        else:
            result = await agent.run_workflow(request)

        if output:
            async with aiofiles.open(output, "w") as f:
                await f.write(json.dumps(mask_sensitive(result), indent=2, default=str))
            click.echo(f"📄 Result saved to {output}")

        return result

    try:
        result = asyncio.run(_run())
    except (PlannerError, ExecutorError, ValueError) as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)

    if dry_run:
        plan = result["plan"]
        click.echo(f"📋 Plan for {workflow_id}: {len(plan['steps'])} steps")
        click.echo(json.dumps(mask_sensitive(plan), indent=2, default=str))
        return result

    if result["success"]:
        click.echo(f"🎉 {workflow_id} completed successfully!")
        metrics = result.get("execution", {}).get("metrics", {})
        duration = result.get("execution", {}).get("duration") or 0
        click.echo(f"⏱️  Duration: {duration:.1f} seconds")
        if "successful_steps" in metrics:
            click.echo(
                f"✅ Steps completed: {metrics['successful_steps']}/"
                f"{metrics.get('total_steps', 0)}"
                f" ({metrics.get('skipped_steps', 0)} skipped)"
            )
    else:
        click.echo(f"❌ Failed: {result.get('error', 'Unknown error')}")
        sys.exit(1)

    return result


def artifacts(result: Dict[str, Any]) -> Dict[str, Any]:
    return result.get("execution", {}).get("artifacts", {})


# CLI Commands


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose):
    """labkit - ML development environment and Azure MLOps provisioning"""
    ctx.ensure_object(dict)
    setup_logging(get_settings(), verbose)


@cli.group()
def local():
    """Local machine and project setup."""


@cli.group()
def azure():
    """Azure resources and credentials."""


@cli.group()
def devops():
    """Azure DevOps repositories, pipelines and boards."""


@cli.group()
def secrets():
    """pass/GnuPG password store."""


@cli.group()
def editor():
    """VS Code editor setup."""


# Local


@local.command("vscode-python")
@click.argument("directory", type=click.Path())
@workflow_options
def vscode_python(directory, dry_run, output, yes):
    """Write VS Code Python settings into an existing DIRECTORY."""
    execute_workflow(
        "vscode-python",
        options={"directory": str(Path(directory).expanduser().resolve())},
        dry_run=dry_run,
        output=output,
    )


@local.command("ubuntu-env")
@click.option("--docker/--no-docker", default=None, help="Install Docker")
@workflow_options
def ubuntu_env(docker, dry_run, output, yes):
    """Install the Ubuntu development toolchain and the MLOps venv."""
    options = collect_confirmations("ubuntu-env", {"install_docker": docker}, yes)
    execute_workflow("ubuntu-env", options=options, dry_run=dry_run, output=output)


@local.command("python-setup")
@workflow_options
def python_setup(dry_run, output, yes):
    """Install Python, build tools, pipx and the linters/test runner."""
    execute_workflow("python-setup", dry_run=dry_run, output=output)


@local.command("install-conda")
@workflow_options
def install_conda(dry_run, output, yes):
    """Install Miniconda and initialise it for bash."""
    execute_workflow("install-conda", dry_run=dry_run, output=output)


def _project_command(workflow_id: str, help_text: str):
    @click.argument("project_name")
    @click.option("--directory", "-d", type=click.Path(), help="Project directory")
    @workflow_options
    def command(project_name, directory, dry_run, output, yes):
        execute_workflow(
            workflow_id,
            project_name=project_name,
            options={"directory": directory},
            dry_run=dry_run,
            output=output,
        )

    command.__doc__ = help_text
    return local.command(workflow_id)(command)


_project_command("ml-project", "Scaffold an ML project with a venv and git.")
_project_command("ml-venv", "Scaffold an ML project with a venv, samples and a kernel.")
_project_command("ml-conda", "Scaffold an ML project with a Conda environment.")


# Azure


@azure.command("configure-cli")
@click.option("--subscription", "-s", help="Subscription id to select")
@workflow_options
def configure_cli(subscription, dry_run, output, yes):
    """Select a subscription and create the automation service principal."""
    if subscription is None and not yes and not dry_run:
        subscription = click.prompt(
            "Enter subscription ID (leave empty to keep the current one)",
            default="",
            show_default=False,
        )
    execute_workflow(
        "configure-azure-cli",
        options={"subscription": subscription or None},
        dry_run=dry_run,
        output=output,
    )


@azure.command("verify-permissions")
@workflow_options
def verify_permissions(dry_run, output, yes):
    """Probe resource group, storage, VM and ML workspace permissions."""
    execute_workflow("verify-permissions", dry_run=dry_run, output=output)


@azure.command("environment")
@click.argument("project_name")
@click.option("--location", "-l", help="Azure region")
@workflow_options
def azure_environment(project_name, location, dry_run, output, yes):
    """Provision storage, Key Vault, App Insights and an ML workspace."""
    result = execute_workflow(
        "azure-environment",
        project_name=project_name,
        location=location,
        dry_run=dry_run,
        output=output,
    )
    if not dry_run:
        click.echo(f"📄 Environment saved to {project_name}-azure-env.json")
        if artifacts(result).get("ml_workspace") is None:
            click.echo("ℹ️  ML workspace skipped: the 'ml' CLI extension is not installed")


@azure.command("mlops-environment")
@click.argument("project_name")
@click.option("--location", "-l", help="Azure region")
@workflow_options
def mlops_environment(project_name, location, dry_run, output, yes):
    """Provision the MLOps resources and write the project config module."""
    execute_workflow(
        "mlops-environment",
        project_name=project_name,
        location=location,
        dry_run=dry_run,
        output=output,
    )
    if not dry_run:
        click.echo(f"📄 Environment saved to {project_name}-mlops-env.json")
        click.echo(f"🐍 Python config saved to {project_name}-config.py")


@azure.command("local-access")
@click.argument("project_name")
@click.option("--python", default="python3", show_default=True, help="Interpreter for pip")
@workflow_options
def local_access(project_name, python, dry_run, output, yes):
    """Install the Azure SDK and write access-azure-resources.py."""
    execute_workflow(
        "local-azure-access",
        project_name=project_name,
        options={"python": python},
        dry_run=dry_run,
        output=output,
    )
    if not dry_run:
        click.echo("Usage: python access-azure-resources.py [list|upload|download|secret]")


def _teardown_resource_group(
    project_name: str, resource_group: Optional[str], yes: bool
) -> str:
    """Resource group from the environment file, the option or a prompt."""
    try:
        descriptor = EnvironmentDescriptor.find(project_name, Path.cwd())
    except ValueError as e:
        click.echo(f"❌ Error: {e}")
        sys.exit(1)
    if descriptor and descriptor.resource_group:
        return descriptor.resource_group
    if resource_group:
        return resource_group
    if yes:
        click.echo("❌ Error: no environment file found; pass --resource-group")
        sys.exit(1)
    click.echo("Environment file not found.")
    return click.prompt("Enter resource group name to delete")


@azure.command("teardown")
@click.argument("project_name")
@click.option("--resource-group", "-g", help="Resource group when no environment file exists")
@workflow_options
def teardown(project_name, resource_group, dry_run, output, yes):
    """Delete the project's resource group (and optionally more)."""
    resource_group = _teardown_resource_group(project_name, resource_group, yes)
    context = {"resource_group": resource_group, "project_name": project_name}

    answers = collect_confirmations("teardown", {}, yes or dry_run, context)
    if not answers["confirm"]:
        click.echo("Teardown cancelled.")
        return

    answers["resource_group"] = resource_group
    execute_workflow(
        "teardown",
        project_name=project_name,
        options=answers,
        dry_run=dry_run,
        output=output,
    )


@azure.command("complete-teardown")
@click.argument("project_name")
@click.option("--resource-group", "-g", help="Resource group when no environment file exists")
@workflow_options
def complete_teardown(project_name, resource_group, dry_run, output, yes):
    """Remove all resources, credentials and files created for a project."""
    click.echo("⚠️  This removes Azure resources, the DevOps project, local files")
    click.echo("   and the automation service principal. Each stage is confirmed.")
    resource_group = _teardown_resource_group(project_name, resource_group, yes)
    context = {"resource_group": resource_group, "project_name": project_name}

    answers = collect_confirmations("complete-teardown", {}, yes or dry_run, context)
    if not any(answers.values()):
        click.echo("Nothing selected; teardown cancelled.")
        return

    answers["resource_group"] = resource_group
    execute_workflow(
        "complete-teardown",
        project_name=project_name,
        options=answers,
        dry_run=dry_run,
        output=output,
    )


# Azure DevOps


@devops.command("pipeline")
@click.argument("project_name")
@click.option("--repository", help="Azure Repos repository name")
@click.option("--connection-name", help="Service connection used by the pipeline")
@workflow_options
def pipeline(project_name, repository, connection_name, dry_run, output, yes):
    """Push pipeline files to Azure Repos and create the pipeline."""
    execute_workflow(
        "azure-pipeline",
        project_name=project_name,
        options={"repository": repository, "connection_name": connection_name},
        dry_run=dry_run,
        output=output,
    )


@devops.command("service-connection")
@click.argument("project_name")
@click.option("--connection-name", help="Service connection name")
@workflow_options
def service_connection(project_name, connection_name, dry_run, output, yes):
    """Create a service principal and DevOps service connection."""
    execute_workflow(
        "service-connection",
        project_name=project_name,
        options={"connection_name": connection_name},
        dry_run=dry_run,
        output=output,
    )


@devops.command("link-workitem")
@click.argument("work_item_id", type=int)
@click.argument("resource_group")
@click.argument("resource_name")
@click.option("--resource-type", help="Azure resource type")
@workflow_options
def link_workitem(
    work_item_id, resource_group, resource_name, resource_type, dry_run, output, yes
):
    """Link WORK_ITEM_ID to an Azure resource in the portal."""
    execute_workflow(
        "link-workitem",
        options={
            "work_item_id": work_item_id,
            "resource_group": resource_group,
            "resource_name": resource_name,
            "resource_type": resource_type,
        },
        dry_run=dry_run,
        output=output,
    )


@devops.command("dashboard")
@click.argument("project_name")
@click.option("--name", "dashboard_name", help="Dashboard name")
@workflow_options
def dashboard(project_name, dashboard_name, dry_run, output, yes):
    """Create the Azure resources dashboard in a DevOps project."""
    execute_workflow(
        "azure-dashboard",
        project_name=project_name,
        options={"dashboard_name": dashboard_name},
        dry_run=dry_run,
        output=output,
    )


# Secrets


@secrets.command("pass-setup")
@workflow_options
def pass_setup(dry_run, output, yes):
    """Install pass, create a GPG key if needed and initialise the store."""
    result = execute_workflow("pass-setup", dry_run=dry_run, output=output)
    if dry_run:
        return
    generated = artifacts(result).get("generate_key") or {}
    if generated.get("passphrase"):
        click.echo("🔑 A GPG key was generated with the passphrase:")
        click.echo(f"   {generated['passphrase']}")
        click.echo("   Store it somewhere safe; it is not saved anywhere.")


@secrets.command("pass-setup-macos")
@click.option("--gui/--no-gui", default=None, help="Install the Pass for macOS GUI")
@click.option("--browserpass/--no-browserpass", default=None, help="Install browserpass")
@workflow_options
def pass_setup_macos(gui, browserpass, dry_run, output, yes):
    """Install pass via Homebrew and initialise the store."""
    options = collect_confirmations(
        "pass-setup-macos",
        {"install_gui": gui, "install_browserpass": browserpass},
        yes,
    )
    execute_workflow("pass-setup-macos", options=options, dry_run=dry_run, output=output)


@secrets.group("api-keys")
def api_keys():
    """Manage ML project API keys."""


@api_keys.command("add")
@click.argument("service")
@click.argument("key_name")
@workflow_options
def api_keys_add(service, key_name, dry_run, output, yes):
    """Store a key for SERVICE under KEY_NAME (pass prompts for the value)."""
    execute_workflow(
        "api-keys",
        options={"action": "add", "service": service, "key_name": key_name},
        dry_run=dry_run,
        output=output,
    )


@api_keys.command("get")
@click.argument("service")
@click.argument("key_name")
@workflow_options
def api_keys_get(service, key_name, dry_run, output, yes):
    """Print the key stored for SERVICE under KEY_NAME."""
    result = execute_workflow(
        "api-keys",
        options={"action": "get", "service": service, "key_name": key_name},
        dry_run=dry_run,
        output=output,
    )
    if not dry_run:
        click.echo(artifacts(result).get("get_key", {}).get("value", ""))


@api_keys.command("list")
@workflow_options
def api_keys_list(dry_run, output, yes):
    """List stored API keys."""
    result = execute_workflow(
        "api-keys", options={"action": "list"}, dry_run=dry_run, output=output
    )
    if not dry_run:
        click.echo(artifacts(result).get("list_keys", {}).get("listing", ""))


# Editor


@editor.command("extensions")
@click.option("--extension", "-e", "extensions", multiple=True, help="Extension id")
@workflow_options
def editor_extensions(extensions, dry_run, output, yes):
    """Install the Python, Jupyter and Azure VS Code extensions."""
    execute_workflow(
        "editor-extensions",
        options={"extensions": list(extensions) or None},
        dry_run=dry_run,
        output=output,
    )


# Catalogue and diagnostics


@cli.command()
@click.option("--category", "-c", help="Only show one category")
def workflows(category):
    """List available workflows."""

    async def _workflows():
        agent = LabkitAgent()
        await agent.initialize()
        return await agent.list_workflows()

    click.echo("📚 Available Workflows:")
    click.echo()
    for template in asyncio.run(_workflows()):
        if category and template["category"] != category:
            continue
        marker = "⚠️ " if template["destructive"] else "🏗️ "
        click.echo(f"{marker} {template['id']} ({template['category']})")
        click.echo(f"   {template['description']}")
        if template["required_options"]:
            click.echo(f"   Requires: {', '.join(template['required_options'])}")
        if template["confirmations"]:
            click.echo(f"   Asks: {', '.join(template['confirmations'])}")
        click.echo()


@cli.command()
def tools():
    """Show status of available tools."""

    async def _tools():
        agent = LabkitAgent()
        await agent.initialize()
        return await agent.get_tools_status()

    click.echo("🔧 Tool Status:")
    click.echo()

    for tool_name, tool_info in asyncio.run(_tools()).items():
        status = tool_info.get("status", "unknown")
        if status == "available":
            click.echo(f"✅ {tool_name}: {tool_info.get('description', 'No description')}")
            click.echo(f"   Version: {tool_info.get('version', 'Unknown')}")
            click.echo(f"   Actions: {', '.join(tool_info.get('actions', []))}")
        elif status == "not installed":
            needs = ", ".join(tool_info.get("dependencies", []))
            click.echo(f"⚠️  {tool_name}: not installed (needs {needs})")
        else:
            click.echo(f"❌ {tool_name}: {tool_info.get('error', 'Not available')}")
        click.echo()


@cli.command()
@click.option(
    "--lines",
    "-n",
    default=50,
    type=click.IntRange(min=1),
    help="Number of log lines (or events) to show",
)
@click.option("--events", is_flag=True, help="Show recorded workflow events instead")
@click.option("--execution", "execution_id", help="Only events of this execution id")
def logs(lines, events, execution_id):
    """Show recent logs."""
    log_file = get_log_file(get_settings())

    if events or execution_id:
        recorded = LogManager(str(log_file.parent)).read_events(lines, execution_id)
        if not recorded:
            click.echo("📄 No events found")
            return

        click.echo(f"📄 Recent events (last {len(recorded)}):")
        click.echo()
        for event in recorded:
            subject = event.get("step_id") or event.get("workflow") or ""
            status = ""
            if "success" in event:
                status = " ✅" if event["success"] else " ❌"
            click.echo(
                f"{event.get('timestamp', '')} {event.get('event_type', 'event')} "
                f"{subject}{status} [{event.get('execution_id') or '-'}]"
            )
        return

    async def _logs():
        if not log_file.exists():
            click.echo("📄 No logs found")
            return

        try:
            async with aiofiles.open(log_file, "r") as f:
                content = await f.read()
        except OSError as e:
            click.echo(f"❌ Error reading logs: {e}")
            return

        log_lines = content.splitlines()
        recent_lines = log_lines[-lines:]

        click.echo(f"📄 Recent logs (last {len(recent_lines)} lines):")
        click.echo()
        for line in recent_lines:
            click.echo(line)

    asyncio.run(_logs())


@cli.command()
def config():
    """Show the effective settings with secrets masked."""
    click.echo(json.dumps(get_settings().get_safe_dict(), indent=2, default=str))


@cli.command()
def version():
    """Show version information."""
    click.echo("labkit - ML environment provisioning")
    click.echo(f"Version: {__version__}")


if __name__ == "__main__":
    cli()
