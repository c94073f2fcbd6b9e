"""
Local development environment workflows: editor settings, system packages,
Python tooling, Miniconda and ML project scaffolds.
"""

import platform
from pathlib import Path
from typing import Dict, List

from ...config import AppSettings
from ...models import WorkflowRequest
from ..base import WorkflowError
from . import content
from .common import StepTemplate, WorkflowTemplate, sequence, step

MINICONDA_URL = "https://repo.anaconda.com/miniconda/Miniconda3-latest-{}.sh"
NODESOURCE_URL = "https://deb.nodesource.com/setup_22.x"
AZURE_CLI_INSTALLER_URL = "https://aka.ms/InstallAzureCLIDeb"
DOCKER_APT = {
    "name": "docker",
    "key_url": "https://download.docker.com/linux/ubuntu/gpg",
    "repo_url": "https://download.docker.com/linux/ubuntu",
    "component": "stable",
}


def miniconda_installer_name() -> str:
    """Installer flavour for this machine, e.g. ``Linux-x86_64``."""
    system = "MacOSX" if platform.system() == "Darwin" else "Linux"
    machine = platform.machine().lower()
    if machine in ("arm64", "aarch64"):
        machine = "arm64" if system == "MacOSX" else "aarch64"
    else:
        machine = "x86_64"
    return f"{system}-{machine}"


def conda_executable(settings: AppSettings) -> str:
    """Prefer the Miniconda install from install-conda over whatever is on PATH."""
    candidate = Path(settings.paths.miniconda_dir).expanduser() / "bin" / "conda"
    return str(candidate) if candidate.is_file() else "conda"


def build_vscode_python(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    directory = Path(request.option("directory", request.working_dir)).expanduser()
    if not directory.is_dir():
        raise WorkflowError(f"Directory {directory} does not exist")

    vscode = directory / ".vscode"
    return sequence(
        [
            step(
                "vscode_dir",
                "Create .vscode directory",
                "filesystem",
                "create_directory",
                {"path": str(vscode)},
            ),
            step(
                "vscode_settings",
                "Write settings.json",
                "filesystem",
                "write_file",
                {
                    "path": str(vscode / "settings.json"),
                    "content": content.python_editor_settings(),
                    "format": "json",
                },
            ),
            step(
                "vscode_launch",
                "Write launch.json",
                "filesystem",
                "write_file",
                {
                    "path": str(vscode / "launch.json"),
                    "content": content.editor_launch(),
                    "format": "json",
                },
            ),
        ]
    )


def build_ubuntu_env(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    venv_dir = Path(settings.paths.mlops_venv_dir).expanduser()
    venv = venv_dir / "venv"

    steps = [
        step("apt_update", "Update package lists", "packages", "apt_update"),
        step(
            "dev_tools",
            "Install development tools",
            "packages",
            "apt_install",
            {"packages": ["build-essential", "git", "curl", "wget", "unzip"]},
            estimated_duration=60.0,
        ),
        step(
            "python",
            "Install Python and pip",
            "packages",
            "apt_install",
            {"packages": ["python3", "python3-pip", "python3-venv"]},
            estimated_duration=60.0,
        ),
        step(
            "nodesource",
            "Add NodeSource repository",
            "packages",
            "run_installer",
            {"url": NODESOURCE_URL, "sudo": True},
        ),
        step(
            "nodejs",
            "Install Node.js and npm",
            "packages",
            "apt_install",
            {"packages": ["nodejs"]},
            estimated_duration=60.0,
        ),
        step(
            "azure_cli",
            "Install Azure CLI",
            "packages",
            "run_installer",
            {"url": AZURE_CLI_INSTALLER_URL, "sudo": True},
            estimated_duration=120.0,
        ),
    ]

    if request.option("install_docker", False):
        steps.extend(
            [
                step(
                    "docker_prereqs",
                    "Install Docker prerequisites",
                    "packages",
                    "apt_install",
                    {
                        "packages": [
                            "apt-transport-https",
                            "ca-certificates",
                            "gnupg",
                            "lsb-release",
                        ]
                    },
                ),
                step(
                    "docker_source",
                    "Add Docker apt repository",
                    "packages",
                    "add_apt_source",
                    dict(DOCKER_APT),
                ),
                step(
                    "docker_apt_update",
                    "Update package lists",
                    "packages",
                    "apt_update",
                ),
                step(
                    "docker",
                    "Install Docker",
                    "packages",
                    "apt_install",
                    {"packages": ["docker-ce", "docker-ce-cli", "containerd.io"]},
                    estimated_duration=90.0,
                ),
                step(
                    "docker_group",
                    "Add user to docker group",
                    "packages",
                    "add_user_to_group",
                    {"group": "docker"},
                    description="Log out and back in for the group change to apply",
                ),
            ]
        )

    steps.extend(
        [
            step(
                "mlops_dir",
                "Create MLOps project directory",
                "filesystem",
                "create_directory",
                {"path": str(venv_dir)},
            ),
            step(
                "mlops_venv",
                "Create MLOps virtual environment",
                "python_env",
                "create_venv",
                {"path": str(venv)},
            ),
            step(
                "activate_on_login",
                "Activate the environment from the shell profile",
                "filesystem",
                "append_file",
                {
                    "path": settings.paths.shell_profile,
                    "content": f"source {venv}/bin/activate",
                    "unless_contains": f"source {venv}/bin/activate",
                },
            ),
        ]
    )
    return sequence(steps)


def build_python_setup(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    return sequence(
        [
            step("apt_update", "Update package lists", "packages", "apt_update"),
            step(
                "python",
                "Install Python and development headers",
                "packages",
                "apt_install",
                {"packages": ["python3", "python3-pip", "python3-dev", "python3-venv"]},
                estimated_duration=60.0,
            ),
            step(
                "build_tools",
                "Install build tools",
                "packages",
                "apt_install",
                {"packages": ["build-essential", "libssl-dev", "libffi-dev"]},
                estimated_duration=60.0,
            ),
            step(
                "upgrade_pip",
                "Upgrade pip",
                "packages",
                "pip_install",
                {"packages": ["pip"], "upgrade": True},
            ),
            step(
                "pipx",
                "Install pipx",
                "packages",
                "pip_install",
                {"packages": ["pipx"], "user": True},
            ),
            step("pipx_path", "Add pipx to PATH", "packages", "pipx_ensurepath"),
            step(
                "python_tools",
                "Install Python tools",
                "packages",
                "pip_install",
                {
                    "packages": ["black", "isort", "flake8", "mypy", "pytest"],
                    "user": True,
                },
            ),
            step("versions", "Report Python and pip versions", "python_env", "version"),
        ]
    )


def build_install_conda(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    miniconda_dir = Path(settings.paths.miniconda_dir).expanduser()
    installer = str(Path(variables["home"]) / "miniconda.sh")
    url = MINICONDA_URL.format(miniconda_installer_name())
    already_installed = "${existing.exists}"

    return sequence(
        [
            step(
                "existing",
                "Check for an existing Miniconda",
                "filesystem",
                "exists",
                {"path": str(miniconda_dir / "bin" / "conda"), "kind": "file"},
            ),
            step(
                "download",
                "Download Miniconda installer",
                "packages",
                "download",
                {"url": url, "destination": installer, "mode": "755"},
                skip_if=already_installed,
            ),
            step(
                "install",
                "Install Miniconda",
                "packages",
                "run_installer",
                {"path": installer, "args": ["-b", "-p", str(miniconda_dir)]},
                skip_if=already_installed,
                estimated_duration=120.0,
            ),
            step(
                "cleanup",
                "Remove installer",
                "filesystem",
                "delete_file",
                {"path": installer},
                skip_if=already_installed,
            ),
            step(
                "conda_init",
                "Initialise Conda for bash",
                "python_env",
                "conda_init",
                {"conda": str(miniconda_dir / "bin" / "conda"), "shell": "bash"},
            ),
        ]
    )


def _scaffold(project_dir: str, subdirs: List[str]) -> StepTemplate:
    return step(
        "scaffold",
        "Create project structure",
        "filesystem",
        "create_directory",
        {"paths": [str(Path(project_dir) / d) for d in subdirs]},
    )


def _write(step_id: str, name: str, path: str, body, fmt: str = "text", **extra):
    params = {"path": path, "content": body, "format": fmt}
    params.update(extra)
    return step(step_id, name, "filesystem", "write_file", params)


def build_ml_project(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    project = request.project_name
    root = Path(variables["project_dir"])
    venv = root / ".venv"

    return sequence(
        [
            _scaffold(
                str(root),
                ["data", "src/models", "src/pipelines", "config", "notebooks", "tests"],
            ),
            _write("readme", "Write README", str(root / "README.md"), content.project_readme(project)),
            step(
                "venv",
                "Create virtual environment",
                "python_env",
                "create_venv",
                {"path": str(venv)},
            ),
            step(
                "base_packages",
                "Install base packages",
                "python_env",
                "pip_install_requirements",
                {"venv": str(venv), "packages": list(content.BASE_PACKAGES)},
                estimated_duration=120.0,
            ),
            _write(
                "requirements",
                "Write requirements.txt",
                str(root / "requirements.txt"),
                content.base_requirements(),
            ),
            _write(
                "gitignore",
                "Write .gitignore",
                str(root / ".gitignore"),
                content.gitignore(models=False),
            ),
            step("git_init", "Initialise git repository", "git", "init", {"path": str(root)}),
            _write(
                "vscode_settings",
                "Write VS Code settings",
                str(root / ".vscode" / "settings.json"),
                content.editor_settings(str(venv / "bin" / "python")),
                "json",
            ),
        ]
    )


def build_ml_venv(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    project = request.project_name
    root = Path(variables["project_dir"])
    venv = root / ".venv"

    return sequence(
        [
            _scaffold(str(root), ["data", "src/models", "src/utils", "notebooks", "tests"]),
            _write("readme", "Write README", str(root / "README.md"), content.venv_readme(project)),
            step(
                "venv",
                "Create virtual environment",
                "python_env",
                "create_venv",
                {"path": str(venv)},
            ),
            _write(
                "requirements",
                "Write requirements.txt",
                str(root / "requirements.txt"),
                content.ml_requirements(),
            ),
            step(
                "install_requirements",
                "Install requirements",
                "python_env",
                "pip_install_requirements",
                {"venv": str(venv), "requirements": str(root / "requirements.txt")},
                estimated_duration=600.0,
            ),
            _write("gitignore", "Write .gitignore", str(root / ".gitignore"), content.gitignore()),
            _write(
                "vscode_settings",
                "Write VS Code settings",
                str(root / ".vscode" / "settings.json"),
                content.editor_settings(str(venv / "bin" / "python")),
                "json",
            ),
            _write(
                "data_loader",
                "Write sample data loader",
                str(root / "src" / "utils" / "data_loader.py"),
                content.data_loader_module(project),
            ),
            _write(
                "data_loader_test",
                "Write sample test",
                str(root / "tests" / "test_data_loader.py"),
                content.DATA_LOADER_TEST,
            ),
            _write(
                "notebook",
                "Write exploration notebook",
                str(root / "notebooks" / "01-data-exploration.ipynb"),
                content.exploration_notebook(project),
                "json",
            ),
            step(
                "kernel",
                "Register Jupyter kernel",
                "python_env",
                "register_kernel",
                {"name": project, "venv": str(venv)},
            ),
        ]
    )


def build_ml_conda(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    project = request.project_name
    root = Path(variables["project_dir"])
    conda = conda_executable(settings)
    interpreter = (
        Path(settings.paths.miniconda_dir).expanduser() / "envs" / project / "bin" / "python"
    )

    return sequence(
        [
            _scaffold(str(root), ["data", "src/models", "src/utils", "notebooks", "tests"]),
            _write("readme", "Write README", str(root / "README.md"), content.conda_readme(project)),
            _write(
                "environment_file",
                "Write environment.yml",
                str(root / "environment.yml"),
                content.conda_environment(project),
                "yaml",
            ),
            step(
                "conda_env",
                "Create Conda environment",
                "python_env",
                "create_conda_env",
                {"file": str(root / "environment.yml"), "conda": conda},
                estimated_duration=900.0,
            ),
            _write(
                "gitignore",
                "Write .gitignore",
                str(root / ".gitignore"),
                content.gitignore(virtualenv=False),
            ),
            _write(
                "vscode_settings",
                "Write VS Code settings",
                str(root / ".vscode" / "settings.json"),
                content.editor_settings(str(interpreter)),
                "json",
            ),
            step(
                "kernel",
                "Register Jupyter kernel",
                "python_env",
                "register_kernel",
                {"name": project, "conda_env": project, "conda": conda},
            ),
        ]
    )


def build_editor_extensions(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    extensions = request.option("extensions") or list(content.EDITOR_EXTENSIONS)
    return sequence(
        [
            step(
                "code_cli",
                "Check VS Code CLI",
                "packages",
                "command_exists",
                {"command": "code", "require": True},
            ),
            step(
                "extensions",
                "Install editor extensions",
                "editor",
                "install_extension",
                {"extensions": extensions},
                estimated_duration=10.0 * len(extensions),
            ),
            step("installed", "List installed extensions", "editor", "list_extensions"),
        ]
    )


TEMPLATES = [
    WorkflowTemplate(
        id="vscode-python",
        name="VS Code Python settings",
        description="Write .vscode/settings.json and launch.json into an existing directory",
        category="local",
        build=build_vscode_python,
        requires_project=False,
        required_options=["directory"],
    ),
    WorkflowTemplate(
        id="ubuntu-env",
        name="Ubuntu development environment",
        description="Install dev tools, Python, Node.js and the Azure CLI; create the MLOps venv",
        category="local",
        build=build_ubuntu_env,
        requires_project=False,
        confirmations=["install_docker"],
    ),
    WorkflowTemplate(
        id="python-setup",
        name="Python tooling",
        description="Install Python, build tools, pipx and black/isort/flake8/mypy/pytest",
        category="local",
        build=build_python_setup,
        requires_project=False,
    ),
    WorkflowTemplate(
        id="install-conda",
        name="Install Miniconda",
        description="Install Miniconda into ~/miniconda and initialise it for bash",
        category="local",
        build=build_install_conda,
        requires_project=False,
    ),
    WorkflowTemplate(
        id="ml-project",
        name="ML project",
        description="Scaffold an ML project with a venv, requirements, git and VS Code settings",
        category="local",
        build=build_ml_project,
    ),
    WorkflowTemplate(
        id="ml-venv",
        name="ML project (venv)",
        description="Scaffold an ML project with a venv, ML requirements, samples and a kernel",
        category="local",
        build=build_ml_venv,
    ),
    WorkflowTemplate(
        id="ml-conda",
        name="ML project (Conda)",
        description="Scaffold an ML project with a Conda environment and a kernel",
        category="local",
        build=build_ml_conda,
    ),
    WorkflowTemplate(
        id="editor-extensions",
        name="Editor extensions",
        description="Install the Python, Jupyter and Azure VS Code extensions",
        category="editor",
        build=build_editor_extensions,
        requires_project=False,
    ),
]
