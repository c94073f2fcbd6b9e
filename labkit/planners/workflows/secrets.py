"""
Password store workflows: ``pass``/GnuPG setup on Linux and macOS, and the
ML project API key store.
"""

from pathlib import Path
from typing import Dict, List

from ...config import AppSettings
from ...models import WorkflowRequest
from ..base import WorkflowError
from .common import StepTemplate, WorkflowTemplate, sequence, step

HOMEBREW_INSTALLER_URL = "https://raw.githubusercontent.com/Homebrew/install/HEAD/install.sh"
BROWSERPASS_SETUP = "/opt/homebrew/opt/browserpass/bin/browserpass-setup"
API_KEY_ACTIONS = ["add", "get", "list"]


def _store_init_steps() -> List[StepTemplate]:
    """Read the key id, initialise the store if needed, enable git history."""
    return [
        step("key_id", "Read GPG key id", "gpg", "get_key_id"),
        step("store", "Check password store", "passwordstore", "store_initialized"),
        step(
            "store_init",
            "Initialise password store",
            "passwordstore",
            "init",
            {"gpg_id": "${key_id.key_id}"},
            skip_if="${store.initialized}",
        ),
        step("store_git", "Set up git for the password store", "passwordstore", "git_init"),
    ]


def build_pass_setup(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    installed = "${pass_cmd.exists}"
    steps = [
        step("pass_cmd", "Check for pass", "packages", "command_exists", {"command": "pass"}),
        step("apt_update", "Update package lists", "packages", "apt_update", skip_if=installed),
        step(
            "install_pass",
            "Install pass and gnupg2",
            "packages",
            "apt_install",
            {"packages": ["pass", "gnupg2"]},
            skip_if=installed,
        ),
        step("has_key", "Check for a GPG key", "gpg", "has_secret_key"),
        step(
            "generate_key",
            "Generate GPG key",
            "gpg",
            "generate_key",
            {"mode": "batch", "key_length": settings.secrets.gpg_key_length},
            skip_if="${has_key.has_key}",
            estimated_duration=30.0,
        ),
    ]
    steps.extend(_store_init_steps())
    return sequence(steps)


def build_pass_setup_macos(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    gnupg = Path(settings.paths.gnupg_home).expanduser()
    steps = [
        step("brew_cmd", "Check for Homebrew", "packages", "command_exists", {"command": "brew"}),
        step(
            "install_brew",
            "Install Homebrew",
            "packages",
            "run_installer",
            {"url": HOMEBREW_INSTALLER_URL, "interactive": True},
            skip_if="${brew_cmd.exists}",
            interactive=True,
        ),
        step(
            "brew_packages",
            "Install pass, gnupg and pinentry-mac",
            "packages",
            "brew_install",
            {"packages": ["pass", "gnupg", "pinentry-mac"]},
            estimated_duration=120.0,
        ),
        step(
            "gnupg_home",
            "Create GnuPG home",
            "filesystem",
            "create_directory",
            {"path": str(gnupg), "mode": "700"},
        ),
        step(
            "gnupg_permissions",
            "Restrict GnuPG home permissions",
            "filesystem",
            "set_permissions",
            {"path": str(gnupg), "mode": "700"},
        ),
        step(
            "pinentry",
            "Locate pinentry-mac",
            "packages",
            "command_exists",
            {"command": "pinentry-mac", "require": True},
        ),
        step(
            "agent_conf",
            "Configure gpg-agent",
            "gpg",
            "configure_agent",
            {
                "pinentry_program": "${pinentry.path}",
                "default_cache_ttl": 3600,
                "max_cache_ttl": 7200,
                "gnupg_home": str(gnupg),
            },
        ),
        step(
            "gpg_conf",
            "Silence permission warnings",
            "filesystem",
            "append_file",
            {
                "path": str(gnupg / "gpg.conf"),
                "content": "no-permission-warning",
                "unless_contains": "no-permission-warning",
            },
        ),
        step(
            "gpg_conf_permissions",
            "Restrict gpg.conf permissions",
            "filesystem",
            "set_permissions",
            {"path": str(gnupg / "gpg.conf"), "mode": "600"},
        ),
        step("restart_agent", "Restart gpg-agent", "gpg", "restart_agent"),
        step("has_key", "Check for a GPG key", "gpg", "has_secret_key"),
        step(
            "generate_key",
            "Generate GPG key",
            "gpg",
            "generate_key",
            {"mode": "interactive"},
            skip_if="${has_key.has_key}",
            interactive=True,
            description="Choose RSA and RSA, 4096 bits, and a secure passphrase",
        ),
    ]
    steps.extend(_store_init_steps())

    if request.option("install_gui", False):
        steps.append(
            step(
                "pass_gui",
                "Install Pass for macOS",
                "packages",
                "brew_install",
                {"packages": ["pass-for-macos"], "cask": True},
            )
        )
    if request.option("install_browserpass", False):
        steps.extend(
            [
                step(
                    "browserpass",
                    "Install browserpass",
                    "packages",
                    "brew_install",
                    {"packages": ["browserpass"]},
                ),
                step(
                    "browserpass_setup",
                    "Set up browser integration",
                    "packages",
                    "run_installer",
                    {"path": BROWSERPASS_SETUP},
                    description=(
                        "Then install the extension from "
                        "https://github.com/browserpass/browserpass-extension"
                    ),
                ),
            ]
        )
    return sequence(steps)


def build_api_keys(
    request: WorkflowRequest, settings: AppSettings, variables: Dict[str, str]
) -> List[StepTemplate]:
    action = request.option("action")
    prefix = settings.secrets.api_keys_prefix
    if action not in API_KEY_ACTIONS:
        raise WorkflowError(f"Unknown api-keys action: {action}; use add, get or list")

    if action == "list":
        return [
            step(
                "list_keys",
                "List stored API keys",
                "passwordstore",
                "list",
                {"prefix": prefix},
            )
        ]

    service = request.option("service")
    key_name = request.option("key_name")
    if not service or not key_name:
        raise WorkflowError("Missing service or key name")

    entry = f"{prefix}/{service}/{key_name}"
    if action == "add":
        return [
            step(
                "add_key",
                f"Add API key for {service}/{key_name}",
                "passwordstore",
                "insert",
                {"name": entry, "value": request.option("value")},
                interactive=request.option("value") is None,
            )
        ]
    return [step("get_key", "Retrieve API key", "passwordstore", "show", {"name": entry})]


TEMPLATES = [
    WorkflowTemplate(
        id="pass-setup",
        name="pass setup",
        description="Install pass, generate a GPG key if needed and initialise the store",
        category="secrets",
        build=build_pass_setup,
        requires_project=False,
    ),
    WorkflowTemplate(
        id="pass-setup-macos",
        name="pass setup (macOS)",
        description="Install pass via Homebrew with pinentry-mac and initialise the store",
        category="secrets",
        build=build_pass_setup_macos,
        requires_project=False,
        confirmations=["install_gui", "install_browserpass"],
    ),
    WorkflowTemplate(
        id="api-keys",
        name="API keys",
        description="Add, get or list ML project API keys in the password store",
        category="secrets",
        build=build_api_keys,
        requires_project=False,
        required_options=["action"],
    ),
]
