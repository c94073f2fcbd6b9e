"""
Per-user application directories.

Logs and event files live under the platform's user data directory so that
workflow runs never write diagnostics into the project being scaffolded.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional


def get_secure_app_directory(
    app_name: str = "labkit",
    subdirectory: Optional[str] = None,
) -> Path:
    """
    Return a writable per-user directory for the application.

    - Windows: ``%LOCALAPPDATA%/<app_name>``
    - Unix/macOS: ``$XDG_DATA_HOME/<app_name>`` or ``~/.local/share/<app_name>``
    - Fallback: a fresh temporary directory with 0o700 permissions

    Args:
        app_name: Name of the application
        subdirectory: Optional subdirectory within the app directory

    Returns:
        Path: Writable directory path
    """
    base_dir = _platform_data_directory(app_name)
    app_dir = base_dir / subdirectory if subdirectory else base_dir

    try:
        app_dir.mkdir(parents=True, exist_ok=True)
        _check_writable(app_dir)
        return app_dir
    except OSError:
        return _create_private_temp_directory(f"{app_name}_", f"_{subdirectory or 'data'}")


def _platform_data_directory(app_name: str) -> Path:
    if os.name == "nt":
        local_app_data = os.environ.get("LOCALAPPDATA")
        if local_app_data:
            return Path(local_app_data) / app_name
        return Path(tempfile.gettempdir()) / app_name

    xdg_data_home = os.environ.get("XDG_DATA_HOME")
    if xdg_data_home:
        return Path(xdg_data_home) / app_name
    return Path.home() / ".local" / "share" / app_name


def _check_writable(directory: Path) -> None:
    """Raise OSError if files cannot be created in ``directory``."""
    probe = directory / ".write_test"
    probe.touch()
    probe.unlink()


def _create_private_temp_directory(prefix: str, suffix: str) -> Path:
    temp_dir = Path(tempfile.mkdtemp(prefix=prefix, suffix=suffix))
    os.chmod(temp_dir, 0o700)
    return temp_dir
