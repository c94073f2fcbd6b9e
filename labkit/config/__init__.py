"""
Configuration management for labkit.

Settings are read from ``LABKIT_*`` environment variables and an optional
``.env`` file, with the standard ``AZURE_*`` variables honoured for
credentials.
"""

from .settings import AppSettings, get_settings, reload_settings

__all__ = ["get_settings", "reload_settings", "AppSettings"]
