"""
Shared helpers: per-user application directories and Azure resource naming.
"""

from .directories import get_secure_app_directory
from .naming import ResourceNames, dated_name

__all__ = ["ResourceNames", "dated_name", "get_secure_app_directory"]
