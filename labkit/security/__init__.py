"""
Secret handling helpers.
"""

from .masking import MASK, is_sensitive_key, mask_command, mask_sensitive

__all__ = ["MASK", "is_sensitive_key", "mask_command", "mask_sensitive"]
