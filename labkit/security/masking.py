"""
Masking of secret values before they reach logs, dry-run output or the
settings dump.
"""

import copy
from typing import Any, List

MASK = "***MASKED***"

SENSITIVE_MARKERS = [
    "password",
    "passphrase",
    "secret",
    "token",
    "connection_string",
    "connectionstring",
    "storagekey",
    "storage_key",
    "account_key",
    "private_key",
    "credentials",
]

# Command-line flags whose following argument is a secret
SENSITIVE_FLAGS = {
    "--account-key",
    "--password",
    "--value",
    "--azure-rm-service-principal-key",
    "--passphrase",
}


def is_sensitive_key(key: str) -> bool:
    """Return True if a mapping key names a secret value."""
    lowered = key.lower()
    if lowered == "key":
        return True
    return any(marker in lowered for marker in SENSITIVE_MARKERS)


def mask_sensitive(obj: Any) -> Any:
    """Return a deep copy of ``obj`` with sensitive mapping values masked."""
    masked = copy.deepcopy(obj)

    def _mask(node: Any) -> None:
        if isinstance(node, dict):
            for key, value in node.items():
                if isinstance(value, (dict, list)):
                    _mask(value)
                elif isinstance(key, str) and is_sensitive_key(key):
                    if value is not None and str(value).strip():
                        node[key] = MASK
        elif isinstance(node, list):
            for item in node:
                if isinstance(item, (dict, list)):
                    _mask(item)

    _mask(masked)
    return masked


def mask_command(cmd: List[str]) -> List[str]:
    """Mask arguments that follow secret-bearing flags."""
    masked: List[str] = []
    hide_next = False
    for arg in cmd:
        if hide_next:
            masked.append(MASK)
            hide_next = False
            continue
        flag, sep, _ = arg.partition("=")
        if sep and flag in SENSITIVE_FLAGS:
            masked.append(f"{flag}={MASK}")
            continue
        if arg in SENSITIVE_FLAGS:
            hide_next = True
        masked.append(arg)
    return masked
