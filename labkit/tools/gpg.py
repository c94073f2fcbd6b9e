"""
GnuPG tool.

Key discovery and generation plus agent configuration, the prerequisites for
initialising a ``pass`` store.
"""

import getpass
import os
import secrets
import string
import tempfile
from pathlib import Path
from typing import Any, Dict, List

from .base import (
    CommandTool,
    ParameterValidator,
    ToolError,
    ToolExecutionError,
    ToolSchema,
)

PASSPHRASE_ALPHABET = string.ascii_letters + string.digits


def generate_passphrase(length: int = 32) -> str:
    """Return a random alphanumeric passphrase."""
    return "".join(secrets.choice(PASSPHRASE_ALPHABET) for _ in range(length))


def build_batch_key_spec(
    name_real: str, name_email: str, passphrase: str, key_length: int = 4096
) -> str:
    """Build a ``gpg --batch --generate-key`` parameter file."""
    return "\n".join(
        [
            "%echo Generating a GPG key",
            "Key-Type: RSA",
            f"Key-Length: {key_length}",
            "Subkey-Type: RSA",
            f"Subkey-Length: {key_length}",
            f"Name-Real: {name_real}",
            f"Name-Email: {name_email}",
            "Expire-Date: 0",
            f"Passphrase: {passphrase}",
            "%commit",
            "%echo Done",
            "",
        ]
    )


def parse_secret_key_ids(colon_output: str) -> List[str]:
    """Extract long key ids from ``gpg --with-colons`` secret key listings."""
    key_ids = []
    for line in colon_output.splitlines():
        fields = line.split(":")
        if fields[0] == "sec" and len(fields) > 4 and fields[4]:
            key_ids.append(fields[4])
    return key_ids


class GpgTool(CommandTool):
    """
    GnuPG tool.

    Provides functionality for:
    - Detecting existing secret keys and reading their ids
    - Unattended (batch) or interactive key generation
    - Writing ``gpg-agent.conf`` and restarting the agent
    """

    executable = "gpg"

    async def get_schema(self) -> ToolSchema:
        """Return the GnuPG tool schema."""
        return ToolSchema(
            name="gpg",
            description="GnuPG key management tool",
            version=self.config.version,
            actions={
                "has_secret_key": {"description": "Check for any secret key"},
                "get_key_id": {"description": "Return the first secret key id"},
                "generate_key": {
                    "description": "Generate an RSA key",
                    "parameters": {
                        "mode": {"type": "string", "enum": ["batch", "interactive"]},
                        "name_real": {"type": "string"},
                        "name_email": {"type": "string"},
                        "passphrase": {"type": "string"},
                        "key_length": {"type": "integer", "default": 4096},
                    },
                },
                "configure_agent": {
                    "description": "Write gpg-agent.conf",
                    "parameters": {
                        "pinentry_program": {"type": "string", "required": True},
                        "default_cache_ttl": {"type": "integer", "default": 3600},
                        "max_cache_ttl": {"type": "integer", "default": 7200},
                        "gnupg_home": {"type": "string", "default": "~/.gnupg"},
                    },
                },
                "restart_agent": {"description": "Kill the running gpg-agent"},
            },
            required_permissions=[],
            dependencies=["gpg", "gpgconf"],
        )

    async def _create_validator(self) -> Any:
        """Create parameter validator."""

        class GpgValidator(ParameterValidator):
            required = {"configure_agent": ["pinentry_program"]}

            def check(self, action, params, errors, warnings):
                if action == "generate_key":
                    mode = params.setdefault("mode", "batch")
                    if mode not in ("batch", "interactive"):
                        errors.append(f"Invalid key generation mode: {mode}")
                    key_length = params.get("key_length", 4096)
                    if int(key_length) < 2048:
                        errors.append("key_length must be at least 2048")
                    if mode == "batch" and not params.get("passphrase"):
                        warnings.append(
                            "A random passphrase will be generated; "
                            "store it somewhere safe"
                        )

                if action == "configure_agent":
                    for ttl in ("default_cache_ttl", "max_cache_ttl"):
                        if int(params.get(ttl, 1)) <= 0:
                            errors.append(f"{ttl} must be positive")

        return GpgValidator()

    async def _execute_action(
        self, action: str, params: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Execute GnuPG action."""
        if action == "configure_agent":
            return await self._configure_agent(params)

        if not self.available:
            raise ToolError("gpg is not installed")

        if action == "has_secret_key":
            return await self._has_secret_key(params)
        elif action == "get_key_id":
            return await self._get_key_id(params)
        elif action == "generate_key":
            return await self._generate_key(params)
        elif action == "restart_agent":
            return await self._restart_agent(params)
        else:
            raise ToolError(f"Unknown action: {action}")

    async def _get_supported_actions(self) -> List[str]:
        """Get supported GnuPG actions."""
        return [
            "has_secret_key",
            "get_key_id",
            "generate_key",
            "configure_agent",
            "restart_agent",
        ]

    async def _list_secret_keys(self) -> List[str]:
        result = await self._run_command(
            ["gpg", "--list-secret-keys", "--keyid-format", "LONG", "--with-colons"]
        )
        if not result.ok:
            return []
        return parse_secret_key_ids(result.stdout)

    async def _has_secret_key(self, params: Dict[str, Any]) -> Dict[str, Any]:
        key_ids = await self._list_secret_keys()
        return {"has_key": bool(key_ids), "count": len(key_ids)}

    async def _get_key_id(self, params: Dict[str, Any]) -> Dict[str, Any]:
        key_ids = await self._list_secret_keys()
        if not key_ids:
            raise ToolExecutionError(
                "Could not determine GPG key ID. Please initialize pass manually "
                'with: pass init "YOUR_GPG_KEY_ID"'
            )
        return {"key_id": key_ids[0]}

    async def _generate_key(self, params: Dict[str, Any]) -> Dict[str, Any]:
        if params.get("mode", "batch") == "interactive":
            await self._run_checked(["gpg", "--full-generate-key"], interactive=True)
            return {"mode": "interactive", "generated": True}

        user = getpass.getuser()
        name_real = params.get("name_real") or user
        name_email = params.get("name_email") or f"{user}@example.com"
        passphrase = params.get("passphrase") or generate_passphrase()
        spec = build_batch_key_spec(
            name_real, name_email, passphrase, int(params.get("key_length", 4096))
        )

        fd, path = tempfile.mkstemp(prefix="labkit-gpg-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(spec)
            await self._run_checked(["gpg", "--batch", "--generate-key", path])
        finally:
            os.unlink(path)

        return {
            "mode": "batch",
            "generated": True,
            "name_real": name_real,
            "name_email": name_email,
            "passphrase": passphrase,
        }

    async def _configure_agent(self, params: Dict[str, Any]) -> Dict[str, Any]:
        home = Path(os.path.expanduser(params.get("gnupg_home", "~/.gnupg")))
        home.mkdir(parents=True, exist_ok=True)
        home.chmod(0o700)

        conf = home / "gpg-agent.conf"
        conf.write_text(
            f"pinentry-program {params['pinentry_program']}\n"
            f"default-cache-ttl {params.get('default_cache_ttl', 3600)}\n"
            f"max-cache-ttl {params.get('max_cache_ttl', 7200)}\n",
            encoding="utf-8",
        )
        conf.chmod(0o600)

        return {"path": str(conf), "pinentry_program": params["pinentry_program"]}

    async def _restart_agent(self, params: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._run_command(["gpgconf", "--kill", "gpg-agent"])
        return {"restarted": result.ok}
