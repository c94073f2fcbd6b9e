"""
Tests for the GnuPG tool.
"""

from unittest.mock import patch

import pytest

from labkit.tools.base import ToolExecutionError
from labkit.tools.gpg import (
    GpgTool,
    build_batch_key_spec,
    generate_passphrase,
    parse_secret_key_ids,
)

COLON_LISTING = """sec:u:4096:1:3AA5C34371567BD2:1700000000:::u:::scESC:::+:::23::0:
fpr:::::::::7E1B1C2A3AA5C34371567BD2:
uid:u::::1700000000::ABC::dev <dev@example.com>::::::::::0:
"""


class TestHelpers:
    def test_generate_passphrase(self):
        passphrase = generate_passphrase()

        assert len(passphrase) == 32
        assert passphrase.isalnum()
        assert generate_passphrase() != passphrase

    def test_build_batch_key_spec(self):
        spec = build_batch_key_spec("dev", "dev@example.com", "pw", key_length=4096)

        assert "Key-Length: 4096" in spec
        assert "Name-Email: dev@example.com" in spec
        assert "Passphrase: pw" in spec
        assert spec.rstrip().endswith("%echo Done")

    def test_parse_secret_key_ids(self):
        assert parse_secret_key_ids(COLON_LISTING) == ["3AA5C34371567BD2"]
        assert parse_secret_key_ids("") == []


class TestGpgTool:
    """Test GnuPG tool functionality."""

    @pytest.fixture
    def gpg_tool(self, gpg_config):
        tool = GpgTool(gpg_config)
        tool._client = {"executable": "gpg", "path": "/usr/bin/gpg", "available": True}
        return tool

    @pytest.mark.asyncio
    async def test_validate_generate_key_defaults_to_batch(self, gpg_tool):
        validator = await gpg_tool._create_validator()

        result = validator.validate("generate_key", {})

        assert result.valid is True
        assert result.normalized_params["mode"] == "batch"
        assert "random passphrase" in result.warnings[0]

    @pytest.mark.asyncio
    async def test_validate_key_length(self, gpg_tool):
        validator = await gpg_tool._create_validator()

        assert not validator.validate("generate_key", {"key_length": 1024}).valid

    @pytest.mark.asyncio
    async def test_has_secret_key(self, gpg_tool, command_result):
        with patch.object(gpg_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout=COLON_LISTING)

            result = await gpg_tool._execute_action("has_secret_key", {})

            assert result == {"has_key": True, "count": 1}

    @pytest.mark.asyncio
    async def test_get_key_id_without_keys(self, gpg_tool, command_result):
        with patch.object(gpg_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=2)

            with pytest.raises(ToolExecutionError, match="pass init"):
                await gpg_tool._execute_action("get_key_id", {})

    @pytest.mark.asyncio
    async def test_generate_key_batch(self, gpg_tool, command_result):
        specs = []

        async def fake_run(cmd, **kwargs):
            with open(cmd[-1], encoding="utf-8") as f:
                specs.append(f.read())
            return command_result()

        with patch.object(gpg_tool, "_run_command", side_effect=fake_run) as mock_run:
            result = await gpg_tool._execute_action(
                "generate_key",
                {"mode": "batch", "name_real": "dev", "name_email": "dev@example.com"},
            )

            assert mock_run.call_args.args[0][:3] == ["gpg", "--batch", "--generate-key"]

        assert result["generated"] is True
        assert len(result["passphrase"]) == 32
        assert f"Passphrase: {result['passphrase']}" in specs[0]

    @pytest.mark.asyncio
    async def test_generate_key_interactive(self, gpg_tool, command_result):
        with patch.object(gpg_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            result = await gpg_tool._execute_action(
                "generate_key", {"mode": "interactive"}
            )

            assert result == {"mode": "interactive", "generated": True}
            assert mock_run.call_args.kwargs["interactive"] is True

    @pytest.mark.asyncio
    async def test_configure_agent(self, gpg_tool, temp_dir):
        home = temp_dir / ".gnupg"

        result = await gpg_tool._execute_action(
            "configure_agent",
            {"pinentry_program": "/opt/homebrew/bin/pinentry-mac", "gnupg_home": str(home)},
        )

        conf = home / "gpg-agent.conf"
        assert result["path"] == str(conf)
        assert conf.read_text() == (
            "pinentry-program /opt/homebrew/bin/pinentry-mac\n"
            "default-cache-ttl 3600\n"
            "max-cache-ttl 7200\n"
        )

    @pytest.mark.asyncio
    async def test_restart_agent(self, gpg_tool, command_result):
        with patch.object(gpg_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            result = await gpg_tool._execute_action("restart_agent", {})

            assert result == {"restarted": True}
            mock_run.assert_called_once_with(["gpgconf", "--kill", "gpg-agent"])
