"""
Tests for Azure DevOps tool implementation.
"""

import json
from unittest.mock import patch

import pytest

from labkit.tools.base import ToolExecutionError
from labkit.tools.devops import (
    SERVICE_PRINCIPAL_KEY_ENV,
    AzureDevOpsTool,
    parse_configured_defaults,
)


def test_parse_configured_defaults():
    output = """
[defaults]
organization = https://dev.azure.com/contoso
project =
"""
    assert parse_configured_defaults(output) == {
        "organization": "https://dev.azure.com/contoso"
    }


class TestAzureDevOpsTool:
    """Test Azure DevOps tool functionality."""

    @pytest.fixture
    def devops_tool(self, devops_config):
        tool = AzureDevOpsTool(devops_config)
        tool._client = {"executable": "az", "path": "/usr/bin/az", "available": True}
        return tool

    @pytest.mark.asyncio
    async def test_get_schema(self, devops_tool):
        schema = await devops_tool.get_schema()

        assert schema.name == "devops"
        assert set(await devops_tool._get_supported_actions()) == set(schema.actions)

    @pytest.mark.asyncio
    async def test_validate_configure_defaults(self, devops_tool):
        validator = await devops_tool._create_validator()

        assert not validator.validate("configure_defaults", {}).valid
        assert not validator.validate(
            "configure_defaults", {"organization": "contoso"}
        ).valid
        assert validator.validate("configure_defaults", {"project": "demo"}).valid

    @pytest.mark.asyncio
    async def test_validate_work_item_id_coerced(self, devops_tool):
        validator = await devops_tool._create_validator()

        result = validator.validate(
            "update_work_item", {"work_item_id": "42", "url": "https://x"}
        )
        assert result.valid is True
        assert result.normalized_params["work_item_id"] == 42

        result = validator.validate(
            "update_work_item", {"work_item_id": "abc", "url": "https://x"}
        )
        assert result.valid is False

    @pytest.mark.asyncio
    async def test_get_organization_required_but_missing(
        self, devops_tool, command_result
    ):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="[defaults]\n")

            with pytest.raises(ToolExecutionError, match="not configured"):
                await devops_tool._execute_action(
                    "get_organization", {"required": True}
                )

    @pytest.mark.asyncio
    async def test_get_organization(self, devops_tool, command_result):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(
                stdout="organization = https://dev.azure.com/contoso\nproject = demo\n"
            )

            result = await devops_tool._execute_action("get_organization", {})

            assert result == {
                "organization": "https://dev.azure.com/contoso",
                "project": "demo",
                "configured": True,
            }

    @pytest.mark.asyncio
    async def test_repo_exists(self, devops_tool, command_result):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=1)

            result = await devops_tool._execute_action(
                "repo_exists", {"repository": "infrastructure"}
            )

            assert result == {"repository": "infrastructure", "exists": False}

    @pytest.mark.asyncio
    async def test_create_pipeline(self, devops_tool, command_result):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='{"id": 7}')

            result = await devops_tool._execute_action(
                "create_pipeline",
                {
                    "name": "Azure Deployment",
                    "repository": "infrastructure",
                    "yml_path": "azure-deploy-pipeline.yml",
                    "organization": "https://dev.azure.com/contoso",
                },
            )

            assert result == {"name": "Azure Deployment", "id": 7}
            cmd = mock_run.call_args.args[0]
            assert cmd[:3] == ["az", "pipelines", "create"]
            assert cmd[cmd.index("--branch") + 1] == "main"
            assert cmd[cmd.index("--organization") + 1] == (
                "https://dev.azure.com/contoso"
            )

    @pytest.mark.asyncio
    async def test_create_service_endpoint_passes_key_in_env(
        self, devops_tool, command_result
    ):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='{"id": "ep-1"}')

            await devops_tool._execute_action(
                "create_service_endpoint",
                {
                    "name": "Azure Connection",
                    "service_principal_id": "app-id",
                    "service_principal_key": "sp-secret",
                    "subscription_id": "sub-id",
                    "subscription_name": "Pay-As-You-Go",
                    "tenant_id": "tenant-id",
                },
            )

            cmd = mock_run.call_args.args[0]
            assert "sp-secret" not in cmd
            assert mock_run.call_args.kwargs["env"] == {
                SERVICE_PRINCIPAL_KEY_ENV: "sp-secret"
            }

    @pytest.mark.asyncio
    async def test_find_service_endpoint_missing(self, devops_tool, command_result):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="\n")

            with pytest.raises(ToolExecutionError, match="not found"):
                await devops_tool._execute_action(
                    "find_service_endpoint", {"name": "Azure Connection"}
                )

    @pytest.mark.asyncio
    async def test_update_work_item_uses_invoke(self, devops_tool, command_result):
        bodies = []

        async def fake_run(cmd, **kwargs):
            with open(cmd[cmd.index("--in-file") + 1], encoding="utf-8") as f:
                bodies.append(json.load(f))
            return command_result(stdout='{"rev": 3}')

        with patch.object(devops_tool, "_run_command", side_effect=fake_run) as mock_run:
            result = await devops_tool._execute_action(
                "update_work_item",
                {"work_item_id": 42, "url": "https://portal/x", "comment": "rg"},
            )

            cmd = mock_run.call_args.args[0]
            assert cmd[:3] == ["az", "devops", "invoke"]
            assert "id=42" in cmd
            assert cmd[cmd.index("--media-type") + 1] == "application/json-patch+json"

        assert result["revision"] == 3
        assert bodies[0][0]["value"] == {
            "rel": "Hyperlink",
            "url": "https://portal/x",
            "attributes": {"comment": "rg"},
        }

    @pytest.mark.asyncio
    async def test_delete_project(self, devops_tool, command_result):
        with patch.object(devops_tool, "_run_command") as mock_run:
            mock_run.side_effect = [command_result(stdout="proj-id\n"), command_result()]

            result = await devops_tool._execute_action(
                "delete_project", {"project": "demo"}
            )

            assert result == {"project": "demo", "id": "proj-id", "deleted": True}
            assert mock_run.call_args_list[1].args[0] == [
                "az",
                "devops",
                "project",
                "delete",
                "--id",
                "proj-id",
                "--yes",
            ]
