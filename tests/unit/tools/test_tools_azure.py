"""
Tests for Azure CLI tool implementation.
"""

import json
from unittest.mock import call, patch

import pytest

from labkit.tools.azure import AzureCliTool
from labkit.tools.base import ToolError, ToolExecutionError


class TestAzureCliTool:
    """Test Azure CLI tool functionality."""

    @pytest.fixture
    def azure_tool(self, azure_config):
        """Create Azure CLI tool instance with az on PATH."""
        tool = AzureCliTool(azure_config)
        tool._client = {"executable": "az", "path": "/usr/bin/az", "available": True}
        return tool

    @pytest.mark.asyncio
    async def test_get_schema(self, azure_tool):
        """Test getting tool schema."""
        schema = await azure_tool.get_schema()

        assert schema.name == "azure"
        assert "create_group" in schema.actions
        assert "create_ml_workspace" in schema.actions
        assert "check_permission" in schema.actions
        assert "az" in schema.dependencies

    @pytest.mark.asyncio
    async def test_supported_actions_match_schema(self, azure_tool):
        schema = await azure_tool.get_schema()

        assert set(await azure_tool._get_supported_actions()) == set(schema.actions)

    @pytest.mark.asyncio
    async def test_validate_create_group_params(self, azure_tool):
        """Test validation lower-cases the location."""
        validator = await azure_tool._create_validator()

        result = validator.validate("create_group", {"name": "demo-rg", "location": "EastUS"})

        assert result.valid is True
        assert result.normalized_params["location"] == "eastus"

    @pytest.mark.asyncio
    async def test_validate_invalid_location(self, azure_tool):
        validator = await azure_tool._create_validator()

        result = validator.validate(
            "create_group", {"name": "demo-rg", "location": "east us"}
        )

        assert result.valid is False
        assert "Invalid Azure location" in result.errors[0]

    @pytest.mark.asyncio
    async def test_validate_storage_account_name(self, azure_tool):
        validator = await azure_tool._create_validator()

        result = validator.validate(
            "create_storage_account",
            {"name": "Demo-Storage", "resource_group": "demo-rg", "location": "eastus"},
        )

        assert result.valid is False
        assert "3-24 lowercase" in result.errors[0]

    @pytest.mark.asyncio
    async def test_validate_permission_probe(self, azure_tool):
        validator = await azure_tool._create_validator()

        assert validator.validate("check_permission", {"probe": "list_vms"}).valid
        assert not validator.validate("check_permission", {"probe": "nuke"}).valid
        assert not validator.validate(
            "check_permission", {"probe": "create_group"}
        ).valid

    @pytest.mark.asyncio
    async def test_validate_delete_group_no_wait_warns(self, azure_tool):
        validator = await azure_tool._create_validator()

        result = validator.validate("delete_group", {"name": "demo-rg", "no_wait": True})

        assert result.valid is True
        assert "background" in result.warnings[0]

    @pytest.mark.asyncio
    async def test_az_not_installed(self, azure_tool):
        azure_tool._client = {"executable": "az", "path": None, "available": False}

        with patch("labkit.tools.base.shutil.which", return_value=None):
            with pytest.raises(ToolError, match="not installed"):
                await azure_tool._execute_action("show_account", {})

    @pytest.mark.asyncio
    async def test_check_login(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='[{"id": "sub"}]')

            result = await azure_tool._execute_action("check_login", {})

            assert result == {"logged_in": True}
            mock_run.assert_called_once_with(
                ["az", "account", "list", "--output", "json"]
            )

    @pytest.mark.asyncio
    async def test_check_login_empty_account_list(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="[]")

            result = await azure_tool._execute_action("check_login", {})

            assert result == {"logged_in": False}

    @pytest.mark.asyncio
    async def test_ensure_login_skips_when_logged_in(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='[{"id": "sub"}]')

            result = await azure_tool._execute_action("ensure_login", {})

            assert result["performed_login"] is False
            assert mock_run.call_count == 1

    @pytest.mark.asyncio
    async def test_ensure_login_runs_interactive_login(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.side_effect = [command_result(returncode=1), command_result()]

            result = await azure_tool._execute_action("ensure_login", {})

            assert result["performed_login"] is True
            assert mock_run.call_args_list[1] == call(
                ["az", "login"],
                input_text=None,
                interactive=True,
                cwd=None,
                env=None,
            )

    @pytest.mark.asyncio
    async def test_show_account(self, azure_tool, command_result):
        account = {
            "id": "sub-id",
            "name": "Pay-As-You-Go",
            "tenantId": "tenant-id",
            "user": {"name": "dev@example.com"},
        }
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout=json.dumps(account))

            result = await azure_tool._execute_action("show_account", {})

            assert result == {
                "subscription_id": "sub-id",
                "subscription_name": "Pay-As-You-Go",
                "tenant_id": "tenant-id",
                "user": "dev@example.com",
            }
            assert mock_run.call_args.args[0] == [
                "az",
                "account",
                "show",
                "--output",
                "json",
            ]

    @pytest.mark.asyncio
    async def test_create_group(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='{"id": "/subscriptions/x"}')

            result = await azure_tool._execute_action(
                "create_group", {"name": "demo-rg", "location": "eastus"}
            )

            assert result["id"] == "/subscriptions/x"
            assert mock_run.call_args.args[0] == [
                "az",
                "group",
                "create",
                "--name",
                "demo-rg",
                "--location",
                "eastus",
                "--output",
                "json",
            ]

    @pytest.mark.asyncio
    async def test_delete_group_no_wait(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result()

            result = await azure_tool._execute_action(
                "delete_group", {"name": "demo-rg", "no_wait": True}
            )

            assert result["deleted"] is True
            assert mock_run.call_args.args[0] == [
                "az",
                "group",
                "delete",
                "--name",
                "demo-rg",
                "--yes",
                "--no-wait",
            ]

    @pytest.mark.asyncio
    async def test_get_storage_key(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="c2VjcmV0\n")

            result = await azure_tool._execute_action(
                "get_storage_key",
                {"account_name": "demostorage", "resource_group": "demo-rg"},
            )

            assert result["key"] == "c2VjcmV0"
            cmd = mock_run.call_args.args[0]
            assert cmd[-4:] == ["--query", "[0].value", "--output", "tsv"]

    @pytest.mark.asyncio
    async def test_get_storage_key_empty(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="")

            with pytest.raises(ToolExecutionError, match="No access key"):
                await azure_tool._execute_action(
                    "get_storage_key",
                    {"account_name": "demostorage", "resource_group": "demo-rg"},
                )

    @pytest.mark.asyncio
    async def test_create_ml_workspace(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout='{"id": "ws-id"}')

            result = await azure_tool._execute_action(
                "create_ml_workspace",
                {
                    "name": "demo-ml",
                    "resource_group": "demo-rg",
                    "location": "eastus",
                    "storage_account": "demostorage",
                    "key_vault": "demo-kv",
                    "app_insights": "demo-appinsights",
                },
            )

            assert result == {"name": "demo-ml", "id": "ws-id"}
            cmd = mock_run.call_args.args[0]
            assert cmd[:4] == ["az", "ml", "workspace", "create"]
            assert "--application-insights" in cmd

    @pytest.mark.asyncio
    async def test_create_service_principal(self, azure_tool, command_result):
        credentials = {
            "appId": "app-id",
            "displayName": "mlops-automation-20240101",
            "password": "pw",
            "tenant": "tenant-id",
        }
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout=json.dumps(credentials))

            result = await azure_tool._execute_action(
                "create_service_principal",
                {"name": "mlops-automation-20240101", "scopes": "/subscriptions/x"},
            )

            assert result["app_id"] == "app-id"
            assert result["password"] == "pw"
            cmd = mock_run.call_args.args[0]
            assert cmd[:4] == ["az", "ad", "sp", "create-for-rbac"]
            assert cmd[cmd.index("--role") + 1] == "Contributor"
            assert cmd[cmd.index("--scopes") + 1] == "/subscriptions/x"

    @pytest.mark.asyncio
    async def test_create_service_principal_without_app_id(
        self, azure_tool, command_result
    ):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="{}")

            with pytest.raises(ToolExecutionError, match="was not returned"):
                await azure_tool._execute_action(
                    "create_service_principal", {"name": "sp"}
                )

    @pytest.mark.asyncio
    async def test_show_resource_not_found(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=3, stderr="not found")

            with pytest.raises(ToolExecutionError, match="Resource not found"):
                await azure_tool._execute_action(
                    "show_resource",
                    {
                        "resource_group": "demo-rg",
                        "name": "demostorage",
                        "resource_type": "Microsoft.Storage/storageAccounts",
                    },
                )

    @pytest.mark.asyncio
    async def test_check_permission_denied_is_a_result(self, azure_tool, command_result):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=1, stderr="AuthorizationFailed")

            result = await azure_tool._execute_action(
                "check_permission", {"probe": "list_vms"}
            )

            assert result == {
                "probe": "list_vms",
                "allowed": False,
                "detail": "AuthorizationFailed",
            }

    @pytest.mark.asyncio
    async def test_check_permission_create_group_cleans_up(
        self, azure_tool, command_result
    ):
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(stdout="{}")

            result = await azure_tool._execute_action(
                "check_permission",
                {"probe": "create_group", "resource_group": "labkit-permtest"},
            )

            assert result["allowed"] is True
            assert mock_run.call_count == 2
            delete_cmd = mock_run.call_args_list[1].args[0]
            assert delete_cmd[:3] == ["az", "group", "delete"]
            assert "--no-wait" in delete_cmd

    @pytest.mark.asyncio
    async def test_execute_reports_failure(self, azure_tool, command_result):
        """A failing az call becomes an unsuccessful ToolResult."""
        with patch.object(azure_tool, "_run_command") as mock_run:
            mock_run.return_value = command_result(returncode=1, stderr="quota exceeded")

            result = await azure_tool.execute(
                "create_group", {"name": "demo-rg", "location": "eastus"}
            )

            assert result.success is False
            assert "quota exceeded" in result.error
