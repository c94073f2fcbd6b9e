"""
Tests for the configuration system.

Tests cover:
- Default values
- Environment variable loading
- Validation of each settings group
- Masking of secrets in the settings dump
- The settings singleton
"""

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from labkit.config.settings import (
    AppSettings,
    AzureSettings,
    DevOpsSettings,
    ExecutionSettings,
    MonitoringSettings,
    PathSettings,
    SecretsSettings,
    get_settings,
    reload_settings,
)


class TestAzureSettings:
    """Test Azure configuration settings."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = AzureSettings()

        assert settings.default_location == "eastus"
        assert settings.subscription_id is None
        assert settings.client_secret is None
        assert settings.service_principal_role == "Contributor"
        assert settings.ml_extension == "ml"

    def test_standard_azure_variables(self):
        with patch.dict(
            os.environ,
            {
                "AZURE_SUBSCRIPTION_ID": "sub-1",
                "AZURE_TENANT_ID": "tenant-1",
                "AZURE_CLIENT_ID": "app-1",
                "AZURE_CLIENT_SECRET": "s3cret",
            },
            clear=True,
        ):
            settings = AzureSettings()

        assert settings.subscription_id == "sub-1"
        assert settings.tenant_id == "tenant-1"
        assert settings.client_id == "app-1"
        assert settings.client_secret == "s3cret"

    def test_prefixed_variables_win(self):
        with patch.dict(
            os.environ,
            {"LABKIT_AZURE_SUBSCRIPTION_ID": "sub-2", "AZURE_SUBSCRIPTION_ID": "sub-1"},
            clear=True,
        ):
            settings = AzureSettings()

        assert settings.subscription_id == "sub-2"

    def test_location_is_normalised(self):
        with patch.dict(
            os.environ, {"LABKIT_AZURE_DEFAULT_LOCATION": " WestEurope "}, clear=True
        ):
            settings = AzureSettings()

        assert settings.default_location == "westeurope"

    def test_invalid_location(self):
        with pytest.raises(ValidationError):
            AzureSettings(default_location="west europe")


class TestDevOpsSettings:
    """Test Azure DevOps settings."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = DevOpsSettings()

        assert settings.organization is None
        assert settings.repository_name == "infrastructure"
        assert settings.connection_name == "Azure Connection"
        assert settings.dashboard_name == "Azure Resources"

    def test_organization_from_environment(self):
        with patch.dict(
            os.environ,
            {"LABKIT_DEVOPS_ORGANIZATION": "https://dev.azure.com/contoso"},
            clear=True,
        ):
            settings = DevOpsSettings()

        assert settings.organization == "https://dev.azure.com/contoso"

    def test_organization_must_be_url(self):
        with pytest.raises(ValidationError):
            DevOpsSettings(organization="contoso")


class TestPathSettings:
    """Test local path settings."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = PathSettings()

        assert settings.projects_dir == "~/projects"
        assert settings.miniconda_dir == "~/miniconda"
        assert settings.gnupg_home == "~/.gnupg"

    def test_environment_override(self):
        with patch.dict(
            os.environ, {"LABKIT_PATHS_PROJECTS_DIR": "/srv/projects"}, clear=True
        ):
            settings = PathSettings()

        assert settings.projects_dir == "/srv/projects"


class TestSecretsSettings:
    """Test password store settings."""

    def test_prefixes_are_stripped(self):
        settings = SecretsSettings(api_keys_prefix="/ml-projects/")

        assert settings.api_keys_prefix == "ml-projects"

    @pytest.mark.parametrize("prefix", ["", "/", "azure/../etc"])
    def test_invalid_prefix(self, prefix):
        with pytest.raises(ValidationError):
            SecretsSettings(devops_prefix=prefix)

    def test_key_length_minimum(self):
        with pytest.raises(ValidationError):
            SecretsSettings(gpg_key_length=1024)


class TestExecutionSettings:
    """Test executor settings."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = ExecutionSettings()

        assert settings.tool_timeout == 900
        assert settings.retry_count == 0
        assert settings.max_plan_steps == 100
        assert settings.continue_on_failure is False

    def test_environment_override(self):
        with patch.dict(
            os.environ,
            {
                "LABKIT_EXECUTION_TOOL_TIMEOUT": "60",
                "LABKIT_EXECUTION_CONTINUE_ON_FAILURE": "true",
            },
            clear=True,
        ):
            settings = ExecutionSettings()

        assert settings.tool_timeout == 60
        assert settings.continue_on_failure is True

    def test_invalid_values(self):
        with pytest.raises(ValidationError):
            ExecutionSettings(tool_timeout=0)
        with pytest.raises(ValidationError):
            ExecutionSettings(retry_count=-1)


class TestMonitoringSettings:
    """Test logging settings."""

    def test_log_level_is_uppercased(self):
        assert MonitoringSettings(log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValidationError):
            MonitoringSettings(log_level="LOUD")

    def test_invalid_log_format(self):
        with pytest.raises(ValidationError):
            MonitoringSettings(log_format="xml")


class TestAppSettings:
    """Test the top-level settings."""

    def test_default_values(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = AppSettings(_env_file=None)

        assert settings.app_name == "labkit"
        assert settings.environment == "development"
        assert settings.is_testing is False
        assert isinstance(settings.azure, AzureSettings)
        assert isinstance(settings.execution, ExecutionSettings)

    def test_testing_environment(self, app_settings):
        assert app_settings.is_testing is True

    def test_invalid_environment(self):
        with pytest.raises(ValidationError):
            AppSettings(environment="staging", _env_file=None)

    def test_safe_dict_masks_secrets(self, app_settings):
        app_settings.azure.client_secret = "very-secret"

        safe = app_settings.get_safe_dict()

        assert safe["azure"]["client_secret"] == "***MASKED***"
        assert safe["azure"]["default_location"] == "eastus"
        assert app_settings.azure.client_secret == "very-secret"

    def test_safe_dict_keeps_unset_secrets(self, app_settings):
        safe = app_settings.get_safe_dict()

        assert safe["azure"]["client_secret"] is None


class TestSettingsSingleton:
    """Test the settings accessor."""

    def test_get_settings_is_cached(self):
        reload_settings()

        assert get_settings() is get_settings()

    def test_reload_settings(self):
        first = get_settings()

        with patch.dict(os.environ, {"LABKIT_DEBUG": "true"}):
            second = reload_settings()

        assert second is not first
        assert second.debug is True
        reload_settings()
