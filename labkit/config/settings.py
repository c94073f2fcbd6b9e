"""
Central configuration management for labkit.

This module provides type-safe configuration management using Pydantic,
with one settings group per concern (Azure, DevOps, paths, secrets,
execution, monitoring).
"""

from typing import Any, Dict, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..security import mask_sensitive


class AzureSettings(BaseSettings):
    """Azure subscription and resource defaults."""

    default_location: str = "eastus"
    subscription_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "LABKIT_AZURE_SUBSCRIPTION_ID", "AZURE_SUBSCRIPTION_ID"
        ),
    )
    tenant_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LABKIT_AZURE_TENANT_ID", "AZURE_TENANT_ID"),
    )
    client_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LABKIT_AZURE_CLIENT_ID", "AZURE_CLIENT_ID"),
    )
    client_secret: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "LABKIT_AZURE_CLIENT_SECRET", "AZURE_CLIENT_SECRET"
        ),
    )
    service_principal_role: str = "Contributor"
    ml_extension: str = "ml"
    permission_probe_location: str = "eastus"

    @field_validator("default_location", "permission_probe_location")
    @classmethod
    def validate_location(cls, v):
        """Azure locations are lowercase with no spaces."""
        v = v.strip().lower()
        if not v.isalnum():
            raise ValueError(f"Invalid Azure location: {v}")
        return v

    model_config = SettingsConfigDict(
        env_prefix="LABKIT_AZURE_", case_sensitive=False, populate_by_name=True
    )


class DevOpsSettings(BaseSettings):
    """Azure DevOps defaults."""

    organization: Optional[str] = None
    repository_name: str = "infrastructure"
    connection_name: str = "Azure Connection"
    pipeline_name: str = "Azure Deployment"
    pipeline_file: str = "azure-deploy-pipeline.yml"
    dashboard_name: str = "Azure Resources"
    default_resource_type: str = "Microsoft.Resources/deployments"

    @field_validator("organization")
    @classmethod
    def validate_organization(cls, v):
        """Organisation must be a URL such as https://dev.azure.com/contoso."""
        if v and not v.startswith("https://"):
            raise ValueError("DevOps organization must be an https:// URL")
        return v

    model_config = SettingsConfigDict(env_prefix="LABKIT_DEVOPS_", case_sensitive=False)


class PathSettings(BaseSettings):
    """Local paths used by the local-environment workflows."""

    projects_dir: str = "~/projects"
    mlops_venv_dir: str = "~/projects/mlops"
    miniconda_dir: str = "~/miniconda"
    shell_profile: str = "~/.bashrc"
    gnupg_home: str = "~/.gnupg"

    model_config = SettingsConfigDict(env_prefix="LABKIT_PATHS_", case_sensitive=False)


class SecretsSettings(BaseSettings):
    """Password store layout."""

    service_principal_prefix: str = "azure/service-principal"
    devops_prefix: str = "azure/devops-integration"
    api_keys_prefix: str = "ml-projects"
    gpg_key_length: int = 4096

    @field_validator("service_principal_prefix", "devops_prefix", "api_keys_prefix")
    @classmethod
    def validate_prefix(cls, v):
        """Store paths are relative and have no trailing slash."""
        v = v.strip().strip("/")
        if not v or ".." in v:
            raise ValueError(f"Invalid password store prefix: {v!r}")
        return v

    @field_validator("gpg_key_length")
    @classmethod
    def validate_key_length(cls, v):
        if v < 2048:
            raise ValueError("GPG key length must be at least 2048")
        return v

    model_config = SettingsConfigDict(
        env_prefix="LABKIT_SECRETS_", case_sensitive=False
    )


class ExecutionSettings(BaseSettings):
    """Tool and executor behaviour."""

    tool_timeout: int = 900  # seconds; installers and az ml are slow
    retry_count: int = 0
    retry_delay: int = 2  # seconds
    max_plan_steps: int = 100
    continue_on_failure: bool = False

    @field_validator("tool_timeout", "max_plan_steps")
    @classmethod
    def validate_positive(cls, v):
        if v <= 0:
            raise ValueError("Value must be positive")
        return v

    @field_validator("retry_count", "retry_delay")
    @classmethod
    def validate_non_negative(cls, v):
        if v < 0:
            raise ValueError("Value must not be negative")
        return v

    model_config = SettingsConfigDict(
        env_prefix="LABKIT_EXECUTION_", case_sensitive=False
    )


class MonitoringSettings(BaseSettings):
    """Logging and progress display configuration."""

    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None
    show_progress: bool = True

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format."""
        if v not in ["json", "text"]:
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    model_config = SettingsConfigDict(env_prefix="LABKIT_", case_sensitive=False)


class AppSettings(BaseSettings):
    """Main application settings."""

    app_name: str = "labkit"
    app_version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    azure: AzureSettings = Field(default_factory=AzureSettings)
    devops: DevOpsSettings = Field(default_factory=DevOpsSettings)
    paths: PathSettings = Field(default_factory=PathSettings)
    secrets: SecretsSettings = Field(default_factory=SecretsSettings)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment name."""
        valid_envs = ["development", "testing", "ci", "production"]
        if v not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.environment in ["testing", "ci"]

    def get_safe_dict(self) -> Dict[str, Any]:
        """Get configuration dict with sensitive values masked."""
        return mask_sensitive(self.model_dump())

    model_config = SettingsConfigDict(
        env_prefix="LABKIT_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Singleton pattern for settings
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """Get application settings singleton."""
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reload_settings() -> AppSettings:
    """Force reload of settings (useful for testing)."""
    global _settings
    _settings = None
    return get_settings()
