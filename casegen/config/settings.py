"""
Configuration system using Pydantic for type-safe settings management.

This module provides configuration classes for the generation service
connection and the workflow engine behaviour.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from casegen.exceptions import ConfigurationError

DEFAULT_SERVICE_URL = "https://test-case-generator-api.onrender.com"


class ServiceConfig(BaseModel):
    """Generation service connection settings."""

    base_url: HttpUrl = Field(
        default=DEFAULT_SERVICE_URL, validate_default=True, description="Base URL of the generation service"
    )
    timeout: float = Field(default=60.0, gt=0, description="Per-request timeout in seconds")
    max_connections: int = Field(default=10, ge=1, le=100, description="Maximum pooled HTTP connections")
    http2: bool = Field(default=False, description="Negotiate HTTP/2 with the service")
    headers: dict[str, str] = Field(default_factory=dict, description="Extra headers sent with every request")


class WorkflowConfig(BaseModel):
    """Workflow engine behaviour configuration."""

    max_concurrent_fetches: int = Field(default=8, ge=1, le=64, description="Maximum parallel file content fetches")
    preview_on_toggle: bool = Field(
        default=True, description="Prefetch selected file contents in the background after each toggle"
    )
    require_listed_paths: bool = Field(
        default=False, description="Reject toggling paths that are not in the current listing"
    )
    file_name_prefix: str = Field(default="test-case-", min_length=1, description="Prefix of submitted file names")
    file_extension: str = Field(default=".js", description="Extension of submitted file names")

    @field_validator("file_extension")
    @classmethod
    def validate_extension(cls, value: str) -> str:
        """Require a leading dot so the timestamp stays separated."""
        if not value.startswith(".") or len(value) < 2:
            raise ValueError(f"file_extension must start with '.', got: {value!r}")
        return value


class CasegenSettings(BaseSettings):
    """Main casegen settings.

    Combines all configuration sections and provides loading from YAML files
    with environment variable interpolation. Environment variables prefixed
    with ``CASEGEN_`` override defaults (``CASEGEN_SERVICE__BASE_URL``).
    """

    model_config = SettingsConfigDict(
        env_prefix="CASEGEN_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    workflow: WorkflowConfig = Field(default_factory=WorkflowConfig)

    @property
    def service_url(self) -> str:
        """Service base URL without trailing slash."""
        return str(self.service.base_url).rstrip("/")

    @classmethod
    def from_yaml(cls, config_path: str) -> CasegenSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ${VAR_NAME} syntax for environment variable substitution.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            CasegenSettings instance

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        # An empty file means "all defaults"
        if config_dict is None:
            config_dict = {}
        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            return cls(**config_dict)
        except Exception as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ${VAR_NAME} placeholders with environment variables.

        Supports two syntaxes:
        - ${VAR_NAME} - Required environment variable (raises if not set)
        - ${VAR_NAME:-default} - Optional with default value

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
