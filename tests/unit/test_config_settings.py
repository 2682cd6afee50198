"""Tests for casegen/config/settings.py Pydantic models.

Tests cover:
- ServiceConfig defaults and validation
- WorkflowConfig validation and boundary conditions
- CasegenSettings loading from YAML
- CasegenSettings loading from environment variables
- Environment variable interpolation
"""

import pytest
from pydantic import ValidationError

from casegen.config.settings import (
    DEFAULT_SERVICE_URL,
    CasegenSettings,
    ServiceConfig,
    WorkflowConfig,
)
from casegen.exceptions import ConfigurationError


class TestServiceConfig:
    """Test ServiceConfig validation."""

    def test_defaults(self):
        config = ServiceConfig()

        assert str(config.base_url).rstrip("/") == DEFAULT_SERVICE_URL
        assert config.timeout == 60.0
        assert config.max_connections == 10
        assert config.http2 is False
        assert config.headers == {}

    def test_invalid_url_rejected(self):
        with pytest.raises(ValidationError):
            ServiceConfig(base_url="not-a-url")

    @pytest.mark.parametrize("timeout", [0, -1])
    def test_timeout_must_be_positive(self, timeout):
        with pytest.raises(ValidationError):
            ServiceConfig(timeout=timeout)

    @pytest.mark.parametrize("value", [0, 101])
    def test_max_connections_bounds(self, value):
        with pytest.raises(ValidationError):
            ServiceConfig(max_connections=value)


class TestWorkflowConfig:
    """Test WorkflowConfig validation and boundary conditions."""

    def test_defaults(self):
        config = WorkflowConfig()

        assert config.max_concurrent_fetches == 8
        assert config.preview_on_toggle is True
        assert config.require_listed_paths is False
        assert config.file_name_prefix == "test-case-"
        assert config.file_extension == ".js"

    @pytest.mark.parametrize("value", [1, 64])
    def test_concurrency_boundaries_accepted(self, value):
        assert WorkflowConfig(max_concurrent_fetches=value).max_concurrent_fetches == value

    @pytest.mark.parametrize("value", [0, 65])
    def test_concurrency_out_of_range(self, value):
        with pytest.raises(ValidationError):
            WorkflowConfig(max_concurrent_fetches=value)

    @pytest.mark.parametrize("extension", ["js", ".", ""])
    def test_extension_needs_leading_dot(self, extension):
        with pytest.raises(ValidationError):
            WorkflowConfig(file_extension=extension)

    def test_compound_extension_allowed(self):
        assert WorkflowConfig(file_extension=".test.ts").file_extension == ".test.ts"

    def test_empty_prefix_rejected(self):
        with pytest.raises(ValidationError):
            WorkflowConfig(file_name_prefix="")


class TestCasegenSettingsFromYaml:
    """Test loading CasegenSettings from YAML files."""

    def test_full_config(self, tmp_path):
        config_file = tmp_path / "casegen.yaml"
        config_file.write_text(
            """
service:
  base_url: https://svc.example.com/
  timeout: 30
  headers:
    X-Client: casegen
workflow:
  max_concurrent_fetches: 4
  preview_on_toggle: false
  file_extension: .spec.js
"""
        )

        settings = CasegenSettings.from_yaml(str(config_file))

        assert settings.service_url == "https://svc.example.com"
        assert settings.service.timeout == 30.0
        assert settings.service.headers == {"X-Client": "casegen"}
        assert settings.workflow.max_concurrent_fetches == 4
        assert settings.workflow.preview_on_toggle is False
        assert settings.workflow.file_extension == ".spec.js"

    def test_empty_file_uses_defaults(self, tmp_path):
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")

        settings = CasegenSettings.from_yaml(str(config_file))

        assert settings.service_url == DEFAULT_SERVICE_URL
        assert settings.workflow == WorkflowConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="not found"):
            CasegenSettings.from_yaml(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "bad.yaml"
        config_file.write_text("service: [unclosed")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            CasegenSettings.from_yaml(str(config_file))

    def test_non_mapping_rejected(self, tmp_path):
        config_file = tmp_path / "list.yaml"
        config_file.write_text("- a\n- b\n")

        with pytest.raises(ConfigurationError, match="YAML object"):
            CasegenSettings.from_yaml(str(config_file))

    def test_invalid_values(self, tmp_path):
        config_file = tmp_path / "invalid.yaml"
        config_file.write_text("workflow:\n  max_concurrent_fetches: 0\n")

        with pytest.raises(ConfigurationError, match="Failed to validate"):
            CasegenSettings.from_yaml(str(config_file))


class TestEnvironmentVariables:
    """Test interpolation and environment overrides."""

    def test_interpolation(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CASEGEN_TEST_URL", "https://env.example.com")
        config_file = tmp_path / "env.yaml"
        config_file.write_text("service:\n  base_url: ${CASEGEN_TEST_URL}\n")

        settings = CasegenSettings.from_yaml(str(config_file))

        assert settings.service_url == "https://env.example.com"

    def test_interpolation_default(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CASEGEN_TEST_TIMEOUT", raising=False)
        config_file = tmp_path / "env.yaml"
        config_file.write_text("service:\n  timeout: ${CASEGEN_TEST_TIMEOUT:-12}\n")

        settings = CasegenSettings.from_yaml(str(config_file))

        assert settings.service.timeout == 12.0

    def test_missing_required_variable(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CASEGEN_TEST_MISSING", raising=False)
        config_file = tmp_path / "env.yaml"
        config_file.write_text("service:\n  base_url: ${CASEGEN_TEST_MISSING}\n")

        with pytest.raises(ConfigurationError, match="CASEGEN_TEST_MISSING"):
            CasegenSettings.from_yaml(str(config_file))

    def test_comment_lines_not_interpolated(self, monkeypatch):
        monkeypatch.delenv("CASEGEN_TEST_MISSING", raising=False)
        content = "# base_url: ${CASEGEN_TEST_MISSING}\nservice: {}\n"

        assert CasegenSettings._interpolate_env_vars(content) == content

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CASEGEN_SERVICE__BASE_URL", "https://override.example.com")
        monkeypatch.setenv("CASEGEN_WORKFLOW__REQUIRE_LISTED_PATHS", "true")

        settings = CasegenSettings()

        assert settings.service_url == "https://override.example.com"
        assert settings.workflow.require_listed_paths is True
