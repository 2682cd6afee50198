"""Configuration for the casegen client.

Key Components:
    - CasegenSettings: Main configuration container with YAML loading support
    - ServiceConfig: Generation service connection settings
    - WorkflowConfig: Workflow engine behaviour settings

Example:
    >>> from casegen.config import CasegenSettings
    >>> settings = CasegenSettings.from_yaml("casegen.yaml")
    >>> settings.service_url
    'https://test-case-generator-api.onrender.com'
"""

from casegen.config.settings import CasegenSettings, ServiceConfig, WorkflowConfig

__all__ = ["CasegenSettings", "ServiceConfig", "WorkflowConfig"]
