"""Core modules for PanelForge - centralized definitions and utilities."""

from panelforge.core.errors import (
    AuthenticationError,
    ConfigurationError,
    DashboardLoadError,
    DatasourceError,
    ExitCode,
    PanelForgeError,
    ValidationError,
    exit_code_for,
    format_error_message,
    is_auth_error,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "PanelForgeError",
    "ConfigurationError",
    "ValidationError",
    "DashboardLoadError",
    "DatasourceError",
    "AuthenticationError",
    "is_auth_error",
    "exit_code_for",
    "main_with_error_handling",
    "format_error_message",
]
