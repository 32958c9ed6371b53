"""
PanelForge configuration.

- Pydantic-based settings (environment variables, .env files)
- YAML datasource configuration file
"""

from panelforge.config.loader import (
    DatasourceConfig,
    PanelForgeConfig,
    expand_env_braces,
    get_config_path,
    load_config,
)
from panelforge.config.settings import Settings, get_settings

__all__ = [
    "Settings",
    "get_settings",
    "DatasourceConfig",
    "PanelForgeConfig",
    "expand_env_braces",
    "get_config_path",
    "load_config",
]
