"""
Datasource configuration file loading.

Search order:
1. Explicit path (--config flag or PANELFORGE_CONFIG_PATH)
2. .panelforge/config.yaml (project root)
3. ~/.panelforge/config.yaml (user home)

Example::

    datasources:
      - name: main
        url: ${PROMETHEUS_URL:-http://localhost:9090}
        default: true
      - name: longterm
        url: http://thanos:10902
        timeout: 60
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog
import yaml

from panelforge.config.settings import get_settings
from panelforge.core.errors import ConfigurationError

logger = structlog.get_logger()

_ENV_BRACES_RE = re.compile(r"\$\{([^}]+)\}")

DEFAULT_DATASOURCE_URL = "http://localhost:9090"


@dataclass
class DatasourceConfig:
    """A single named Prometheus-compatible datasource."""

    name: str
    url: str
    timeout: float = 30.0
    default: bool = False


@dataclass
class PanelForgeConfig:
    """Top-level configuration file contents."""

    datasources: list[DatasourceConfig] = field(default_factory=list)

    @property
    def default_datasource(self) -> DatasourceConfig | None:
        for ds in self.datasources:
            if ds.default:
                return ds
        return None

    @classmethod
    def default(cls) -> PanelForgeConfig:
        return cls(
            datasources=[DatasourceConfig(name="default", url=DEFAULT_DATASOURCE_URL, default=True)]
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PanelForgeConfig:
        """Build a config from parsed YAML, validating the datasource list."""
        raw = data.get("datasources") or []
        if not isinstance(raw, list):
            raise ConfigurationError("'datasources' must be a list")

        datasources: list[DatasourceConfig] = []
        seen: set[str] = set()
        for entry in raw:
            if not isinstance(entry, dict):
                raise ConfigurationError("datasource entries must be mappings")
            name = entry.get("name")
            url = entry.get("url")
            if not name or not url:
                raise ConfigurationError("datasource requires 'name' and 'url'", {"entry": entry})
            if name in seen:
                raise ConfigurationError("duplicate datasource name", {"name": name})
            seen.add(name)
            datasources.append(
                DatasourceConfig(
                    name=str(name),
                    url=expand_env_braces(str(url)),
                    timeout=float(entry.get("timeout") or get_settings().http_timeout),
                    default=bool(entry.get("default", False)),
                )
            )

        defaults = [ds for ds in datasources if ds.default]
        if len(defaults) > 1:
            raise ConfigurationError(
                "only one datasource may be marked default",
                {"names": ",".join(ds.name for ds in defaults)},
            )
        if not defaults and len(datasources) == 1:
            datasources[0].default = True
        elif not defaults and datasources:
            raise ConfigurationError("one datasource must be marked default")

        return cls(datasources=datasources)


def expand_env_braces(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}``; bare ``$VAR`` is left alone.

    Raises:
        ConfigurationError: if a referenced variable is unset and has no default
    """

    def replace(match: re.Match[str]) -> str:
        name, sep, fallback = match.group(1).partition(":-")
        env_value = os.environ.get(name)
        if env_value is not None:
            return env_value
        if sep:
            return fallback
        raise ConfigurationError(
            "environment variable is not set", {"variable": name}
        )

    return _ENV_BRACES_RE.sub(replace, value)


def get_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """
    Find the configuration file to use.

    Returns:
        Path to config file or None if not found
    """
    if explicit_path:
        path = Path(explicit_path)
        if path.exists():
            return path
        raise ConfigurationError("config file not found", {"path": str(explicit_path)})

    cwd_config = Path.cwd() / ".panelforge" / "config.yaml"
    if cwd_config.exists():
        return cwd_config

    home_config = Path.home() / ".panelforge" / "config.yaml"
    if home_config.exists():
        return home_config

    return None


def load_config(path: str | Path | None = None) -> PanelForgeConfig:
    """
    Load datasource configuration.

    Falls back to a single local Prometheus datasource when no file is found.
    """
    config_path = get_config_path(path)
    if config_path is None:
        logger.debug("config_not_found_using_defaults")
        return PanelForgeConfig.default()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Expected YAML object in {config_path}")

    config = PanelForgeConfig.from_dict(data)
    logger.debug("loaded_config", path=str(config_path), datasources=len(config.datasources))
    return config
