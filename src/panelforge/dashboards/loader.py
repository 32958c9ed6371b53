"""
Dashboard store.

Recursively loads ``*.yaml``/``*.yml`` dashboard definitions from a
directory. A dashboard's path is its file path relative to the directory,
without extension and with forward slashes (``network/interfaces``).

Usage:
    from panelforge.dashboards.loader import load_dir

    store = load_dir("dashboards")
    dashboard = store.get("network/interfaces")
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import structlog
import yaml

from panelforge.core.errors import DashboardLoadError, ValidationError
from panelforge.models import Dashboard

logger = structlog.get_logger()

DASHBOARD_EXTENSIONS = (".yaml", ".yml")

_VALID_PATH_RE = re.compile(r"^[A-Za-z0-9_\-/]+$")


@dataclass
class DashboardTreeNode:
    """Navigation tree node; directories have no path."""

    name: str
    path: Optional[str] = None
    children: List[DashboardTreeNode] = field(default_factory=list)

    @property
    def is_leaf(self) -> bool:
        return self.path is not None

    def to_dict(self) -> Dict:
        result: Dict = {"name": self.name}
        if self.path is not None:
            result["path"] = self.path
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


def validate_path(path: str) -> None:
    if ".." in path:
        raise DashboardLoadError("path must not contain '..'", {"path": path})
    if not _VALID_PATH_RE.match(path):
        raise DashboardLoadError("path contains invalid characters", {"path": path})


def build_tree(dashboards: List[Dashboard]) -> List[DashboardTreeNode]:
    root = DashboardTreeNode(name="")
    for dashboard in dashboards:
        parts = dashboard.path.split("/")
        current = root
        for part in parts[:-1]:
            found = next(
                (c for c in current.children if c.name == part and not c.is_leaf),
                None,
            )
            if found is None:
                found = DashboardTreeNode(name=part)
                current.children.append(found)
            current = found
        current.children.append(DashboardTreeNode(name=parts[-1], path=dashboard.path))
    return root.children


class DashboardStore:
    """Loaded dashboards with lookup by path."""

    def __init__(self, dashboards: Dict[str, Dashboard], sources: Dict[str, str]) -> None:
        self._dashboards = dict(dashboards)
        self._sources = dict(sources)
        self._list = sorted(self._dashboards.values(), key=lambda d: d.path)
        self._tree = build_tree(self._list)

    def get(self, path: str) -> Optional[Dashboard]:
        return self._dashboards.get(path)

    def list(self) -> List[Dashboard]:
        return list(self._list)

    def tree(self) -> List[DashboardTreeNode]:
        return self._tree

    def source(self, path: str) -> Optional[str]:
        """Raw YAML text of a dashboard."""
        return self._sources.get(path)

    def __len__(self) -> int:
        return len(self._dashboards)


def load_dashboard(file_path: str | Path, dashboard_path: str = "") -> tuple[Dashboard, str]:
    """Parse and validate one dashboard file; returns it with its raw text."""
    path = Path(file_path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise DashboardLoadError(f"cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DashboardLoadError(f"Invalid YAML in {path}: {e}") from e

    try:
        dashboard = Dashboard.from_dict(data, path=dashboard_path or path.stem)
        dashboard.validate()
    except ValidationError as e:
        raise DashboardLoadError(f"Invalid dashboard {path}: {e.message}", e.details) from e
    return dashboard, text


def load_dir(directory: str | Path) -> DashboardStore:
    """Load every dashboard below ``directory``.

    Raises:
        DashboardLoadError: on the first unreadable, malformed or invalid file
    """
    root = Path(directory)
    if not root.is_dir():
        raise DashboardLoadError(f"dashboard directory not found: {directory}")

    dashboards: Dict[str, Dashboard] = {}
    sources: Dict[str, str] = {}
    for file_path in sorted(root.rglob("*")):
        if not file_path.is_file() or file_path.suffix not in DASHBOARD_EXTENSIONS:
            continue
        dashboard_path = file_path.relative_to(root).with_suffix("").as_posix()
        validate_path(dashboard_path)
        dashboard, text = load_dashboard(file_path, dashboard_path)
        dashboards[dashboard_path] = dashboard
        sources[dashboard_path] = text

    logger.info("dashboards_loaded", directory=str(root), count=len(dashboards))
    return DashboardStore(dashboards, sources)
