"""Dashboard definitions on disk."""

from panelforge.dashboards.loader import (
    DashboardStore,
    DashboardTreeNode,
    load_dashboard,
    load_dir,
)

__all__ = ["DashboardStore", "DashboardTreeNode", "load_dashboard", "load_dir"]
