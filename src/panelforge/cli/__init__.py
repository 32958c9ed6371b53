"""
CLI commands for PanelForge.
"""

from panelforge.cli.dashboards import list_command, query_command, render_command

__all__ = [
    "list_command",
    "render_command",
    "query_command",
]
