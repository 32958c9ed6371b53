"""
Console output helpers.

Respects NO_COLOR and FORCE_COLOR; falls back to plain text when piped.
"""

from __future__ import annotations

import os

from rich.console import Console
from rich.theme import Theme

PANELFORGE_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
        "warning": "#EBCB8B",
        "error": "#BF616A bold",
        "highlight": "#B48EAD",
        "muted": "#D8DEE9",
    }
)

console = Console(
    theme=PANELFORGE_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def error(message: str) -> None:
    console.print(f"[error]✗[/error] {message}")


def warning(message: str) -> None:
    console.print(f"[warning]⚠[/warning] {message}")


def success(message: str) -> None:
    console.print(f"[success]✓[/success] {message}")
