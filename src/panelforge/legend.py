"""
Legend label formatting.

A legend template is free text with ``{label}`` placeholders. A
placeholder may pipe the label value through text functions::

    {instance | trunc(12) | upper}
    {path | replace("/api/", "") | suffix(20)}

Malformed or unknown pipe steps pass the value through unchanged; a
broken legend template never raises.
"""

from __future__ import annotations

import re
from typing import Callable, Mapping

NAME_LABEL = "__name__"
FALLBACK_LABEL = "value"

LegendFunc = Callable[[str, str], str]

_PLACEHOLDER_RE = re.compile(r"\{([^}]+)\}")
_CALL_RE = re.compile(r"^(\w+)\(([^)]*)\)$")
_BARE_RE = re.compile(r"^(\w+)$")
_INT_ARG_RE = re.compile(r"^\s*([+-]?\d+)")
_REPLACE_ARGS_RE = re.compile(r'^"([^"]*)"\s*,\s*"([^"]*)"$')


def _int_arg(arg: str) -> int | None:
    match = _INT_ARG_RE.match(arg)
    return int(match.group(1)) if match else None


def _trunc(value: str, arg: str) -> str:
    n = _int_arg(arg)
    if n is None or n <= 0 or len(value) <= n:
        return value
    return value[:n] + "..."


def _suffix(value: str, arg: str) -> str:
    n = _int_arg(arg)
    if n is None or n <= 0 or len(value) <= n:
        return value
    return "..." + value[-n:]


def _replace(value: str, arg: str) -> str:
    match = _REPLACE_ARGS_RE.match(arg.strip())
    if not match:
        return value
    old, new = match.groups()
    if not old:
        return value
    return value.replace(old, new)


LEGEND_FUNCTIONS: dict[str, LegendFunc] = {
    "trunc": _trunc,
    "suffix": _suffix,
    "upper": lambda value, _arg: value.upper(),
    "lower": lambda value, _arg: value.lower(),
    "replace": _replace,
}


def parse_call(expr: str) -> tuple[str, str] | None:
    """Split ``name(arg)`` or a bare known ``name`` into ``(name, arg)``."""
    match = _CALL_RE.match(expr)
    if match:
        return match.group(1), match.group(2)
    match = _BARE_RE.match(expr)
    if match and match.group(1) in LEGEND_FUNCTIONS:
        return match.group(1), ""
    return None


def apply_pipes(value: str, steps: list[str]) -> str:
    """Run ``value`` through each pipe step, left to right."""
    result = value
    for step in steps:
        parsed = parse_call(step.strip())
        if parsed is None:
            continue
        name, arg = parsed
        func = LEGEND_FUNCTIONS.get(name)
        if func is not None:
            result = func(result, arg)
    return result


def default_label(labels: Mapping[str, str]) -> str:
    """``key="value"`` pairs in label order, skipping the metric name."""
    pairs = [f'{key}="{value}"' for key, value in labels.items() if key != NAME_LABEL]
    if pairs:
        return ", ".join(pairs)
    return labels.get(NAME_LABEL) or FALLBACK_LABEL


class LegendFormatter:
    """Renders series display labels from a legend template."""

    def __init__(self, template: str | None = None) -> None:
        self.template = template

    def format(self, labels: Mapping[str, str]) -> str:
        return format_legend(labels, self.template)


def format_legend(labels: Mapping[str, str], template: str | None = None) -> str:
    """Render a display label for a series.

    Example:
        >>> format_legend({"instance_id": "550e8400-e29b"}, "{instance_id | trunc(8)}")
        '550e8400...'
    """
    if not template:
        return default_label(labels)

    def render(match: re.Match[str]) -> str:
        segments = match.group(1).split("|")
        value = labels.get(segments[0].strip(), "")
        return apply_pipes(value, segments[1:])

    return _PLACEHOLDER_RE.sub(render, template)
