"""Template variable substitution.

Replaces ``${name}`` and ``$name`` tokens in panel titles, queries and
markdown content with the currently selected variable values.
"""

import re
from typing import Any, Dict, Mapping


class VariableSubstitutor:
    """Handles variable substitution in dashboard templates."""

    def __init__(self, values: Mapping[str, str]):
        """Initialize substitutor with the selection map.

        Args:
            values: Variable name to selected value
        """
        self.values = {name: value for name, value in values.items() if name}
        # Longest names first so "$dev" never eats the front of "$device"
        names = sorted(self.values, key=len, reverse=True)
        alternation = "|".join(re.escape(name) for name in names)
        self._pattern = (
            re.compile(r"\$\{(" + alternation + r")\}|\$(" + alternation + r")(?![A-Za-z0-9_])")
            if names
            else None
        )

    def substitute(self, value: Any) -> Any:
        """Recursively substitute variables in a value.

        Supports:
        - Strings: "rate($metric[5m])" → "rate(node_load1[5m])"
        - Dicts: Recursively processes all values
        - Lists: Recursively processes all items
        - Other types: Returned unchanged

        Example:
            >>> sub = VariableSubstitutor({"dev": "A", "device": "B"})
            >>> sub.substitute("$dev $device")
            'A B'
        """
        if isinstance(value, str):
            return self._substitute_string(value)
        elif isinstance(value, dict):
            return {k: self.substitute(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self.substitute(item) for item in value]
        else:
            return value

    def _substitute_string(self, text: str) -> str:
        """Substitute variables in a string.

        A single left-to-right scan: inserted values are literal text and
        are never searched for further tokens.
        """
        if not text or self._pattern is None:
            return text

        def replace_var(match: re.Match) -> str:
            name = match.group(1) if match.group(1) is not None else match.group(2)
            return self.values[name]

        return self._pattern.sub(replace_var, text)


def substitute(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``${name}``/``$name`` tokens in a single template string.

    Example:
        >>> substitute("$device_total", {"device": "eth0"})
        '$device_total'
    """
    if not template or not values:
        return template
    return VariableSubstitutor(values).substitute(template)


def substitute_all(data: Dict[str, Any], values: Mapping[str, str]) -> Dict[str, Any]:
    """Substitute variables throughout a nested mapping."""
    if not values:
        return data
    return VariableSubstitutor(values).substitute(data)
