"""
Value formatting for panel units.

Renders a sample value the way a panel's axis and tooltip show it:
bytes scale by 1024, percentages keep one decimal, durations pick the
largest fitting unit, and counts get thousands separators.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Context, Decimal
from typing import Callable, Optional, Union

from panelforge.models import Unit

BYTE_UNITS = ("B", "KB", "MB", "GB", "TB", "PB")

# Wide enough for any finite float at fixed point
_FIXED_CONTEXT = Context(prec=400)


def _fixed(value: float, digits: int) -> Decimal:
    # Half away from zero on the exact binary value; no negative zero
    exponent = Decimal(1).scaleb(-digits)
    return Decimal(value or 0.0).quantize(exponent, rounding=ROUND_HALF_UP, context=_FIXED_CONTEXT)


def _to_fixed(value: float, digits: int) -> str:
    return str(_fixed(value, digits))


def _non_finite(value: float) -> Optional[str]:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "-∞" if value < 0 else "∞"
    return None


def format_bytes(value: float) -> str:
    if value == 0:
        return "0 B"
    idx = 0
    scaled = abs(value)
    while scaled >= 1024 and idx < len(BYTE_UNITS) - 1:
        scaled /= 1024
        idx += 1
    return f"{_to_fixed(value / 1024**idx, 1 if idx > 0 else 0)} {BYTE_UNITS[idx]}"


def format_percent(value: float) -> str:
    return f"{_to_fixed(value, 1)}%"


def format_count(value: float) -> str:
    """Thousands separators and at most two fraction digits."""
    text = f"{_fixed(value, 2):,f}"
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_seconds(value: float) -> str:
    magnitude = abs(value)
    sign = "-" if value < 0 else ""
    if magnitude == 0:
        return "0s"
    if magnitude < 0.001:
        return f"{sign}{_to_fixed(magnitude * 1_000_000, 0)}µs"
    if magnitude < 1:
        return f"{sign}{_to_fixed(magnitude * 1000, 1)}ms"
    if magnitude < 60:
        return f"{sign}{_to_fixed(magnitude, 2)}s"
    if magnitude < 3600:
        return f"{sign}{_to_fixed(magnitude / 60, 1)}m"
    return f"{sign}{_to_fixed(magnitude / 3600, 1)}h"


FORMATTERS: dict[Unit, Callable[[float], str]] = {
    Unit.BYTES: format_bytes,
    Unit.PERCENT: format_percent,
    Unit.SECONDS: format_seconds,
    Unit.COUNT: format_count,
}


def _resolve_unit(unit: Union[Unit, str, None]) -> Unit:
    if unit is None:
        return Unit.COUNT
    try:
        return Unit(unit)
    except ValueError:
        return Unit.COUNT


def format_value(value: float, unit: Union[Unit, str, None] = None) -> str:
    """Format ``value`` for ``unit``; unknown or missing units format as a count."""
    special = _non_finite(value)
    if special is not None:
        return special
    return FORMATTERS[_resolve_unit(unit)](value)


def value_formatter(unit: Union[Unit, str, None] = None) -> Callable[[Union[float, str]], str]:
    """
    Build a formatter bound to ``unit``.

    The returned callable also accepts numeric strings, as found in raw
    Prometheus sample pairs.
    """

    def formatter(value: Union[float, str]) -> str:
        return format_value(float(value), unit)

    return formatter
