"""
URL query-string contract for dashboard navigation.

Time range: ``t=<relative id>`` or ``from=<ISO8601>&to=<ISO8601>``.
Variables: one ``var-<name>=<value>`` per selection.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode

import structlog

from panelforge.timerange import (
    DEFAULT_RANGE,
    AbsoluteRange,
    RelativeRange,
    TimeRange,
    find_relative_range,
)

logger = structlog.get_logger()

VAR_PREFIX = "var-"


def format_timestamp(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def parse_timestamp(text: str) -> Optional[int]:
    """Parse an ISO 8601 timestamp to unix seconds; naive values are UTC."""
    value = text.strip()
    if value.endswith("Z") or value.endswith("z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def time_range_params(range_: TimeRange) -> List[Tuple[str, str]]:
    if isinstance(range_, RelativeRange):
        return [("t", range_.id)]
    return [("from", format_timestamp(range_.start)), ("to", format_timestamp(range_.end))]


def parse_time_range(params: Dict[str, str], default: TimeRange = DEFAULT_RANGE) -> TimeRange:
    """Read the time range from query parameters, falling back to ``default``."""
    if "from" in params and "to" in params:
        start = parse_timestamp(params["from"])
        end = parse_timestamp(params["to"])
        if start is not None and end is not None and start < end:
            return AbsoluteRange.create(start, end)
        logger.debug("invalid_absolute_range_param", start=params["from"], end=params["to"])
        return default

    if "t" in params:
        found = find_relative_range(params["t"])
        if found is not None:
            return found
        logger.debug("unknown_relative_range_param", t=params["t"])
    return default


@dataclass(frozen=True)
class DashboardLocation:
    """Plain-data view of what the navigation layer keeps in the URL."""

    path: str
    time_range: TimeRange = DEFAULT_RANGE
    selections: Dict[str, str] = field(default_factory=dict)

    def to_query_string(self) -> str:
        params = time_range_params(self.time_range)
        params.extend((VAR_PREFIX + name, value) for name, value in self.selections.items())
        return urlencode(params)

    @classmethod
    def from_query_string(
        cls, path: str, query_string: str, default: TimeRange = DEFAULT_RANGE
    ) -> DashboardLocation:
        pairs = parse_qsl(query_string.lstrip("?"), keep_blank_values=True)
        params: Dict[str, str] = {}
        selections: Dict[str, str] = {}
        for key, value in pairs:
            if key.startswith(VAR_PREFIX) and len(key) > len(VAR_PREFIX):
                selections[key[len(VAR_PREFIX):]] = value
            else:
                params[key] = value
        return cls(path=path, time_range=parse_time_range(params, default), selections=selections)

    def with_time_range(self, range_: TimeRange) -> DashboardLocation:
        return replace(self, time_range=range_)

    def with_selection(self, name: str, value: str) -> DashboardLocation:
        selections = dict(self.selections)
        selections[name] = value
        return replace(self, selections=selections)

    def for_dashboard(self, path: str) -> DashboardLocation:
        """Navigate elsewhere: the time range carries over, variables do not."""
        return DashboardLocation(path=path, time_range=self.time_range)
