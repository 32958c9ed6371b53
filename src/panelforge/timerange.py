"""
Time range resolution.

Turns a relative ("Last 1 hour") or absolute (fixed boundaries) time
window into concrete ``start``/``end``/``step`` query parameters.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Union

# (max duration in seconds, step), first match wins
STEP_LADDER: tuple[tuple[int, str], ...] = (
    (15 * 60, "15s"),
    (30 * 60, "30s"),
    (60 * 60, "60s"),
    (3 * 60 * 60, "120s"),
    (6 * 60 * 60, "240s"),
    (12 * 60 * 60, "480s"),
    (24 * 60 * 60, "900s"),
    (3 * 24 * 60 * 60, "3600s"),
)
MAX_STEP = "7200s"


def compute_step(duration_seconds: int) -> str:
    """Pick the query step for a window of the given length.

    Boundaries are inclusive on the lower bucket: exactly 15 minutes
    yields ``"15s"``.
    """
    for threshold, step in STEP_LADDER:
        if duration_seconds <= threshold:
            return step
    return MAX_STEP


@dataclass(frozen=True)
class RelativeRange:
    """Window defined as a duration back from now."""

    id: str
    name: str
    duration_seconds: int
    step: str

    kind = "relative"

    def __post_init__(self) -> None:
        if self.duration_seconds <= 0:
            raise ValueError(f"duration must be positive, got {self.duration_seconds}")

    @classmethod
    def create(cls, id: str, name: str, duration_seconds: int) -> RelativeRange:
        return cls(id=id, name=name, duration_seconds=duration_seconds, step=compute_step(duration_seconds))


@dataclass(frozen=True)
class AbsoluteRange:
    """Window with fixed unix-second boundaries."""

    start: int
    end: int
    step: str

    kind = "absolute"

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError(f"start ({self.start}) must be before end ({self.end})")

    @classmethod
    def create(cls, start: int, end: int) -> AbsoluteRange:
        return cls(start=start, end=end, step=compute_step(end - start))


TimeRange = Union[RelativeRange, AbsoluteRange]


RELATIVE_RANGES: tuple[RelativeRange, ...] = (
    RelativeRange.create("15m", "Last 15 minutes", 15 * 60),
    RelativeRange.create("30m", "Last 30 minutes", 30 * 60),
    RelativeRange.create("1h", "Last 1 hour", 60 * 60),
    RelativeRange.create("3h", "Last 3 hours", 3 * 60 * 60),
    RelativeRange.create("6h", "Last 6 hours", 6 * 60 * 60),
    RelativeRange.create("12h", "Last 12 hours", 12 * 60 * 60),
    RelativeRange.create("24h", "Last 24 hours", 24 * 60 * 60),
    RelativeRange.create("3d", "Last 3 days", 3 * 24 * 60 * 60),
    RelativeRange.create("7d", "Last 7 days", 7 * 24 * 60 * 60),
)

DEFAULT_RANGE = RELATIVE_RANGES[2]


def find_relative_range(range_id: str) -> RelativeRange | None:
    """Look up a catalog entry by id (``"1h"``, ``"3d"``...)."""
    for entry in RELATIVE_RANGES:
        if entry.id == range_id:
            return entry
    return None


def is_relative(range_: TimeRange) -> bool:
    return isinstance(range_, RelativeRange)


@dataclass(frozen=True)
class ResolvedRange:
    """Concrete query boundaries."""

    start: int
    end: int
    step: str


class TimeRangeResolver:
    """Resolves a TimeRange against a clock."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    def now(self) -> int:
        return int(self._clock())

    def resolve(self, range_: TimeRange) -> ResolvedRange:
        """Return query boundaries for ``range_``.

        Absolute ranges pass through unchanged, so repeated calls give
        identical results. Relative ranges are anchored at the current
        time on every call.
        """
        if isinstance(range_, AbsoluteRange):
            return ResolvedRange(start=range_.start, end=range_.end, step=range_.step)

        end = self.now()
        return ResolvedRange(start=end - range_.duration_seconds, end=end, step=range_.step)


def resolve(range_: TimeRange) -> ResolvedRange:
    """Resolve against the wall clock."""
    return TimeRangeResolver().resolve(range_)
