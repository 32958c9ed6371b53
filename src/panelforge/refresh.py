"""
Auto-refresh timer.

Re-runs panel queries on an interval, but only while the active time
range is relative; an absolute range resolves to the same window on every
tick so nothing is re-queried.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Callable, Optional

import structlog

from panelforge.timerange import TimeRange, is_relative

logger = structlog.get_logger()

# (label, seconds); 0 means off
REFRESH_INTERVALS: tuple[tuple[str, int], ...] = (
    ("Off", 0),
    ("10s", 10),
    ("30s", 30),
    ("1m", 60),
    ("5m", 300),
)


class AutoRefresh:
    """Periodic refresh driver for a dashboard session."""

    def __init__(
        self,
        on_refresh: Callable[[], Awaitable[object]],
        range_provider: Callable[[], TimeRange],
        interval: float = 0,
    ) -> None:
        if interval < 0:
            raise ValueError("refresh interval must not be negative")
        self._on_refresh = on_refresh
        self._range_provider = range_provider
        self._interval = interval
        self._task: Optional[asyncio.Task] = None
        self._started = False

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_interval(self, seconds: float) -> None:
        """Change the interval; a started timer restarts with the new period."""
        if seconds < 0:
            raise ValueError("refresh interval must not be negative")
        self._interval = seconds
        if not self._started:
            return
        if self._task is not None:
            self._task.cancel()
            self._task = None
        if seconds > 0:
            self._task = asyncio.get_running_loop().create_task(self.run())

    async def tick(self) -> bool:
        """Handle one elapsed interval; returns True if a refresh was issued."""
        if self._interval <= 0:
            return False
        if not is_relative(self._range_provider()):
            logger.debug("refresh_skipped_absolute_range")
            return False
        await self._on_refresh()
        return True

    async def run(self) -> None:
        """Tick every ``interval`` seconds until the interval drops to zero.

        A failing refresh is logged and the timer keeps going.
        """
        while self._interval > 0:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("refresh_failed", interval=self._interval)

    def start(self) -> None:
        """Schedule the timer on the running event loop."""
        self._started = True
        if self.running or self._interval <= 0:
            return
        self._task = asyncio.get_running_loop().create_task(self.run())

    async def stop(self) -> None:
        self._started = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
