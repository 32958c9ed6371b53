"""
Panel time-series queries.

Each panel key holds at most one live request. Issuing a new query for a
key supersedes the previous one; a superseded response is dropped on
arrival and never touches the panel's state.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Protocol

import structlog

from panelforge.core.errors import PanelForgeError, is_auth_error
from panelforge.models import Series
from panelforge.timerange import ResolvedRange

logger = structlog.get_logger()

SESSION_EXPIRED_MESSAGE = "Session expired"


class QuerySource(Protocol):
    async def query_range(
        self, query: str, start: int, end: int, step: str, datasource: Optional[str] = None
    ) -> List[Series]: ...


@dataclass(frozen=True)
class PanelState:
    loading: bool = False
    error: Optional[str] = None
    series: List[Series] = field(default_factory=list)


class PanelQueryRunner:
    """Runs panel queries and keeps per-panel results."""

    def __init__(
        self,
        source: QuerySource,
        on_auth_error: Optional[Callable[[], None]] = None,
    ) -> None:
        self._source = source
        self._on_auth_error = on_auth_error
        self._states: Dict[str, PanelState] = {}
        self._tokens: Dict[str, int] = {}
        self._counter = itertools.count(1)

    def state(self, key: str) -> PanelState:
        return self._states.get(key, PanelState())

    def cancel(self, key: str) -> None:
        """Invalidate any in-flight request for ``key``."""
        self._tokens[key] = next(self._counter)
        if key in self._states:
            self._states[key] = replace(self._states[key], loading=False)

    def clear(self) -> None:
        for key in list(self._tokens):
            self._tokens[key] = next(self._counter)
        self._states.clear()

    async def run(
        self,
        key: str,
        query: Optional[str],
        window: ResolvedRange,
        datasource: Optional[str] = None,
    ) -> bool:
        """Query ``window`` for panel ``key``.

        Returns True if the result (data or error) was applied, False if no
        query was issued or the response was superseded.
        """
        if not query:
            return False

        token = next(self._counter)
        self._tokens[key] = token
        previous = self._states.get(key, PanelState())
        self._states[key] = replace(previous, loading=True, error=None)
        log = logger.bind(panel=key, token=token)

        try:
            series = await self._source.query_range(
                query, window.start, window.end, window.step, datasource
            )
        except PanelForgeError as exc:
            return self._fail(key, token, exc, exc.message, log)
        except Exception as exc:
            log.error("panel_query_unexpected_error", error=str(exc), error_type=type(exc).__name__)
            return self._fail(key, token, exc, str(exc) or "Query failed", log)

        if self._tokens.get(key) != token:
            log.debug("panel_query_superseded")
            return False

        self._states[key] = PanelState(loading=False, error=None, series=series)
        log.debug("panel_query_complete", series=len(series))
        return True

    def _fail(self, key: str, token: int, exc: Exception, message: str, log) -> bool:
        # Auth failures are reported even for superseded queries
        if is_auth_error(exc):
            message = SESSION_EXPIRED_MESSAGE
            if self._on_auth_error is not None:
                self._on_auth_error()
        if self._tokens.get(key) != token:
            log.debug("panel_query_superseded")
            return False
        log.warning("panel_query_failed", error=message)
        self._states[key] = replace(self._states[key], loading=False, error=message)
        return True
