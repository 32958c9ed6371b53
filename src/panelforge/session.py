"""
Dashboard session.

Wires the engine together for one open dashboard:

    definitions -> VariableResolver -> RowExpander -> substitution
                -> PanelQueryRunner (with the resolved time window)
                -> legend formatting

The session only deals in plain data (dashboard, TimeRange, selection
map); URL handling lives in ``panelforge.urlstate``.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from panelforge.legend import format_legend
from panelforge.logging import bind_context
from panelforge.models import ChartType, Dashboard, PanelKind, Series, Unit
from panelforge.queries import PanelQueryRunner, PanelState
from panelforge.refresh import AutoRefresh
from panelforge.rows import RowExpander, repeat_sources
from panelforge.substitution import VariableSubstitutor
from panelforge.timerange import DEFAULT_RANGE, ResolvedRange, TimeRange, TimeRangeResolver
from panelforge.urlstate import DashboardLocation
from panelforge.variables import VariableResolver, VariableState


@dataclass(frozen=True)
class RenderedPanel:
    key: str
    kind: PanelKind
    title: str
    query: Optional[str] = None
    content: Optional[str] = None
    legend: Optional[str] = None
    datasource: Optional[str] = None
    unit: Optional[Unit] = None
    chart_type: ChartType = ChartType.LINE


@dataclass(frozen=True)
class RenderedRow:
    key: str
    title: str
    panels: List[RenderedPanel] = field(default_factory=list)
    repeat_value: Optional[str] = None


class DashboardSession:
    """State and operations for one open dashboard."""

    def __init__(
        self,
        dashboard: Dashboard,
        source,
        time_range: TimeRange = DEFAULT_RANGE,
        *,
        on_auth_error: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.time,
        refresh_interval: float = 0,
    ) -> None:
        """
        Args:
            dashboard: Validated dashboard definition
            source: Datasource collaborator providing ``label_values``,
                ``names`` and ``query_range`` (e.g. DatasourceRegistry)
            time_range: Initial window
            on_auth_error: Called whenever a fetch is rejected with 401
            clock: Unix-seconds clock used for relative ranges
            refresh_interval: Auto-refresh period in seconds, 0 for off
        """
        self.dashboard = dashboard
        self.time_range = time_range
        self.auth_failed = False
        self._log = bind_context(dashboard=dashboard.path)
        self._on_auth_error = on_auth_error
        self._repeat_sources = repeat_sources(dashboard)
        self._time_resolver = TimeRangeResolver(clock)
        self._expander = RowExpander()
        self.variables = VariableResolver(source, on_auth_error=self._auth_error)
        self.queries = PanelQueryRunner(source, on_auth_error=self._auth_error)
        self.auto_refresh = AutoRefresh(self.refresh, lambda: self.time_range, refresh_interval)

    def _auth_error(self) -> None:
        self.auth_failed = True
        if self._on_auth_error is not None:
            self._on_auth_error()

    # --- variables -------------------------------------------------------

    async def load_variables(self, preferred: Optional[Mapping[str, str]] = None) -> None:
        await self.variables.load(self.dashboard.variables, preferred)

    def is_repeat_source(self, name: str) -> bool:
        return name in self._repeat_sources

    def set_variable(self, name: str, value: str) -> bool:
        """Apply a user selection; repeat sources are not selectable."""
        if self.is_repeat_source(name):
            self._log.warning("repeat_source_not_selectable", variable=name)
            return False
        self.variables.set_selection(name, value)
        return True

    def selection(self) -> Dict[str, str]:
        return self.variables.selected_values()

    def variable_bar(self) -> List[VariableState]:
        """Variables to show in the selector bar, in definition order."""
        return [state for state in self.variables if not state.hidden]

    # --- time ------------------------------------------------------------

    def set_time_range(self, range_: TimeRange) -> None:
        self.time_range = range_

    def resolve_window(self) -> ResolvedRange:
        return self._time_resolver.resolve(self.time_range)

    def location(self) -> DashboardLocation:
        return DashboardLocation(
            path=self.dashboard.path,
            time_range=self.time_range,
            selections=self.selection(),
        )

    # --- rendering -------------------------------------------------------

    def render(self) -> List[RenderedRow]:
        """Expand repeat rows and substitute every template."""
        rendered: List[RenderedRow] = []
        instances = self._expander.expand_all(
            self.dashboard.rows, self.variables.states(), self.selection()
        )
        for instance in instances:
            sub = VariableSubstitutor(instance.selection)
            panels = [
                RenderedPanel(
                    key=f"{instance.key}-panel-{idx}",
                    kind=panel.kind,
                    title=sub.substitute(panel.title),
                    query=sub.substitute(panel.query) if panel.query else None,
                    content=sub.substitute(panel.content) if panel.content else None,
                    legend=panel.legend,
                    datasource=sub.substitute(panel.datasource) if panel.datasource else None,
                    unit=panel.unit,
                    chart_type=panel.chart_type,
                )
                for idx, panel in enumerate(instance.row.panels)
            ]
            rendered.append(
                RenderedRow(
                    key=instance.key,
                    title=sub.substitute(instance.row.title),
                    panels=panels,
                    repeat_value=instance.repeat_value,
                )
            )
        return rendered

    async def refresh(self) -> int:
        """Query every graph panel for the current window.

        Returns the number of queries issued.
        """
        window = self.resolve_window()
        panels = [
            panel
            for row in self.render()
            for panel in row.panels
            if panel.kind == PanelKind.GRAPH and panel.query
        ]
        await asyncio.gather(
            *(self.queries.run(p.key, p.query, window, p.datasource) for p in panels)
        )
        self._log.debug("dashboard_refreshed", panels=len(panels))
        return len(panels)

    def panel_state(self, panel: RenderedPanel) -> PanelState:
        return self.queries.state(panel.key)

    @staticmethod
    def legend_for(panel: RenderedPanel, series: Series) -> str:
        return format_legend(series.labels, panel.legend)
