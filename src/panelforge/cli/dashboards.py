"""CLI commands for browsing and rendering dashboards."""

from __future__ import annotations

import asyncio
from typing import Optional, Sequence

from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from panelforge.cli.ux import console, error, success, warning
from panelforge.clients.registry import DatasourceRegistry
from panelforge.config import get_settings, load_config
from panelforge.core.errors import (
    ConfigurationError,
    DashboardLoadError,
    ExitCode,
    main_with_error_handling,
)
from panelforge.dashboards.loader import DashboardTreeNode, load_dir
from panelforge.models import PanelKind
from panelforge.session import DashboardSession
from panelforge.timerange import (
    AbsoluteRange,
    TimeRange,
    find_relative_range,
)
from panelforge.units import value_formatter
from panelforge.urlstate import format_timestamp, parse_timestamp
from panelforge.variables import VariableStatus


def parse_var_args(pairs: Sequence[str] | None) -> dict[str, str]:
    """Parse repeated ``name=value`` arguments."""
    result: dict[str, str] = {}
    for pair in pairs or []:
        name, sep, value = pair.partition("=")
        if not sep or not name:
            raise ConfigurationError("expected --var name=value", {"got": pair})
        result[name] = value
    return result


def parse_range_args(
    range_id: Optional[str], start: Optional[str], end: Optional[str]
) -> TimeRange:
    """Build a TimeRange from --range or --from/--to."""
    if start or end:
        if not (start and end):
            raise ConfigurationError("--from and --to must be given together")
        start_ts, end_ts = parse_timestamp(start), parse_timestamp(end)
        if start_ts is None or end_ts is None:
            raise ConfigurationError("invalid ISO 8601 timestamp", {"from": start, "to": end})
        if start_ts >= end_ts:
            raise ConfigurationError("--from must be before --to")
        return AbsoluteRange.create(start_ts, end_ts)

    range_id = range_id or get_settings().default_time_range
    found = find_relative_range(range_id)
    if found is None:
        raise ConfigurationError("unknown time range", {"range": range_id})
    return found


def _add_tree_nodes(tree: Tree, nodes: list[DashboardTreeNode]) -> None:
    for node in nodes:
        if node.is_leaf:
            tree.add(f"[info]{node.name}[/info] [muted]({node.path})[/muted]")
        else:
            _add_tree_nodes(tree.add(f"[highlight]{node.name}/[/highlight]"), node.children)


@main_with_error_handling()
def list_command(directory: Optional[str] = None) -> int:
    """Print the dashboard navigation tree."""
    store = load_dir(directory or get_settings().dashboards_dir)
    tree = Tree(f"Dashboards ({len(store)})")
    _add_tree_nodes(tree, store.tree())
    console.print(tree)
    return 0


def _open_session(
    path: str,
    directory: Optional[str],
    config_path: Optional[str],
    time_range: TimeRange,
) -> DashboardSession:
    settings = get_settings()
    store = load_dir(directory or settings.dashboards_dir)
    dashboard = store.get(path)
    if dashboard is None:
        raise DashboardLoadError("dashboard not found", {"path": path})
    config = load_config(config_path or settings.config_path)
    registry = DatasourceRegistry.from_config(config.datasources)
    return DashboardSession(
        dashboard,
        registry,
        time_range,
        on_auth_error=lambda: warning("datasource rejected credentials (401)"),
        refresh_interval=settings.refresh_interval,
    )


async def _prepare(session: DashboardSession, selections: dict[str, str], resolve: bool) -> None:
    if resolve:
        await session.load_variables(selections)
        for state in session.variables:
            if state.status == VariableStatus.ERRORED:
                warning(f"variable {state.name}: {state.error}")
    else:
        session.variables.reset(session.dashboard.variables)
        for name, value in selections.items():
            session.variables.set_selection(name, value)


@main_with_error_handling()
def render_command(
    path: str,
    directory: Optional[str] = None,
    config_path: Optional[str] = None,
    range_id: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    variables: Sequence[str] | None = None,
    resolve: bool = False,
) -> int:
    """Print expanded rows with substituted titles and queries."""
    session = _open_session(path, directory, config_path, parse_range_args(range_id, start, end))
    asyncio.run(_prepare(session, parse_var_args(variables), resolve))

    window = session.resolve_window()
    console.print(f"[bold]{session.dashboard.title}[/bold] [muted]({session.dashboard.path})[/muted]")
    console.print(
        f"[muted]{format_timestamp(window.start)} → {format_timestamp(window.end)} step {window.step}[/muted]"
    )
    console.print(f"[muted]?{session.location().to_query_string()}[/muted]")

    for row in session.render():
        table = Table(title=escape(row.title), show_header=True, header_style="bold cyan")
        table.add_column("Panel")
        table.add_column("Type")
        table.add_column("Query / Content")
        for panel in row.panels:
            body = panel.query if panel.kind == PanelKind.GRAPH else panel.content
            table.add_row(escape(panel.title), panel.kind.value, escape(body or ""))
        console.print(table)
    return 0


async def _run_queries(session: DashboardSession, selections: dict[str, str]) -> None:
    await _prepare(session, selections, resolve=True)
    await session.refresh()


@main_with_error_handling()
def query_command(
    path: str,
    directory: Optional[str] = None,
    config_path: Optional[str] = None,
    range_id: Optional[str] = None,
    start: Optional[str] = None,
    end: Optional[str] = None,
    variables: Sequence[str] | None = None,
) -> int:
    """Run every graph panel query and print series legends with their latest value."""
    session = _open_session(path, directory, config_path, parse_range_args(range_id, start, end))
    asyncio.run(_run_queries(session, parse_var_args(variables)))

    failures = 0
    for row in session.render():
        console.print(f"[bold]{escape(row.title)}[/bold]")
        for panel in row.panels:
            if panel.kind != PanelKind.GRAPH:
                continue
            state = session.panel_state(panel)
            if state.error:
                failures += 1
                error(f"{escape(panel.title)}: {escape(state.error)}")
                continue
            console.print(f"  [info]{escape(panel.title)}[/info] ({len(state.series)} series)")
            fmt = value_formatter(panel.unit)
            for series in state.series:
                label = session.legend_for(panel, series)
                last = fmt(series.samples[-1][1]) if series.samples else "no data"
                console.print(
                    f"    {escape(label)} {escape(last)} [muted]{len(series.samples)} samples[/muted]"
                )

    if failures:
        return ExitCode.DATASOURCE_ERROR
    success("all panel queries succeeded")
    return ExitCode.SUCCESS
