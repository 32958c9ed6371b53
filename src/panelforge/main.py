"""PanelForge command line entry point."""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from panelforge.config import get_settings
from panelforge.core.errors import ConfigurationError, format_error_message, print_error_message
from panelforge.logging import configure_logging
from panelforge.refresh import REFRESH_INTERVALS
from panelforge.timerange import RELATIVE_RANGES


def _add_dashboard_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("path", help="Dashboard path, e.g. network/interfaces")
    parser.add_argument("--dir", dest="directory", help="Dashboards directory")
    parser.add_argument("--config", dest="config_path", help="Datasource config file")
    parser.add_argument(
        "--range",
        dest="range_id",
        choices=[r.id for r in RELATIVE_RANGES],
        help="Relative time range",
    )
    parser.add_argument("--from", dest="start", help="Absolute start (ISO 8601)")
    parser.add_argument("--to", dest="end", help="Absolute end (ISO 8601)")
    parser.add_argument(
        "--var",
        dest="variables",
        action="append",
        metavar="NAME=VALUE",
        help="Variable selection (repeatable)",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="panelforge", description="PanelForge CLI")
    parser.add_argument("--log-level", default=None, help="Log level (default from settings)")
    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="Show the dashboard tree")
    list_parser.add_argument("--dir", dest="directory", help="Dashboards directory")

    render_parser = subparsers.add_parser(
        "render", help="Expand rows and substitute variables in a dashboard"
    )
    _add_dashboard_args(render_parser)
    render_parser.add_argument(
        "--resolve",
        action="store_true",
        help="Fetch variable candidates from the datasources",
    )

    query_parser = subparsers.add_parser("query", help="Run a dashboard's panel queries")
    _add_dashboard_args(query_parser)

    subparsers.add_parser("list-ranges", help="List relative time ranges and refresh intervals")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        configure_logging(args.log_level or get_settings().log_level)
    except ConfigurationError as exc:
        print_error_message(format_error_message(exc))
        sys.exit(exc.exit_code)

    if args.command == "list":
        from panelforge.cli import list_command

        sys.exit(list_command(args.directory))

    if args.command == "render":
        from panelforge.cli import render_command

        sys.exit(
            render_command(
                args.path,
                directory=args.directory,
                config_path=args.config_path,
                range_id=args.range_id,
                start=args.start,
                end=args.end,
                variables=args.variables,
                resolve=args.resolve,
            )
        )

    if args.command == "query":
        from panelforge.cli import query_command

        sys.exit(
            query_command(
                args.path,
                directory=args.directory,
                config_path=args.config_path,
                range_id=args.range_id,
                start=args.start,
                end=args.end,
                variables=args.variables,
            )
        )

    if args.command == "list-ranges":
        for range_ in RELATIVE_RANGES:
            print(f"{range_.id:>4}  {range_.name}  (step {range_.step})")
        print()
        print("Refresh: " + ", ".join(label for label, _ in REFRESH_INTERVALS))
        sys.exit(0)

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
