"""
Error types and exit codes.

Engine components turn datasource and input failures into state; these
exceptions cross the client layer, the dashboard loader and the CLI.

Exit Codes:
- 0: Success
- 10: Configuration error
- 11: Datasource error (external service failure)
- 12: Validation error
- 13: Dashboard load error
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()

SIGINT_EXIT_CODE = 130


class ExitCode(IntEnum):
    """Exit codes returned by CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    DATASOURCE_ERROR = 11
    VALIDATION_ERROR = 12
    DASHBOARD_ERROR = 13
    UNKNOWN_ERROR = 127


class PanelForgeError(Exception):
    """Base exception carrying a user-facing message, details and exit code."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(PanelForgeError):
    """Bad settings, config file or command line arguments."""

    exit_code = ExitCode.CONFIG_ERROR


class ValidationError(PanelForgeError):
    """A dashboard definition breaks a structural rule."""

    exit_code = ExitCode.VALIDATION_ERROR


class DashboardLoadError(PanelForgeError):
    """A dashboard file cannot be found, read or parsed."""

    exit_code = ExitCode.DASHBOARD_ERROR


class DatasourceError(PanelForgeError):
    """A datasource request failed; ``status`` is the HTTP status if any."""

    exit_code = ExitCode.DATASOURCE_ERROR

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        status: int | None = None,
    ):
        super().__init__(message, details)
        self.status = status


class AuthenticationError(DatasourceError):
    """The datasource rejected our credentials (HTTP 401)."""

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, details, status=401)


def is_auth_error(exc: BaseException) -> bool:
    return isinstance(exc, DatasourceError) and exc.status == 401


def exit_code_for(exc: BaseException) -> int:
    """Map an exception escaping a command to its exit code."""
    if isinstance(exc, PanelForgeError):
        return exc.exit_code
    if isinstance(exc, KeyboardInterrupt):
        return SIGINT_EXIT_CODE
    return ExitCode.UNKNOWN_ERROR


def format_error_message(error: PanelForgeError) -> str:
    """Render ``message (key=value, ...)`` for the console."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg


def print_error_message(message: str) -> None:
    """Show ``message`` on the console, with rich markup escaped."""
    from rich.markup import escape

    from panelforge.cli.ux import error as print_error

    print_error(escape(message))


F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
    report: Callable[[str], None] | None = print_error_message,
) -> Callable[[F], F]:
    """
    Wrap a CLI command so that it always returns an exit code.

    Args:
        show_traceback: Print the traceback of unexpected errors to stderr
        log_errors: Emit a structlog event for every failure
        report: Shows the error to the user; None keeps the console quiet

    Usage:
        @main_with_error_handling()
        def render_command(path: str) -> int:
            ...
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted", command=func.__name__)
                return SIGINT_EXIT_CODE
            except PanelForgeError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        command=func.__name__,
                        error_type=type(e).__name__,
                        error=e.message,
                        exit_code=int(e.exit_code),
                        details=e.details,
                    )
                if report is not None:
                    report(format_error_message(e))
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        command=func.__name__,
                        error_type=type(e).__name__,
                        error=str(e),
                    )
                if report is not None:
                    report(f"unexpected error: {e}")
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return exit_code_for(e)

        return wrapper  # type: ignore[return-value]

    return decorator
