"""
Structured logging setup.

Command output goes to stdout through rich; log events go to stderr so
the two never interleave when output is piped.
"""

import logging
import sys
from typing import Any

import structlog

from panelforge.core.errors import ConfigurationError


def resolve_level(level: int | str) -> int:
    """Turn a level name such as ``"debug"`` into its numeric value."""
    if isinstance(level, int):
        return level
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ConfigurationError("unknown log level", {"level": level})
    return numeric


def configure_logging(level: int | str = logging.INFO, *, json_output: bool | None = None) -> None:
    """Configure the structlog/standard logging bridge.

    Args:
        level: Level name or number
        json_output: Render JSON lines; defaults to True unless stderr is a TTY
    """
    numeric_level = resolve_level(level)
    if json_output is None:
        json_output = not sys.stderr.isatty()

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=False)
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(level=numeric_level, format="%(message)s", stream=sys.stderr, force=True)


def bind_context(**kwargs: Any) -> structlog.stdlib.BoundLogger:
    """Bind contextual fields (dashboard path, datasource) for downstream logs."""
    logger = structlog.get_logger()
    return logger.bind(**kwargs)
