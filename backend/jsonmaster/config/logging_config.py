"""Structured logging setup (structlog over the stdlib root logger)."""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable
from typing import Any

import structlog

# Access lines duplicate our request_completed events; multipart logs every
# form part at DEBUG.
QUIET_LOGGERS = ("uvicorn.access", "multipart", "python_multipart", "httpx", "httpcore")


def _renderer(json_logs: bool) -> Any:
    if json_logs:
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())


def configure_logging(
    log_level: str = "INFO",
    json_logs: bool = True,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> None:
    """
    Route structlog and stdlib records through one formatter.

    JSON lines in deployed environments, console output when ``json_logs``
    is False. Called once from the application factory; calling it again
    replaces the root handler rather than stacking a second one.
    """
    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(json_logs),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
